"""SSE streaming helpers for election runs.

Provides event construction with sequencing and SSE formatting.
"""

import json
import logging
from typing import Any

from varspeed.lib.models import (
    ElectionEvent,
    ElectionResult,
    Roster,
    RoundReport,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Event Types
# =============================================================================


class EventType:
    """SSE event type constants."""

    # Election lifecycle
    ELECTION_START = "election_start"
    ELECTION_END = "election_end"
    ELECTION_ERROR = "election_error"

    # Rounds
    ROUND_END = "round_end"
    LEADER_ELECTED = "leader_elected"

    # Keep-alive
    HEARTBEAT = "heartbeat"


# =============================================================================
# Event Builder
# =============================================================================


class EventBuilder:
    """Builder for SSE events with automatic sequencing."""

    def __init__(self, election_id: str):
        self.election_id = election_id
        self._sequence = 0

    def build(self, event_type: str, data: dict[str, Any] | None = None) -> ElectionEvent:
        """Build an event with the next sequence number."""
        event = ElectionEvent(
            sequence=self._sequence,
            event_type=event_type,
            election_id=self.election_id,
            data=data or {},
        )
        self._sequence += 1
        return event

    def election_start(self, roster: Roster, bound: int) -> ElectionEvent:
        return self.build(
            EventType.ELECTION_START,
            {"ids": list(roster.ids), "size": roster.size, "round_bound": bound},
        )

    def round_end(self, report: RoundReport) -> ElectionEvent:
        return self.build(EventType.ROUND_END, report.model_dump(mode="json"))

    def leader_elected(self, leader_id: int, round_number: int) -> ElectionEvent:
        return self.build(
            EventType.LEADER_ELECTED,
            {"leader_id": leader_id, "round": round_number},
        )

    def election_end(self, result: ElectionResult) -> ElectionEvent:
        """Build election end event carrying the full result."""
        return self.build(EventType.ELECTION_END, result.model_dump(mode="json"))

    def election_error(self, error: str, error_type: str) -> ElectionEvent:
        return self.build(
            EventType.ELECTION_ERROR,
            {"error": error, "type": error_type},
        )

    def heartbeat(self) -> ElectionEvent:
        return self.build(EventType.HEARTBEAT)


# =============================================================================
# SSE Formatter
# =============================================================================


def format_sse(event: ElectionEvent) -> dict[str, str]:
    """Format an event as the mapping sse-starlette sends on the wire."""
    return {
        "id": str(event.sequence),
        "event": event.event_type,
        "data": json.dumps(event.model_dump(mode="json")),
    }


def is_notable(report: RoundReport) -> bool:
    """Rounds worth streaming: something moved or the election ended."""
    return bool(report.transfers) or report.leader_found
