"""Pydantic models for the variable speeds election."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class ProcessState(str, Enum):
    """Lifecycle of a single process within one run."""

    ACTIVE = "active"
    LEADER_CONFIRMED = "leader_confirmed"
    NON_LEADER_CONFIRMED = "non_leader_confirmed"


class ElectionStatus(str, Enum):
    """Lifecycle of an election run."""

    PENDING = "pending"
    RUNNING = "running"
    ELECTED = "elected"
    FAILED = "failed"
    CANCELLED = "cancelled"


# =============================================================================
# Roster
# =============================================================================


class Roster(BaseModel):
    """Validated, ordered ring membership.

    Build through ``varspeed.lib.roster`` so that malformed input raises a
    ``ConfigurationError`` instead of a pydantic error.
    """

    model_config = ConfigDict(frozen=True)

    ids: tuple[int, ...] = Field(description="Identifiers in ring order")

    @property
    def size(self) -> int:
        return len(self.ids)

    @property
    def minimum(self) -> int:
        return min(self.ids)


# =============================================================================
# Round Reporting
# =============================================================================


class TokenTransfer(BaseModel):
    """A token committed from one process into its downstream neighbor."""

    round: int = Field(description="Round in which the sender forwarded the token")
    sender: int = Field(description="Sending process id")
    receiver: int = Field(description="Receiving process id")
    value: int = Field(description="Token value")
    returned_home: bool = Field(
        default=False, description="Token was delivered back to its owner"
    )


class RoundReport(BaseModel):
    """Per-round notification emitted by the coordinator."""

    round: int = Field(description="Round number (0-indexed)")
    completed: bool = Field(default=True)
    leader_found: bool = Field(default=False)
    transfers: list[TokenTransfer] = Field(default_factory=list)


class ProcessOutcome(BaseModel):
    """Final status of one process."""

    id: int
    is_leader: bool
    current_min: int
    state: ProcessState = Field(default=ProcessState.ACTIVE)


# =============================================================================
# Election Result
# =============================================================================


class ElectionResult(BaseModel):
    """Outcome of one election run."""

    election_id: str = Field(default_factory=lambda: str(uuid4()))
    status: ElectionStatus = Field(default=ElectionStatus.PENDING)
    roster: list[int] = Field(default_factory=list)
    leader_id: int | None = Field(default=None)
    rounds: int = Field(default=0, description="Completed barrier cycles")
    outcomes: list[ProcessOutcome] = Field(default_factory=list)
    transfers: list[TokenTransfer] = Field(default_factory=list)
    error: str | None = Field(default=None)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = Field(default=None)

    @property
    def leaders(self) -> list[int]:
        return [o.id for o in self.outcomes if o.is_leader]


# =============================================================================
# Events
# =============================================================================


class ElectionEvent(BaseModel):
    """Server-sent event with sequencing."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    sequence: int = Field(description="Monotonic counter within one election")
    event_type: str = Field(description="Event type")
    election_id: str = Field(description="Election the event belongs to")
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


# =============================================================================
# API Models
# =============================================================================


class ElectionRequest(BaseModel):
    """Request body for starting an election."""

    ids: list[int] = Field(description="Identifiers in ring order")
    size: int | None = Field(
        default=None,
        description="Declared ring size; extra identifiers beyond it are ignored",
    )


class ElectionListResponse(BaseModel):
    """Recent election ids, newest last."""

    elections: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
