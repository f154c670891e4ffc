"""Main election engine.

Validates a roster, builds the ring, runs the coordinator and collects the
result.
"""

import logging
import threading

from varspeed.config import Settings, get_settings
from varspeed.lib.exceptions import (
    ElectionCancelledError,
    OrchestrationError,
    RoundBudgetError,
    VariableSpeedsError,
)
from varspeed.lib.models import ElectionResult, ElectionStatus, Roster, utcnow
from varspeed.protocol.coordinator import (
    RoundCoordinator,
    RoundListener,
    termination_bound,
)
from varspeed.protocol.ring import build_ring

logger = logging.getLogger(__name__)


class ElectionEngine:
    """
    Runs one election over one roster.

    An engine is single-use: ring state is created for the run and discarded
    with it.
    """

    def __init__(self, roster: Roster, settings: Settings | None = None):
        """
        Initialize the engine.

        Args:
            roster: Validated roster
            settings: Run settings, defaults to the application settings
        """
        self.roster = roster
        self.settings = settings or get_settings()
        self.result = ElectionResult(roster=list(roster.ids))
        self.coordinator: RoundCoordinator | None = None
        self._listeners: list[RoundListener] = []
        self._cancel_requested = threading.Event()

    @property
    def election_id(self) -> str:
        return self.result.election_id

    @property
    def round_bound(self) -> int | None:
        """
        Last round the election may need, or None when ``2^minimum`` alone
        already exceeds the round budget.
        """
        if (
            self.roster.size > 1
            and self.roster.minimum >= self.settings.max_rounds.bit_length()
        ):
            return None
        return termination_bound(self.roster.size, self.roster.minimum)

    def add_listener(self, listener: RoundListener) -> None:
        """Register a callback for per-round reports."""
        self._listeners.append(listener)

    def validate(self) -> None:
        """
        Refuse rosters that cannot finish within the round budget.

        Raises:
            RoundBudgetError: If the predicted bound exceeds ``max_rounds``
        """
        bound = self.round_bound
        if bound is None or bound > self.settings.max_rounds:
            raise RoundBudgetError(
                bound,
                self.settings.max_rounds,
                details={"size": self.roster.size, "minimum": self.roster.minimum},
            )

    def run(self) -> ElectionResult:
        """
        Run the election to completion.

        Returns:
            ElectionResult with the leader and per-process outcomes

        Raises:
            ConfigurationError: Before any thread starts
            ProtocolViolationError: If an invariant breaks during the run
            OrchestrationError: If the run is cancelled or times out
        """
        if self.result.status is not ElectionStatus.PENDING:
            raise OrchestrationError(f"Election {self.election_id} already ran")

        self.validate()
        processes = build_ring(self.roster)
        self.coordinator = RoundCoordinator(
            processes,
            barrier_timeout=self.settings.barrier_timeout,
            listeners=self._listeners,
        )

        self.result.status = ElectionStatus.RUNNING
        logger.info(
            f"Starting election {self.election_id} over {self.roster.size} processes "
            f"(bound {self.round_bound} rounds)"
        )

        try:
            if self._cancel_requested.is_set():
                raise ElectionCancelledError("Election cancelled before start")
            self.coordinator.start()
            if self._cancel_requested.is_set():
                self.coordinator.cancel()
            self.coordinator.wait(self.settings.run_timeout)
        except ElectionCancelledError as e:
            self.result.status = ElectionStatus.CANCELLED
            self.result.error = e.message
            raise
        except VariableSpeedsError as e:
            logger.error(f"Election {self.election_id} failed: {e.message}")
            self.result.status = ElectionStatus.FAILED
            self.result.error = e.message
            raise
        finally:
            self._collect()

        self.result.status = ElectionStatus.ELECTED
        self.result.leader_id = self.coordinator.leader_id
        logger.info(
            f"Election {self.election_id} elected UID {self.result.leader_id} "
            f"after {self.result.rounds} rounds"
        )
        return self.result

    def cancel(self) -> None:
        """Request cancellation; safe to call from any thread."""
        self._cancel_requested.set()
        if self.coordinator is not None:
            self.coordinator.cancel()

    def _collect(self) -> None:
        coordinator = self.coordinator
        self.result.rounds = coordinator.round
        self.result.outcomes = coordinator.outcomes()
        self.result.transfers = list(coordinator.transfers)
        self.result.finished_at = utcnow()


# =============================================================================
# Factory Functions
# =============================================================================


def create_engine(roster: Roster, settings: Settings | None = None) -> ElectionEngine:
    """
    Create an ElectionEngine for a roster.

    Args:
        roster: Validated roster
        settings: Optional settings override

    Returns:
        Configured ElectionEngine
    """
    return ElectionEngine(roster=roster, settings=settings)


def run_election(
    roster: Roster,
    settings: Settings | None = None,
    on_round: RoundListener | None = None,
) -> ElectionResult:
    """Run one election and return its result."""
    engine = create_engine(roster, settings)
    if on_round is not None:
        engine.add_listener(on_round)
    return engine.run()
