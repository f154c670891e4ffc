"""Custom exceptions for the variable speeds election."""

from typing import Any


class VariableSpeedsError(Exception):
    """Base exception for all election errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(VariableSpeedsError):
    """Raised when the roster or run settings are unusable.

    Always raised before any process thread starts.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value


class EmptyRosterError(ConfigurationError):
    """Raised when the declared ring size is zero or negative."""

    def __init__(self, size: int, **kwargs: Any):
        super().__init__(
            f"Ring size must be at least 1, got {size}",
            field="size",
            value=size,
            **kwargs,
        )
        self.size = size


class RosterSizeError(ConfigurationError):
    """Raised when fewer identifiers than the declared size are supplied."""

    def __init__(self, expected: int, received: int, **kwargs: Any):
        super().__init__(
            f"{expected} UIDs are expected, got {received}",
            field="ids",
            value=received,
            **kwargs,
        )
        self.expected = expected
        self.received = received


class DuplicateIdentifierError(ConfigurationError):
    """Raised when the roster repeats an identifier."""

    def __init__(self, duplicates: list[int], **kwargs: Any):
        super().__init__(
            f"Identifiers must be unique, duplicated: {duplicates}",
            field="ids",
            value=duplicates,
            **kwargs,
        )
        self.duplicates = duplicates


class InvalidIdentifierError(ConfigurationError):
    """Raised when an identifier cannot drive the exponential gate."""

    pass


class RosterFormatError(ConfigurationError):
    """Raised when roster text cannot be parsed."""

    pass


class TopologyError(ConfigurationError):
    """Raised when neighbor links do not form a single ring."""

    pass


class RoundBudgetError(ConfigurationError):
    """Raised when the predicted run length exceeds the configured budget."""

    def __init__(self, predicted: int | None, max_rounds: int, **kwargs: Any):
        if predicted is None:
            message = f"Election needs more than {max_rounds} rounds, budget is {max_rounds}"
        else:
            message = f"Election needs up to {predicted} rounds, budget is {max_rounds}"
        super().__init__(
            message,
            field="max_rounds",
            value=max_rounds,
            **kwargs,
        )
        self.predicted = predicted
        self.max_rounds = max_rounds


# =============================================================================
# Protocol Errors
# =============================================================================


class ProtocolViolationError(VariableSpeedsError):
    """Raised when a protocol invariant breaks.

    Indicates a bug, never a recoverable condition. The run is aborted.
    """

    def __init__(
        self,
        message: str,
        process_id: int | None = None,
        round_number: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.process_id = process_id
        self.round_number = round_number


class MonotonicityViolationError(ProtocolViolationError):
    """Raised when a process would see its minimum increase."""

    def __init__(
        self,
        process_id: int,
        current: int,
        proposed: int,
        **kwargs: Any,
    ):
        super().__init__(
            f"UID {process_id} minimum would increase from {current} to {proposed}",
            process_id=process_id,
            **kwargs,
        )
        self.current = current
        self.proposed = proposed


class DuplicateLeaderError(ProtocolViolationError):
    """Raised on a second leader transition or a second leader in the ring."""

    pass


class TerminationBoundError(ProtocolViolationError):
    """Raised when a run passes its proven round bound without a leader."""

    def __init__(self, bound: int, round_number: int, **kwargs: Any):
        super().__init__(
            f"No leader after round {round_number}, bound is {bound}",
            round_number=round_number,
            **kwargs,
        )
        self.bound = bound


# =============================================================================
# Orchestration Errors
# =============================================================================


class OrchestrationError(VariableSpeedsError):
    """Base exception for run orchestration errors."""

    pass


class ElectionCancelledError(OrchestrationError):
    """Raised when a run is cancelled before a leader is found."""

    pass


class ElectionTimeoutError(OrchestrationError):
    """Raised when a run does not finish in time."""

    def __init__(self, timeout: float, **kwargs: Any):
        super().__init__(f"Election did not finish within {timeout}s", **kwargs)
        self.timeout = timeout


class ElectionNotFoundError(OrchestrationError):
    """Raised when a stored election does not exist."""

    def __init__(self, election_id: str, **kwargs: Any):
        super().__init__(f"Election not found: {election_id}", **kwargs)
        self.election_id = election_id
