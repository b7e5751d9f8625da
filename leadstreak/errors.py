"""Engine error hierarchy. Every error here is recoverable at the boundary that detects it."""


class LeadStreakError(Exception):
    """Base class for all engine errors."""
    pass


class InsufficientFundsError(LeadStreakError):
    """Raised when a debit would drive the ledger balance negative."""

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance: requested {requested}, available {available}"
        )


class IdentityAcquisitionError(LeadStreakError):
    """Raised when no wallet address could be acquired."""
    pass


class InvalidInputError(LeadStreakError, ValueError):
    """Raised when user input is rejected at the boundary, before any mutation."""
    pass


class InvalidCommitmentError(InvalidInputError):
    """Raised when a manual commitment request is incomplete."""
    pass


class InvalidTransitionError(LeadStreakError):
    """Raised when a task status change is not allowed by the state machine."""
    pass


class TaskNotFoundError(LeadStreakError, KeyError):
    pass


class LeadNotFoundError(LeadStreakError, KeyError):
    pass


class LeadStateError(LeadStreakError):
    """Raised when a lead is not in a status that allows the requested action."""
    pass


class RecoveryStateError(LeadStreakError):
    """Raised when the recovery workflow is driven out of order."""
    pass


class AdvisoryUnavailableError(LeadStreakError):
    """Raised when the advisory backend failed on every attempt."""

    def __init__(self, kind: str, attempts: int, cause: Exception = None):
        self.kind = kind
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Advisory request '{kind}' failed after {attempts} attempt(s): {cause}"
        )
