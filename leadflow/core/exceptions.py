"""Custom exceptions for the LeadFlow pipeline engine."""


class LeadFlowException(Exception):
    """Base exception for the pipeline engine."""

    pass


class ConfigurationError(LeadFlowException):
    """Raised when runtime or pipeline configuration is unusable."""

    pass


class NotFoundError(LeadFlowException):
    """Raised when a lead, stage or team does not exist."""

    pass


class ValidationDenied(LeadFlowException):
    """Raised when an FSM or team-permission rule rejects a transition."""

    pass


class InvalidTransitionError(ValidationDenied):
    """Raised when a machine-level transition is not allowed."""

    pass


class PersistenceError(LeadFlowException):
    """Raised when the storage collaborator fails."""

    pass


class ConcurrentModificationError(PersistenceError):
    """Raised when a lead row changed underneath a pending transition."""

    pass
