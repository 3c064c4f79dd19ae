"""Domain exceptions.  The API layer maps each family to an HTTP status."""


class DomainError(Exception):
    """Base class for business-rule violations."""


class InvalidStateTransition(DomainError):
    """Raised when a status change violates the state machine."""


class CancellationNotAllowed(DomainError):
    """Raised when a ride is past its cancellation window."""


class RatingNotAllowed(DomainError):
    """Raised when a ride cannot (or can no longer) be rated."""


class InvalidRentalWindow(DomainError):
    """Raised when a booking's start/end dates cannot be accepted."""
