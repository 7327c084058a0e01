from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base class for booking errors that map onto a stable HTTP status."""

    status_code: int = 500
    code: Optional[str] = None

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class ClassNotFoundError(NotFoundError):
    def __init__(self, message: str = "Class not found") -> None:
        super().__init__(message)


class ReservationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Reservation not found") -> None:
        super().__init__(message)


class ForbiddenError(DomainError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class ConflictError(DomainError):
    status_code = 409


class ClassFullError(ConflictError):
    code = "CLASS_FULL"

    def __init__(self, message: str = "Class is full") -> None:
        super().__init__(message)


class WaitlistUnavailableError(ConflictError):
    code = "WAITLIST_UNAVAILABLE"

    def __init__(self, message: str = "Waitlist not supported") -> None:
        super().__init__(message)


class CapacityBelowReservedError(ConflictError):
    code = "CAPACITY_BELOW_RESERVED"


class AttendeesOverCapacityError(ConflictError):
    code = "ATTENDEES_OVER_CAPACITY"


class UnprocessableStateError(DomainError):
    status_code = 422


class ReservationsClosedError(UnprocessableStateError):
    code = "RESERVATIONS_CLOSED"

    def __init__(self, message: str = "Reservations closed for this class") -> None:
        super().__init__(message)


class CancellationCutoffPassedError(UnprocessableStateError):
    code = "CANCELLATION_CUTOFF_PASSED"

    def __init__(self, message: str = "Cancellation cutoff has passed") -> None:
        super().__init__(message)


class DuplicateReservationError(ConflictError):
    """Raised by the ledger when the (session, client) unique constraint trips."""

    def __init__(self, message: str = "client already holds a reservation for this class") -> None:
        super().__init__(message)
