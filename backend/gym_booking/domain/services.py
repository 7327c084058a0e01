from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .errors import (
    CancellationCutoffPassedError,
    ClassFullError,
    ReservationsClosedError,
    WaitlistUnavailableError,
)


class UserStatus(StrEnum):
    RESERVED = "reserved"
    # Never produced: there is no waitlist ledger yet.
    WAITLISTED = "waitlisted"
    NONE = "none"


@dataclass(frozen=True)
class ClassSnapshot:
    capacity: int
    start_time: datetime
    reserved: int
    existing_reservation_id: str | None


def has_started(start_time: datetime, now: datetime) -> bool:
    """Both datetimes are naive UTC. The cutoff is the start time itself."""
    return now >= start_time


def validate_reservation(snapshot: ClassSnapshot, *, now: datetime, wants_waitlist: bool) -> str | None:
    """
    Pure validation for a reserve request.
    Returns the id of an existing reservation when the request is a repeat, None when
    a new seat may be taken. Raises domain errors otherwise.
    """
    if has_started(snapshot.start_time, now):
        raise ReservationsClosedError()
    if snapshot.existing_reservation_id is not None:
        return snapshot.existing_reservation_id
    if snapshot.reserved >= snapshot.capacity:
        if wants_waitlist:
            raise WaitlistUnavailableError()
        raise ClassFullError()
    return None


def validate_cancellation(start_time: datetime, *, now: datetime) -> None:
    if has_started(start_time, now):
        raise CancellationCutoffPassedError()


def user_status_for(reserved_by_client: bool) -> UserStatus:
    return UserStatus.RESERVED if reserved_by_client else UserStatus.NONE
