from dataclasses import dataclass
from datetime import datetime
import logging

from ..domain.errors import (
    ClassFullError,
    ClassNotFoundError,
    DuplicateReservationError,
    ForbiddenError,
    ReservationNotFoundError,
)
from ..domain.repositories import ClassSessionRepository, ReservationRepository
from ..domain.services import ClassSnapshot, UserStatus, validate_cancellation, validate_reservation
from ..models import ClassSession, Reservation
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationOutcome:
    reservation_id: str
    class_session: ClassSession
    reserved_count: int
    created: bool
    waitlist_count: int = 0
    user_status: UserStatus = UserStatus.RESERVED


@dataclass(frozen=True)
class CancellationOutcome:
    reservation: Reservation
    class_session: ClassSession
    reserved_count: int
    waitlist_count: int = 0
    user_status: UserStatus = UserStatus.NONE


async def reserve(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    session_id: str,
    client_id: str,
    wants_waitlist: bool = False,
    now: datetime | None = None,
) -> ReservationOutcome:
    """Take a seat in a class for a verified client.

    Expects to run inside a single transaction: the class row is locked for the
    duration, and a recount above capacity after the insert raises so the caller's
    transaction rolls the insert back.
    """
    now = now or utc_now_naive()
    class_session = await session_repo.get_for_update(session_id)
    if class_session is None:
        raise ClassNotFoundError()

    existing = await res_repo.find_for_client(session_id, client_id)
    reserved = await res_repo.count_for_session(session_id)
    snapshot = ClassSnapshot(
        capacity=class_session.capacity,
        start_time=class_session.start_time,
        reserved=reserved,
        existing_reservation_id=existing.id if existing is not None else None,
    )
    existing_id = validate_reservation(snapshot, now=now, wants_waitlist=wants_waitlist)
    if existing_id is not None:
        return ReservationOutcome(
            reservation_id=existing_id,
            class_session=class_session,
            reserved_count=reserved,
            created=False,
        )

    try:
        reservation = await res_repo.create(session_id, client_id)
    except DuplicateReservationError:
        # Lost a race against the same client's concurrent request.
        existing = await res_repo.find_for_client(session_id, client_id)
        if existing is None:
            raise
        return ReservationOutcome(
            reservation_id=existing.id,
            class_session=class_session,
            reserved_count=await res_repo.count_for_session(session_id),
            created=False,
        )

    reserved_after = await res_repo.count_for_session(session_id)
    if reserved_after > class_session.capacity:
        logger.warning(
            "over capacity after insert, rolling back session_id=%s reserved=%d capacity=%d",
            session_id,
            reserved_after,
            class_session.capacity,
        )
        raise ClassFullError()

    return ReservationOutcome(
        reservation_id=reservation.id,
        class_session=class_session,
        reserved_count=reserved_after,
        created=True,
    )


async def cancel_reservation(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: str,
    client_id: str,
    now: datetime | None = None,
) -> CancellationOutcome:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError()
    if reservation.client_id != client_id:
        raise ForbiddenError()
    return await _cancel(session_repo, res_repo, reservation=reservation, now=now or utc_now_naive())


async def cancel_current_reservation(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    session_id: str,
    client_id: str,
    now: datetime | None = None,
) -> CancellationOutcome:
    reservation = await res_repo.find_for_client(session_id, client_id)
    if reservation is None:
        raise ReservationNotFoundError()
    return await _cancel(session_repo, res_repo, reservation=reservation, now=now or utc_now_naive())


async def _cancel(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    reservation: Reservation,
    now: datetime,
) -> CancellationOutcome:
    class_session = await session_repo.get(reservation.session_id)
    if class_session is None:
        raise ClassNotFoundError()
    validate_cancellation(class_session.start_time, now=now)

    await res_repo.delete(reservation)
    reserved = await res_repo.count_for_session(class_session.id)
    return CancellationOutcome(
        reservation=reservation,
        class_session=class_session,
        reserved_count=reserved,
    )


async def list_client_reservations(
    res_repo: ReservationRepository,
    *,
    client_id: str,
    upcoming_only: bool = True,
    now: datetime | None = None,
) -> list[tuple[Reservation, ClassSession]]:
    starting_after = (now or utc_now_naive()) if upcoming_only else None
    return await res_repo.list_by_client(client_id, starting_after=starting_after)
