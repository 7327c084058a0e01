from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, List

from ..domain.errors import (
    AttendeesOverCapacityError,
    CapacityBelowReservedError,
    ClassNotFoundError,
    ValidationError,
)
from ..domain.repositories import ClassSessionRepository, MemberRepository, ReservationRepository
from ..domain.services import UserStatus, user_status_for
from ..models import ClassSession, Client, Reservation
from ..utils.time import local_to_utc_naive

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MAX_RECURRING_SPAN = timedelta(days=366)


@dataclass(frozen=True)
class ClassListing:
    class_session: ClassSession
    reserved_count: int
    user_status: UserStatus
    waitlist_count: int = 0


@dataclass(frozen=True)
class ClassDetail:
    class_session: ClassSession
    reserved_count: int
    user_status: UserStatus
    participants: List[Client] = field(default_factory=list)
    waitlist_count: int = 0


@dataclass(frozen=True)
class AttendeeRoster:
    class_session: ClassSession
    attendees: List[Reservation]


async def list_classes(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    start: datetime,
    end: datetime,
    client_id: str | None = None,
) -> List[ClassListing]:
    rows = list(await session_repo.list_overlapping(start=start, end=end))
    reserved_ids: set[str] = set()
    if client_id:
        reserved_ids = await res_repo.session_ids_reserved_by(client_id, [cs.id for cs, _ in rows])
    return [
        ClassListing(
            class_session=class_session,
            reserved_count=int(reserved),
            user_status=user_status_for(class_session.id in reserved_ids),
        )
        for class_session, reserved in rows
    ]


async def get_class_detail(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    session_id: str,
    client_id: str | None = None,
) -> ClassDetail:
    class_session = await session_repo.get_with_participants(session_id)
    if class_session is None:
        raise ClassNotFoundError()
    participants = [reservation.client for reservation in class_session.reservations]
    reserved = await res_repo.count_for_session(session_id)
    reserved_by_client = client_id is not None and any(p.id == client_id for p in participants)
    return ClassDetail(
        class_session=class_session,
        reserved_count=reserved,
        user_status=user_status_for(reserved_by_client),
        participants=participants,
    )


def _validate_schedule(start_time: datetime, end_time: datetime, capacity: int) -> None:
    if start_time >= end_time:
        raise ValidationError("start_time must be earlier than end_time")
    if capacity < 0:
        raise ValidationError("capacity must be >= 0")


async def create_class(
    session_repo: ClassSessionRepository,
    *,
    title: str,
    description: str | None,
    location: str | None,
    capacity: int,
    start_time: datetime,
    end_time: datetime,
    is_cancelled: bool,
    instructor_id: str,
) -> ClassSession:
    _validate_schedule(start_time, end_time, capacity)
    return await session_repo.create(
        title=title,
        description=description or None,
        location=location,
        capacity=capacity,
        start_time=start_time,
        end_time=end_time,
        is_cancelled=is_cancelled,
        instructor_id=instructor_id,
    )


def recurring_dates(start_date: date, end_date: date, days: Iterable[str]) -> List[date]:
    """Every date in [start_date, end_date] whose weekday abbreviation is in `days`."""
    if start_date > end_date:
        raise ValidationError("start_date must not be after end_date")
    if end_date - start_date > MAX_RECURRING_SPAN:
        raise ValidationError(f"recurring schedules may span at most {MAX_RECURRING_SPAN.days} days")
    wanted = set()
    for day in days:
        if day not in WEEKDAYS:
            raise ValidationError(f"unknown weekday: {day}")
        wanted.add(WEEKDAYS.index(day))
    if not wanted:
        raise ValidationError("at least one weekday is required")

    dates: List[date] = []
    current = start_date
    while current <= end_date:
        if current.weekday() in wanted:
            dates.append(current)
        current += timedelta(days=1)
    return dates


async def create_recurring_classes(
    session_repo: ClassSessionRepository,
    *,
    title: str,
    description: str | None,
    location: str | None,
    capacity: int,
    days: Iterable[str],
    start_date: date,
    end_date: date,
    start_time: time,
    end_time: time,
    is_cancelled: bool,
    instructor_id: str,
    tz_name: str,
) -> List[ClassSession]:
    dates = recurring_dates(start_date, end_date, days)
    if not dates:
        raise ValidationError("no class dates fall within the given range")

    created: List[ClassSession] = []
    for day in dates:
        starts = local_to_utc_naive(datetime.combine(day, start_time), tz_name)
        ends = local_to_utc_naive(datetime.combine(day, end_time), tz_name)
        created.append(
            await create_class(
                session_repo,
                title=title,
                description=description,
                location=location,
                capacity=capacity,
                start_time=starts,
                end_time=ends,
                is_cancelled=is_cancelled,
                instructor_id=instructor_id,
            )
        )
    return created


async def update_class(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    *,
    session_id: str,
    title: str | None = None,
    description: str | None = None,
    location: str | None = None,
    capacity: int | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    is_cancelled: bool | None = None,
) -> ClassSession:
    class_session = await session_repo.get_for_update(session_id)
    if class_session is None:
        raise ClassNotFoundError()

    new_start = start_time or class_session.start_time
    new_end = end_time or class_session.end_time
    new_capacity = class_session.capacity if capacity is None else capacity
    _validate_schedule(new_start, new_end, new_capacity)
    if capacity is not None:
        reserved = await res_repo.count_for_session(session_id)
        if capacity < reserved:
            raise CapacityBelowReservedError(f"capacity {capacity} is below the {reserved} existing reservations")

    if title is not None:
        class_session.title = title
    if description is not None:
        class_session.description = description or None
    if location is not None:
        class_session.location = location or None
    if is_cancelled is not None:
        class_session.is_cancelled = is_cancelled
    class_session.capacity = new_capacity
    class_session.start_time = new_start
    class_session.end_time = new_end
    return await session_repo.update(class_session)


async def set_attendees(
    session_repo: ClassSessionRepository,
    res_repo: ReservationRepository,
    members: MemberRepository,
    *,
    session_id: str,
    client_ids: Iterable[str],
    admin_id: str,
) -> AttendeeRoster:
    """Replace the reservation ledger of a class with `client_ids`.

    Every row is re-created and stamped with the acting admin as
    `checked_in_by_id`. Repeated ids count once, and no cutoff applies.
    """
    class_session = await session_repo.get_for_update(session_id)
    if class_session is None:
        raise ClassNotFoundError()

    wanted = list(dict.fromkeys(client_ids))
    known = await members.existing_client_ids(wanted)
    missing = [client_id for client_id in wanted if client_id not in known]
    if missing:
        raise ValidationError(f"unknown client ids: {', '.join(missing)}")
    if len(wanted) > class_session.capacity:
        raise AttendeesOverCapacityError(
            f"cannot add {len(wanted)} attendees; class capacity is {class_session.capacity}"
        )

    await res_repo.delete_for_session(session_id)
    attendees = [
        await res_repo.create(session_id, client_id, checked_in_by_id=admin_id) for client_id in wanted
    ]
    return AttendeeRoster(class_session=class_session, attendees=attendees)
