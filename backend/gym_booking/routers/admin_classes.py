from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_admin_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyClassSessionRepository,
    SqlAlchemyMemberRepository,
    SqlAlchemyReservationRepository,
)
from ..schemas import (
    AdminAttendeesResponse,
    AdminClassListResponse,
    AdminClassRead,
    AdminClassResponse,
    AttendeesUpdate,
    ClassCreate,
    ClassUpdate,
    RecurringClassCreate,
)
from ..usecases import classes as class_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_utc_naive
from .errors import audit_failed, http_error

router = APIRouter(prefix="/admin/classes", tags=["admin"], dependencies=[Depends(get_current_admin_id)])


def _require_aware(*values: datetime | None) -> None:
    for value in values:
        if value is not None and value.tzinfo is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="datetimes must have timezone")


@router.post("", response_model=AdminClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    session: AsyncSession = Depends(get_session),
    admin_id: str = Depends(get_current_admin_id),
) -> AdminClassResponse:
    _require_aware(payload.start_time, payload.end_time)
    session_repo = SqlAlchemyClassSessionRepository(session)
    async with session.begin():
        try:
            class_session = await class_usecase.create_class(
                session_repo,
                title=payload.title,
                description=payload.description,
                location=payload.location,
                capacity=payload.capacity,
                start_time=to_utc_naive(payload.start_time),
                end_time=to_utc_naive(payload.end_time),
                is_cancelled=payload.is_cancelled,
                instructor_id=admin_id,
            )
        except DomainError as exc:
            raise http_error(exc) from exc
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="class could not be stored") from exc

    try:
        emit_audit_log(
            action="class.created",
            initiator="admin",
            class_id=class_session.id,
            admin_id=admin_id,
            capacity=class_session.capacity,
        )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return AdminClassResponse(class_=AdminClassRead.from_db(class_session=class_session))


@router.post("/recurring", response_model=AdminClassListResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_classes(
    payload: RecurringClassCreate,
    session: AsyncSession = Depends(get_session),
    admin_id: str = Depends(get_current_admin_id),
) -> AdminClassListResponse:
    session_repo = SqlAlchemyClassSessionRepository(session)
    async with session.begin():
        try:
            created = await class_usecase.create_recurring_classes(
                session_repo,
                title=payload.title,
                description=payload.description,
                location=payload.location,
                capacity=payload.capacity,
                days=payload.days,
                start_date=payload.start_date,
                end_date=payload.end_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                is_cancelled=payload.is_cancelled,
                instructor_id=admin_id,
                tz_name=get_settings().display_timezone,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    try:
        for class_session in created:
            emit_audit_log(
                action="class.created",
                initiator="admin",
                class_id=class_session.id,
                admin_id=admin_id,
                capacity=class_session.capacity,
                extra={"recurring": True},
            )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return AdminClassListResponse(
        classes=[AdminClassRead.from_db(class_session=cs) for cs in created],
        message=f"{len(created)} recurring classes created successfully",
    )


@router.patch("/{class_id}", response_model=AdminClassResponse)
async def update_class(
    class_id: str,
    payload: ClassUpdate,
    session: AsyncSession = Depends(get_session),
    admin_id: str = Depends(get_current_admin_id),
) -> AdminClassResponse:
    _require_aware(payload.start_time, payload.end_time)
    session_repo = SqlAlchemyClassSessionRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            class_session = await class_usecase.update_class(
                session_repo,
                res_repo,
                session_id=class_id,
                title=payload.title,
                description=payload.description,
                location=payload.location,
                capacity=payload.capacity,
                start_time=to_utc_naive(payload.start_time) if payload.start_time else None,
                end_time=to_utc_naive(payload.end_time) if payload.end_time else None,
                is_cancelled=payload.is_cancelled,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="class.updated",
            initiator="admin",
            class_id=class_session.id,
            admin_id=admin_id,
            capacity=class_session.capacity,
            extra={"fields": sorted(payload.model_dump(exclude_unset=True))},
        )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return AdminClassResponse(class_=AdminClassRead.from_db(class_session=class_session))


@router.put("/{class_id}/attendees", response_model=AdminAttendeesResponse)
async def set_attendees(
    class_id: str,
    payload: AttendeesUpdate,
    session: AsyncSession = Depends(get_session),
    admin_id: str = Depends(get_current_admin_id),
) -> AdminAttendeesResponse:
    session_repo = SqlAlchemyClassSessionRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    members = SqlAlchemyMemberRepository(session)
    async with session.begin():
        try:
            roster = await class_usecase.set_attendees(
                session_repo,
                res_repo,
                members,
                session_id=class_id,
                client_ids=payload.client_ids,
                admin_id=admin_id,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="class.updated",
            initiator="admin",
            class_id=roster.class_session.id,
            admin_id=admin_id,
            reserved_count=len(roster.attendees),
            capacity=roster.class_session.capacity,
            extra={"fields": ["attendees"]},
        )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return AdminAttendeesResponse.from_roster(roster)
