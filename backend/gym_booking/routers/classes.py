import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_client_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyClassSessionRepository, SqlAlchemyReservationRepository
from ..schemas import (
    CancellationResponse,
    ClassDetailRead,
    ClassDetailResponse,
    ClassListResponse,
    ClassSummary,
    ReservationCreate,
    ReservationResponse,
)
from ..usecases import classes as class_usecase
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import parse_iso_datetime
from .errors import audit_failed, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/classes", tags=["classes"])


@router.get("", response_model=ClassListResponse)
async def list_classes(
    from_: Optional[str] = Query(default=None, alias="from", description="Window start (ISO 8601)"),
    to: Optional[str] = Query(default=None, description="Window end, exclusive (ISO 8601)"),
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    session: AsyncSession = Depends(get_session),
) -> ClassListResponse:
    if not from_ or not to:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query params 'from' and 'to' are required (ISO)",
        )
    try:
        start = parse_iso_datetime(from_)
        end = parse_iso_datetime(to)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'from' and 'to' must be valid ISO date strings",
        ) from exc

    rows = await class_usecase.list_classes(
        SqlAlchemyClassSessionRepository(session),
        SqlAlchemyReservationRepository(session),
        start=start,
        end=end,
        client_id=client_id,
    )
    timezone = get_settings().display_timezone
    return ClassListResponse(classes=[ClassSummary.from_listing(row, timezone=timezone) for row in rows])


@router.get("/{class_id}", response_model=ClassDetailResponse)
async def get_class(
    class_id: str,
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    session: AsyncSession = Depends(get_session),
) -> ClassDetailResponse:
    try:
        detail = await class_usecase.get_class_detail(
            SqlAlchemyClassSessionRepository(session),
            SqlAlchemyReservationRepository(session),
            session_id=class_id,
            client_id=client_id,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    timezone = get_settings().display_timezone
    return ClassDetailResponse(class_=ClassDetailRead.from_detail(detail, timezone=timezone))


@router.post("/{class_id}/reservations", response_model=ReservationResponse)
async def reserve_class(
    class_id: str,
    payload: Optional[ReservationCreate] = Body(default=None),
    session: AsyncSession = Depends(get_session),
    client_id: str = Depends(get_current_client_id),
) -> ReservationResponse:
    session_repo = SqlAlchemyClassSessionRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    wants_waitlist = payload.waitlist if payload is not None else False
    async with session.begin():
        try:
            outcome = await reservation_usecase.reserve(
                session_repo,
                res_repo,
                session_id=class_id,
                client_id=client_id,
                wants_waitlist=wants_waitlist,
            )
        except DomainError as exc:
            logger.info("reserve rejected class_id=%s client_id=%s reason=%s", class_id, client_id, exc.message)
            raise http_error(exc) from exc

    if outcome.created:
        try:
            emit_audit_log(
                action="reservation.created",
                initiator="client",
                class_id=class_id,
                reservation_id=outcome.reservation_id,
                client_id=client_id,
                reserved_count=outcome.reserved_count,
                capacity=outcome.class_session.capacity,
                status_from="none",
                status_to=outcome.user_status,
            )
        except RuntimeError as exc:
            raise audit_failed() from exc
    return ReservationResponse.from_outcome(outcome)


@router.delete("/{class_id}/reservations/current", response_model=CancellationResponse)
async def cancel_current_reservation(
    class_id: str,
    session: AsyncSession = Depends(get_session),
    client_id: str = Depends(get_current_client_id),
) -> CancellationResponse:
    session_repo = SqlAlchemyClassSessionRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            outcome = await reservation_usecase.cancel_current_reservation(
                session_repo,
                res_repo,
                session_id=class_id,
                client_id=client_id,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="reservation.cancelled",
            initiator="client",
            class_id=class_id,
            reservation_id=outcome.reservation.id,
            client_id=client_id,
            reserved_count=outcome.reserved_count,
            status_from="reserved",
            status_to=outcome.user_status,
        )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return CancellationResponse.from_outcome(outcome)
