from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_client_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyClassSessionRepository, SqlAlchemyReservationRepository
from ..schemas import CancellationResponse, MyReservationRead, MyReservationsResponse
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failed, http_error

router = APIRouter(prefix="", tags=["reservations"])


@router.delete("/reservations/{reservation_id}", response_model=CancellationResponse)
async def cancel_reservation(
    reservation_id: str,
    session: AsyncSession = Depends(get_session),
    client_id: str = Depends(get_current_client_id),
) -> CancellationResponse:
    session_repo = SqlAlchemyClassSessionRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            outcome = await reservation_usecase.cancel_reservation(
                session_repo,
                res_repo,
                reservation_id=reservation_id,
                client_id=client_id,
            )
        except DomainError as exc:
            raise http_error(exc) from exc

    try:
        emit_audit_log(
            action="reservation.cancelled",
            initiator="client",
            class_id=outcome.class_session.id,
            reservation_id=reservation_id,
            client_id=client_id,
            reserved_count=outcome.reserved_count,
            status_from="reserved",
            status_to=outcome.user_status,
        )
    except RuntimeError as exc:
        raise audit_failed() from exc
    return CancellationResponse.from_outcome(outcome)


@router.get("/me/reservations", response_model=MyReservationsResponse)
async def list_my_reservations(
    upcoming_only: bool = Query(default=True),
    session: AsyncSession = Depends(get_session),
    client_id: str = Depends(get_current_client_id),
) -> MyReservationsResponse:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_client_reservations(
        res_repo,
        client_id=client_id,
        upcoming_only=upcoming_only,
    )
    return MyReservationsResponse(
        reservations=[MyReservationRead.from_db(reservation=res, class_session=cs) for res, cs in rows]
    )
