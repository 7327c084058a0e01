from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Tuple, cast

from sqlalchemy import Select, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from ..domain.errors import DuplicateReservationError
from ..domain.repositories import ClassSessionRepository, MemberRepository, ReservationRepository
from ..models import Admin, ClassSession, Client, Reservation
from ..utils.time import utc_now_naive


class SqlAlchemyClassSessionRepository(ClassSessionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, session_id: str) -> ClassSession | None:
        return await self.session.get(ClassSession, session_id)

    async def get_for_update(self, session_id: str) -> ClassSession | None:
        result = await self.session.scalar(
            select(ClassSession).where(ClassSession.id == session_id).with_for_update()
        )
        return result if isinstance(result, ClassSession) else None

    async def get_with_participants(self, session_id: str) -> ClassSession | None:
        stmt = (
            select(ClassSession)
            .options(
                joinedload(ClassSession.instructor),
                selectinload(ClassSession.reservations).joinedload(Reservation.client),
            )
            .where(ClassSession.id == session_id)
        )
        return await self.session.scalar(stmt)

    async def list_overlapping(self, start: datetime, end: datetime) -> List[Tuple[ClassSession, int]]:
        stmt: Select[Tuple[ClassSession, Any]] = (
            select(ClassSession, func.count(Reservation.id).label("reserved"))
            .outerjoin(Reservation, Reservation.session_id == ClassSession.id)
            .options(selectinload(ClassSession.instructor))
            .where(
                ClassSession.start_time < end,
                ClassSession.end_time > start,
            )
            .group_by(ClassSession.id)
            .order_by(ClassSession.start_time.asc())
        )
        rows = await self.session.execute(stmt)
        return [(class_session, int(reserved)) for class_session, reserved in rows.all()]

    async def create(
        self,
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
        class_session = ClassSession(
            title=title,
            description=description,
            location=location,
            capacity=capacity,
            start_time=start_time,
            end_time=end_time,
            is_cancelled=is_cancelled,
            instructor_id=instructor_id,
        )
        self.session.add(class_session)
        await self.session.flush()
        return class_session

    async def update(self, class_session: ClassSession) -> ClassSession:
        self.session.add(class_session)
        await self.session.flush()
        return class_session


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: str) -> Reservation | None:
        return await self.session.get(Reservation, reservation_id)

    async def find_for_client(self, session_id: str, client_id: str) -> Reservation | None:
        stmt = select(Reservation).where(
            Reservation.session_id == session_id,
            Reservation.client_id == client_id,
        )
        return await self.session.scalar(stmt)

    async def count_for_session(self, session_id: str) -> int:
        stmt = select(func.count(Reservation.id)).where(Reservation.session_id == session_id)
        return int(await self.session.scalar(stmt) or 0)

    async def session_ids_reserved_by(self, client_id: str, session_ids: Iterable[str]) -> set[str]:
        ids = list(session_ids)
        if not ids:
            return set()
        stmt = select(Reservation.session_id).where(
            Reservation.client_id == client_id,
            Reservation.session_id.in_(ids),
        )
        return set((await self.session.scalars(stmt)).all())

    async def create(
        self,
        session_id: str,
        client_id: str,
        checked_in_by_id: str | None = None,
    ) -> Reservation:
        reservation = Reservation(
            session_id=session_id,
            client_id=client_id,
            checked_in_by_id=checked_in_by_id,
            created_at=utc_now_naive(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(reservation)
                await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateReservationError() from exc
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        await self.session.delete(reservation)
        await self.session.flush()

    async def delete_for_session(self, session_id: str) -> None:
        await self.session.execute(delete(Reservation).where(Reservation.session_id == session_id))

    async def list_by_client(
        self,
        client_id: str,
        starting_after: datetime | None = None,
    ) -> List[Tuple[Reservation, ClassSession]]:
        stmt: Select[Tuple[Reservation, ClassSession]] = (
            select(Reservation, ClassSession)
            .join(ClassSession, Reservation.session_id == ClassSession.id)
            .where(Reservation.client_id == client_id)
            .order_by(ClassSession.start_time.asc())
        )
        if starting_after is not None:
            stmt = stmt.where(ClassSession.start_time > starting_after)
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, ClassSession]], list(rows.all()))


class SqlAlchemyMemberRepository(MemberRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_client(self, client_id: str) -> Client | None:
        return await self.session.get(Client, client_id)

    async def existing_client_ids(self, client_ids: Iterable[str]) -> set[str]:
        ids = list(client_ids)
        if not ids:
            return set()
        stmt = select(Client.id).where(Client.id.in_(ids))
        return set((await self.session.scalars(stmt)).all())

    async def get_admin(self, admin_id: str) -> Admin | None:
        return await self.session.get(Admin, admin_id)
