from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol

from ..models import Admin, ClassSession, Client, Reservation


class ClassSessionRepository(Protocol):
    async def get(self, session_id: str) -> ClassSession | None: ...

    async def get_for_update(self, session_id: str) -> ClassSession | None: ...

    async def get_with_participants(self, session_id: str) -> ClassSession | None: ...

    async def list_overlapping(self, start: datetime, end: datetime) -> Iterable[tuple[ClassSession, int]]: ...

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
    ) -> ClassSession: ...

    async def update(self, class_session: ClassSession) -> ClassSession: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: str) -> Reservation | None: ...

    async def find_for_client(self, session_id: str, client_id: str) -> Reservation | None: ...

    async def count_for_session(self, session_id: str) -> int: ...

    async def session_ids_reserved_by(self, client_id: str, session_ids: Iterable[str]) -> set[str]: ...

    async def create(
        self,
        session_id: str,
        client_id: str,
        checked_in_by_id: str | None = None,
    ) -> Reservation: ...

    async def delete(self, reservation: Reservation) -> None: ...

    async def delete_for_session(self, session_id: str) -> None: ...

    async def list_by_client(
        self,
        client_id: str,
        starting_after: datetime | None = None,
    ) -> list[tuple[Reservation, ClassSession]]: ...


class MemberRepository(Protocol):
    async def get_client(self, client_id: str) -> Client | None: ...

    async def existing_client_ids(self, client_ids: Iterable[str]) -> set[str]: ...

    async def get_admin(self, admin_id: str) -> Admin | None: ...
