from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Iterable, Optional

import pytest
from gym_booking.domain.errors import DuplicateReservationError
from gym_booking.models import Admin, ClassSession, Client, Reservation


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryStore:
    """Shared state behind the fake repositories; mirrors the four tables."""

    def __init__(self) -> None:
        self.admins: dict[str, Admin] = {}
        self.clients: dict[str, Client] = {}
        self.sessions: dict[str, ClassSession] = {}
        self.reservations: dict[str, Reservation] = {}
        self._ids = count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def add_admin(self, name: str = "Coach") -> Admin:
        admin = Admin(
            id=self.next_id("adm"),
            name=name,
            email=f"{name.lower()}@example.com",
            is_active=True,
            created_at=utc_now_naive(),
        )
        self.admins[admin.id] = admin
        return admin

    def add_client(self, name: str, *, active: bool = True) -> Client:
        client = Client(id=self.next_id("cli"), name=name, is_active=active, created_at=utc_now_naive())
        self.clients[client.id] = client
        return client

    def add_class(
        self,
        *,
        capacity: int = 2,
        starts_in: timedelta = timedelta(days=1),
        duration: timedelta = timedelta(hours=1),
        title: str = "Spin",
        instructor: Optional[Admin] = None,
    ) -> ClassSession:
        instructor = instructor or next(iter(self.admins.values()), None) or self.add_admin()
        start = utc_now_naive() + starts_in
        class_session = ClassSession(
            id=self.next_id("cls"),
            title=title,
            description=None,
            location="Studio A",
            capacity=capacity,
            start_time=start,
            end_time=start + duration,
            is_cancelled=False,
            instructor_id=instructor.id,
            instructor=instructor,
        )
        self.sessions[class_session.id] = class_session
        return class_session

    def add_reservation(self, class_session: ClassSession, client: Client) -> Reservation:
        reservation = Reservation(
            id=self.next_id("res"),
            session_id=class_session.id,
            client_id=client.id,
            created_at=utc_now_naive(),
        )
        self.reservations[reservation.id] = reservation
        return reservation

    def count_for(self, session_id: str) -> int:
        return sum(1 for r in self.reservations.values() if r.session_id == session_id)


class FakeClassSessionRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.locked: list[str] = []

    async def get(self, session_id: str) -> ClassSession | None:
        return self.store.sessions.get(session_id)

    async def get_for_update(self, session_id: str) -> ClassSession | None:
        self.locked.append(session_id)
        return self.store.sessions.get(session_id)

    async def get_with_participants(self, session_id: str) -> ClassSession | None:
        class_session = self.store.sessions.get(session_id)
        if class_session is None:
            return None
        rows = [r for r in self.store.reservations.values() if r.session_id == session_id]
        for reservation in rows:
            reservation.client = self.store.clients[reservation.client_id]
        class_session.reservations = rows
        return class_session

    async def list_overlapping(self, start: datetime, end: datetime) -> list[tuple[ClassSession, int]]:
        rows = [cs for cs in self.store.sessions.values() if cs.start_time < end and cs.end_time > start]
        rows.sort(key=lambda cs: cs.start_time)
        return [(cs, self.store.count_for(cs.id)) for cs in rows]

    async def create(self, **fields: object) -> ClassSession:
        class_session = ClassSession(id=self.store.next_id("cls"), **fields)
        self.store.sessions[class_session.id] = class_session
        return class_session

    async def update(self, class_session: ClassSession) -> ClassSession:
        self.store.sessions[class_session.id] = class_session
        return class_session


class FakeReservationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.created: list[Reservation] = []

    async def get(self, reservation_id: str) -> Reservation | None:
        return self.store.reservations.get(reservation_id)

    async def find_for_client(self, session_id: str, client_id: str) -> Reservation | None:
        for reservation in self.store.reservations.values():
            if reservation.session_id == session_id and reservation.client_id == client_id:
                return reservation
        return None

    async def count_for_session(self, session_id: str) -> int:
        return self.store.count_for(session_id)

    async def session_ids_reserved_by(self, client_id: str, session_ids: Iterable[str]) -> set[str]:
        wanted = set(session_ids)
        return {r.session_id for r in self.store.reservations.values() if r.client_id == client_id} & wanted

    async def create(
        self,
        session_id: str,
        client_id: str,
        checked_in_by_id: str | None = None,
    ) -> Reservation:
        if await self.find_for_client(session_id, client_id) is not None:
            raise DuplicateReservationError()
        reservation = Reservation(
            id=self.store.next_id("res"),
            session_id=session_id,
            client_id=client_id,
            checked_in_by_id=checked_in_by_id,
            created_at=utc_now_naive(),
        )
        self.store.reservations[reservation.id] = reservation
        self.created.append(reservation)
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        self.store.reservations.pop(reservation.id, None)

    async def delete_for_session(self, session_id: str) -> None:
        for reservation_id in [r.id for r in self.store.reservations.values() if r.session_id == session_id]:
            del self.store.reservations[reservation_id]

    async def list_by_client(
        self,
        client_id: str,
        starting_after: datetime | None = None,
    ) -> list[tuple[Reservation, ClassSession]]:
        rows = []
        for reservation in self.store.reservations.values():
            if reservation.client_id != client_id:
                continue
            class_session = self.store.sessions[reservation.session_id]
            if starting_after is not None and class_session.start_time <= starting_after:
                continue
            rows.append((reservation, class_session))
        rows.sort(key=lambda row: row[1].start_time)
        return rows


class FakeMemberRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_client(self, client_id: str) -> Client | None:
        return self.store.clients.get(client_id)

    async def existing_client_ids(self, client_ids: Iterable[str]) -> set[str]:
        return {client_id for client_id in client_ids if client_id in self.store.clients}

    async def get_admin(self, admin_id: str) -> Admin | None:
        return self.store.admins.get(admin_id)


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    def __init__(self) -> None:
        self.began = 0

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        self.began += 1
        return self


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session_repo(store: InMemoryStore) -> FakeClassSessionRepo:
    return FakeClassSessionRepo(store)


@pytest.fixture
def res_repo(store: InMemoryStore) -> FakeReservationRepo:
    return FakeReservationRepo(store)


@pytest.fixture
def members(store: InMemoryStore) -> FakeMemberRepo:
    return FakeMemberRepo(store)
