from datetime import timedelta

import pytest
from conftest import FakeClassSessionRepo, FakeReservationRepo, InMemoryStore, utc_now_naive
from gym_booking.domain.errors import (
    CancellationCutoffPassedError,
    ClassFullError,
    ClassNotFoundError,
    DuplicateReservationError,
    ForbiddenError,
    ReservationNotFoundError,
    ReservationsClosedError,
    WaitlistUnavailableError,
)
from gym_booking.domain.services import UserStatus
from gym_booking.usecases import reservations as uc


@pytest.mark.asyncio
async def test_reserve_creates_reservation_and_recounts(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=2)
    alice = store.add_client("Alice")

    outcome = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=alice.id)

    assert outcome.created is True
    assert outcome.reserved_count == 1
    assert outcome.user_status == UserStatus.RESERVED
    assert outcome.waitlist_count == 0
    assert outcome.reservation_id in store.reservations
    assert session_repo.locked == [cls.id]


@pytest.mark.asyncio
async def test_reserve_is_idempotent_per_client(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=2)
    alice = store.add_client("Alice")

    first = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=alice.id)
    second = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=alice.id)

    assert second.reservation_id == first.reservation_id
    assert second.created is False
    assert second.reserved_count == first.reserved_count == 1
    assert len(res_repo.created) == 1


@pytest.mark.asyncio
async def test_reserve_unknown_class(session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo) -> None:
    with pytest.raises(ClassNotFoundError):
        await uc.reserve(session_repo, res_repo, session_id="missing", client_id="cli1")


@pytest.mark.asyncio
async def test_reserve_full_and_waitlist_rejections(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=1)
    store.add_reservation(cls, store.add_client("Alice"))
    bob = store.add_client("Bob")

    with pytest.raises(ClassFullError):
        await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=bob.id)
    with pytest.raises(WaitlistUnavailableError):
        await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=bob.id, wants_waitlist=True)
    assert store.count_for(cls.id) == 1


@pytest.mark.asyncio
async def test_reserve_and_cancel_rejected_once_class_started(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=5, starts_in=timedelta(seconds=-1))
    alice = store.add_client("Alice")
    bob = store.add_client("Bob")
    reservation = store.add_reservation(cls, alice)

    with pytest.raises(ReservationsClosedError):
        await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=bob.id)
    # Repeat requests from an existing holder are rejected too.
    with pytest.raises(ReservationsClosedError):
        await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=alice.id)
    with pytest.raises(CancellationCutoffPassedError):
        await uc.cancel_reservation(session_repo, res_repo, reservation_id=reservation.id, client_id=alice.id)
    with pytest.raises(CancellationCutoffPassedError):
        await uc.cancel_current_reservation(session_repo, res_repo, session_id=cls.id, client_id=alice.id)
    assert reservation.id in store.reservations


@pytest.mark.asyncio
async def test_capacity_two_scenario(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=2)
    a, b, c = store.add_client("A"), store.add_client("B"), store.add_client("C")

    res_a = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=a.id)
    assert res_a.reserved_count == 1
    res_b = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=b.id)
    assert res_b.reserved_count == 2
    with pytest.raises(ClassFullError):
        await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=c.id)

    cancelled = await uc.cancel_reservation(
        session_repo, res_repo, reservation_id=res_a.reservation_id, client_id=a.id
    )
    assert cancelled.reserved_count == 1
    assert cancelled.user_status == UserStatus.NONE

    res_c = await uc.reserve(session_repo, res_repo, session_id=cls.id, client_id=c.id)
    assert res_c.created is True
    assert res_c.reserved_count == 2


@pytest.mark.asyncio
async def test_cancel_by_id_checks_ownership(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class()
    alice, bob = store.add_client("Alice"), store.add_client("Bob")
    reservation = store.add_reservation(cls, alice)

    with pytest.raises(ForbiddenError):
        await uc.cancel_reservation(session_repo, res_repo, reservation_id=reservation.id, client_id=bob.id)
    assert reservation.id in store.reservations


@pytest.mark.asyncio
async def test_cancel_missing_reservation(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class()
    alice = store.add_client("Alice")
    with pytest.raises(ReservationNotFoundError):
        await uc.cancel_reservation(session_repo, res_repo, reservation_id="nope", client_id=alice.id)
    with pytest.raises(ReservationNotFoundError):
        await uc.cancel_current_reservation(session_repo, res_repo, session_id=cls.id, client_id=alice.id)


@pytest.mark.asyncio
async def test_cancel_current_removes_only_callers_row(
    store: InMemoryStore, session_repo: FakeClassSessionRepo, res_repo: FakeReservationRepo
) -> None:
    cls = store.add_class(capacity=3)
    alice, bob = store.add_client("Alice"), store.add_client("Bob")
    store.add_reservation(cls, alice)
    kept = store.add_reservation(cls, bob)

    outcome = await uc.cancel_current_reservation(session_repo, res_repo, session_id=cls.id, client_id=alice.id)

    assert outcome.reserved_count == 1
    assert list(store.reservations) == [kept.id]


class RacingReservationRepo(FakeReservationRepo):
    """Simulates another request from the same client committing first."""

    def __init__(self, store: InMemoryStore, winner_client_id: str) -> None:
        super().__init__(store)
        self.winner_client_id = winner_client_id
        self.raced = False

    async def create(self, session_id: str, client_id: str):  # type: ignore[override]
        if not self.raced:
            self.raced = True
            self.store.add_reservation(self.store.sessions[session_id], self.store.clients[self.winner_client_id])
            if client_id == self.winner_client_id:
                raise DuplicateReservationError()
        return await super().create(session_id, client_id)


@pytest.mark.asyncio
async def test_duplicate_insert_resolves_to_existing_reservation(
    store: InMemoryStore, session_repo: FakeClassSessionRepo
) -> None:
    cls = store.add_class(capacity=2)
    alice = store.add_client("Alice")
    repo = RacingReservationRepo(store, alice.id)

    outcome = await uc.reserve(session_repo, repo, session_id=cls.id, client_id=alice.id)

    assert outcome.created is False
    assert outcome.reserved_count == 1
    assert store.reservations[outcome.reservation_id].client_id == alice.id


@pytest.mark.asyncio
async def test_over_capacity_after_insert_raises_full(store: InMemoryStore, session_repo: FakeClassSessionRepo) -> None:
    cls = store.add_class(capacity=1)
    other = store.add_client("Other")
    bob = store.add_client("Bob")
    repo = RacingReservationRepo(store, other.id)

    with pytest.raises(ClassFullError):
        await uc.reserve(session_repo, repo, session_id=cls.id, client_id=bob.id)


@pytest.mark.asyncio
async def test_list_client_reservations_filters_past(
    store: InMemoryStore, res_repo: FakeReservationRepo
) -> None:
    alice = store.add_client("Alice")
    past = store.add_class(starts_in=timedelta(days=-2))
    later = store.add_class(starts_in=timedelta(days=3))
    sooner = store.add_class(starts_in=timedelta(hours=3))
    for cls in (past, later, sooner):
        store.add_reservation(cls, alice)

    upcoming = await uc.list_client_reservations(res_repo, client_id=alice.id, now=utc_now_naive())
    assert [cs.id for _, cs in upcoming] == [sooner.id, later.id]

    everything = await uc.list_client_reservations(res_repo, client_id=alice.id, upcoming_only=False)
    assert [cs.id for _, cs in everything] == [past.id, sooner.id, later.id]
