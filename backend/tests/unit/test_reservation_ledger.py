import asyncio
from datetime import date, datetime, timezone

import pytest
import ulid
from redis.exceptions import RedisError

from studio.domain.access.models import Principal, Role
from studio.domain.errors import (
    AlreadyCancelled,
    CapacityExceeded,
    DuplicateReservation,
    Forbidden,
    InvalidScheduleDate,
    NoActiveMembership,
    NotFound,
)
from studio.domain.reservations.capacity import CapacityAccountant
from studio.domain.reservations.models import ReservationRecord, ReservationStatus
from studio.domain.reservations.outbox import RESERVATION_EVENT_STREAM
from studio.domain.reservations.repository import ReservationRepository
from studio.domain.reservations.service import ReservationLedger
from studio.domain.schedule.repository import ClassTemplateRepository
from studio.infra.redis import redis_client

MONDAY = date(2024, 6, 3)
TUESDAY = date(2024, 6, 4)
NEXT_MONDAY = date(2024, 6, 10)


class YieldingAccountant(CapacityAccountant):
    """Lets every concurrent booking pass the pre-check before any of them writes."""

    async def occupancy(self, template_id, on):
        result = await super().occupancy(template_id, on)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return result


class YieldingReservations(ReservationRepository):
    """Lets every concurrent cancellation read the row before any of them writes."""

    async def get(self, reservation_id):
        record = await super().get(reservation_id)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return record


@pytest.mark.asyncio
async def test_book_seat_creates_active_reservation(seed):
    member = await seed.member()
    template = await seed.template(day_of_week=1, max_capacity=2)

    record = await ReservationLedger().book_seat(member, member.user_id, template.id, MONDAY)
    assert record.status is ReservationStatus.ACTIVE
    assert record.member_id == member.user_id
    assert record.reservation_date == MONDAY

    occupancy = await CapacityAccountant().occupancy(template.id, MONDAY)
    assert occupancy.count == 1
    assert occupancy.available == 1
    assert not occupancy.is_full


@pytest.mark.asyncio
async def test_concurrent_bookings_for_last_seat_admit_exactly_one(seed):
    alice = await seed.member("alice")
    bob = await seed.member("bob")
    template = await seed.template(day_of_week=1, max_capacity=1)
    templates = ClassTemplateRepository()
    reservations = ReservationRepository()
    ledger = ReservationLedger(
        repository=reservations,
        templates=templates,
        accountant=YieldingAccountant(templates, reservations),
    )

    results = await asyncio.gather(
        ledger.book_seat(alice, "alice", template.id, MONDAY),
        ledger.book_seat(bob, "bob", template.id, MONDAY),
        return_exceptions=True,
    )
    booked = [r for r in results if isinstance(r, ReservationRecord)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(booked) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0], CapacityExceeded)
    assert await reservations.count_active(template.id, MONDAY) == 1


@pytest.mark.asyncio
async def test_concurrent_cancellations_admit_exactly_one(seed):
    admin = await seed.admin()
    member = await seed.member()
    template = await seed.template(day_of_week=1, max_capacity=1)
    reservations = YieldingReservations()
    ledger = ReservationLedger(repository=reservations)
    booking = await ledger.book_seat(member, member.user_id, template.id, MONDAY)

    results = await asyncio.gather(
        ledger.cancel_seat(member, booking.id),
        ledger.cancel_seat(admin, booking.id),
        return_exceptions=True,
    )
    cancelled = [r for r in results if isinstance(r, ReservationRecord)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(cancelled) == 1
    assert cancelled[0].status is ReservationStatus.CANCELLED
    assert len(rejected) == 1
    assert isinstance(rejected[0], AlreadyCancelled)

    occupancy = await CapacityAccountant().occupancy(template.id, MONDAY)
    assert occupancy.count == 0
    assert occupancy.available == 1


@pytest.mark.asyncio
async def test_store_guard_rejects_over_capacity_writes_directly(seed):
    await seed.member("alice")
    await seed.member("bob")
    template = await seed.template(day_of_week=1, max_capacity=1)
    repo = ReservationRepository()

    def _record(member_id: str) -> ReservationRecord:
        return ReservationRecord(
            id=str(ulid.new()),
            class_template_id=template.id,
            member_id=member_id,
            reservation_date=MONDAY,
            status=ReservationStatus.ACTIVE,
            created_at=datetime.now(timezone.utc),
        )

    await repo.insert_guarded(_record("alice"))
    with pytest.raises(CapacityExceeded):
        await repo.insert_guarded(_record("bob"))
    with pytest.raises(DuplicateReservation):
        await repo.insert_guarded(_record("alice"))


@pytest.mark.asyncio
async def test_second_booking_by_same_member_is_duplicate(seed):
    member = await seed.member()
    template = await seed.template(day_of_week=1, max_capacity=5)
    ledger = ReservationLedger()

    await ledger.book_seat(member, member.user_id, template.id, MONDAY)
    with pytest.raises(DuplicateReservation):
        await ledger.book_seat(member, member.user_id, template.id, MONDAY)

    # another week is a different occurrence
    await ledger.book_seat(member, member.user_id, template.id, NEXT_MONDAY)


@pytest.mark.asyncio
async def test_rebooking_after_cancellation_is_allowed(seed):
    member = await seed.member()
    template = await seed.template(day_of_week=1, max_capacity=1)
    ledger = ReservationLedger()

    first = await ledger.book_seat(member, member.user_id, template.id, MONDAY)
    await ledger.cancel_seat(member, first.id)
    second = await ledger.book_seat(member, member.user_id, template.id, MONDAY)
    assert second.id != first.id


@pytest.mark.asyncio
async def test_full_class_rejects_booking(seed):
    alice = await seed.member("alice")
    bob = await seed.member("bob")
    template = await seed.template(day_of_week=1, max_capacity=1)
    ledger = ReservationLedger()

    await ledger.book_seat(alice, "alice", template.id, MONDAY)
    with pytest.raises(CapacityExceeded):
        await ledger.book_seat(bob, "bob", template.id, MONDAY)
    assert (await CapacityAccountant().occupancy(template.id, MONDAY)).is_full


@pytest.mark.asyncio
async def test_booking_requires_membership_covering_the_date(seed):
    lapsed = await seed.member("lapsed", start=date(2024, 1, 1), months=1)
    none = await seed.member("none", membership=False)
    template = await seed.template(day_of_week=1)
    ledger = ReservationLedger()

    with pytest.raises(NoActiveMembership):
        await ledger.book_seat(lapsed, "lapsed", template.id, MONDAY)
    with pytest.raises(NoActiveMembership):
        await ledger.book_seat(none, "none", template.id, MONDAY)


@pytest.mark.asyncio
async def test_booking_rejects_wrong_weekday_inactive_and_unknown_class(seed):
    member = await seed.member()
    monday_class = await seed.template(day_of_week=1)
    retired = await seed.template(day_of_week=1, is_active=False)
    ledger = ReservationLedger()

    with pytest.raises(InvalidScheduleDate):
        await ledger.book_seat(member, member.user_id, monday_class.id, TUESDAY)
    with pytest.raises(InvalidScheduleDate):
        await ledger.book_seat(member, member.user_id, retired.id, MONDAY)
    with pytest.raises(NotFound):
        await ledger.book_seat(member, member.user_id, "missing", MONDAY)


@pytest.mark.asyncio
async def test_member_cannot_book_for_someone_else(seed):
    alice = await seed.member("alice")
    await seed.member("bob")
    template = await seed.template(day_of_week=1)

    with pytest.raises(Forbidden) as excinfo:
        await ReservationLedger().book_seat(alice, "bob", template.id, MONDAY)
    assert excinfo.value.redirect_to == "/app/schedule"


@pytest.mark.asyncio
async def test_staff_books_on_behalf_of_member(seed):
    admin = await seed.admin()
    await seed.member("bob")
    await seed.member("no-plan", membership=False)
    template = await seed.template(day_of_week=1)
    ledger = ReservationLedger()

    record = await ledger.book_seat(admin, "bob", template.id, MONDAY)
    assert record.member_id == "bob"
    with pytest.raises(NoActiveMembership):
        await ledger.book_seat(admin, "no-plan", template.id, MONDAY)


@pytest.mark.asyncio
async def test_cancel_rules(seed):
    admin = await seed.admin()
    alice = await seed.member("alice")
    bob = await seed.member("bob")
    template = await seed.template(day_of_week=1, max_capacity=3)
    ledger = ReservationLedger()

    alice_booking = await ledger.book_seat(alice, "alice", template.id, MONDAY)
    bob_booking = await ledger.book_seat(bob, "bob", template.id, MONDAY)

    with pytest.raises(Forbidden):
        await ledger.cancel_seat(bob, alice_booking.id)

    cancelled = await ledger.cancel_seat(alice, alice_booking.id)
    assert cancelled.status is ReservationStatus.CANCELLED
    with pytest.raises(AlreadyCancelled):
        await ledger.cancel_seat(alice, alice_booking.id)

    staff_cancelled = await ledger.cancel_seat(admin, bob_booking.id)
    assert staff_cancelled.status is ReservationStatus.CANCELLED
    with pytest.raises(NotFound):
        await ledger.cancel_seat(admin, "missing")

    assert (await CapacityAccountant().occupancy(template.id, MONDAY)).count == 0


@pytest.mark.asyncio
async def test_listings_are_newest_date_first_and_scoped(seed):
    admin = await seed.admin()
    alice = await seed.member("alice", full_name="Alice")
    bob = await seed.member("bob")
    template = await seed.template(name="Reformer", day_of_week=1, max_capacity=4)
    ledger = ReservationLedger()

    await ledger.book_seat(alice, "alice", template.id, MONDAY)
    await ledger.book_seat(alice, "alice", template.id, NEXT_MONDAY)
    await ledger.book_seat(bob, "bob", template.id, MONDAY)

    mine = await ledger.list_for_member(alice, "alice")
    assert [v.reservation_date for v in mine] == [NEXT_MONDAY, MONDAY]
    assert mine[0].class_name == "Reformer"
    assert mine[0].member_name == "Alice"

    with pytest.raises(Forbidden):
        await ledger.list_for_member(alice, "bob")
    with pytest.raises(Forbidden):
        await ledger.list_all(alice)

    day = await ledger.list_for_date(admin, MONDAY)
    assert {v.member_id for v in day} == {"alice", "bob"}
    assert len(await ledger.list_all(admin)) == 3


@pytest.mark.asyncio
async def test_get_reservation_is_owner_or_staff_only(seed):
    admin = await seed.admin()
    alice = await seed.member("alice")
    bob = await seed.member("bob")
    template = await seed.template(day_of_week=1)
    ledger = ReservationLedger()
    booking = await ledger.book_seat(alice, "alice", template.id, MONDAY)

    assert (await ledger.get(alice, booking.id)).id == booking.id
    assert (await ledger.get(admin, booking.id)).id == booking.id
    with pytest.raises(Forbidden):
        await ledger.get(bob, booking.id)


@pytest.mark.asyncio
async def test_dashboard_stats(seed):
    admin = await seed.admin()
    alice = await seed.member("alice")
    await seed.member("expired", start=date(2024, 1, 1), months=1)
    template = await seed.template(day_of_week=1, max_capacity=4)
    await seed.template(day_of_week=2, is_active=False)
    ledger = ReservationLedger()

    past = await ledger.book_seat(alice, "alice", template.id, MONDAY)
    await ledger.book_seat(alice, "alice", template.id, NEXT_MONDAY)
    assert past.reservation_date < date(2024, 6, 5)

    stats = await ledger.stats(admin, date(2024, 6, 5))
    assert stats.active_classes == 1
    assert stats.active_memberships == 1
    assert stats.upcoming_reservations == 1

    with pytest.raises(Forbidden):
        await ledger.stats(alice, date(2024, 6, 5))


@pytest.mark.asyncio
async def test_booking_and_cancellation_append_to_event_stream(seed, fake_redis):
    member = await seed.member()
    template = await seed.template(day_of_week=1)
    ledger = ReservationLedger()

    record = await ledger.book_seat(member, member.user_id, template.id, MONDAY)
    await ledger.cancel_seat(member, record.id)

    entries = await fake_redis.xrange(RESERVATION_EVENT_STREAM)
    events = [fields["event"] for _, fields in entries]
    assert events == ["reservation_created", "reservation_cancelled"]
    assert entries[0][1]["reservation_id"] == record.id
    assert entries[0][1]["reservation_date"] == "2024-06-03"
    assert entries[0][1]["actor_id"] == member.user_id


@pytest.mark.asyncio
async def test_stream_failure_does_not_undo_booking(seed, monkeypatch):
    member = await seed.member()
    template = await seed.template(day_of_week=1)

    async def _broken(*args, **kwargs):
        raise RedisError("stream down")

    monkeypatch.setattr(redis_client, "xadd_capped", _broken)
    record = await ReservationLedger().book_seat(member, member.user_id, template.id, MONDAY)
    assert (await ReservationRepository().get(record.id)).is_active


@pytest.mark.asyncio
async def test_principal_without_role_is_sent_to_login(seed):
    template = await seed.template(day_of_week=1)
    with pytest.raises(Forbidden) as excinfo:
        await ReservationLedger().book_seat(Principal(user_id="ghost", role=None), "ghost", template.id, MONDAY)
    assert excinfo.value.redirect_to == "/login"


@pytest.mark.asyncio
async def test_staff_role_has_no_own_booking_shortcut(seed):
    # staff booking for themselves still needs a membership
    await seed.admin("coach")
    template = await seed.template(day_of_week=1)
    with pytest.raises(NoActiveMembership):
        await ReservationLedger().book_seat(Principal("coach", Role.ADMIN), "coach", template.id, MONDAY)
