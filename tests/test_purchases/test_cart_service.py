"""Tests for django_clubtickets.purchases.services.cart."""

from datetime import date, datetime, timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from django_clubtickets.clock import FixedClock
from django_clubtickets.clubs.models import Club, Ticket
from django_clubtickets.purchases.errors import (
    AuthorizationError,
    ErrorCode,
    InputError,
    NotFoundError,
    PolicyViolation,
)
from django_clubtickets.purchases.models import CartLine
from django_clubtickets.purchases.owners import Anonymous, Authenticated
from django_clubtickets.purchases.services.cart import CartService
from django_clubtickets.purchases.stores.django_store import DjangoCartStore

User = get_user_model()

# Friday 2025-06-20 in Bogota.
TODAY = date(2025, 6, 20)
NEXT_FRIDAY = date(2025, 6, 27)
NEXT_MONDAY = date(2025, 6, 23)


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def service():
    return CartService(clock=FixedClock(TODAY))


@pytest.fixture
def club():
    return Club.objects.create(name="La Terraza", slug="la-terraza", open_days=["Friday"])


@pytest.fixture
def other_club():
    return Club.objects.create(name="El Sotano", slug="el-sotano", open_days=["Friday", "Saturday"])


@pytest.fixture
def cover(club):
    return Ticket.objects.create(club=club, name="General cover", price=5000, max_per_person=4)


@pytest.fixture
def user():
    return User.objects.create_user(username="cartuser", email="cart@example.com", password="testpass123")


@pytest.fixture
def owner(user):
    return Authenticated(user_id=user.pk)


@pytest.fixture
def guest():
    return Anonymous(session_key="anon-session-1")


def _code(exc_info):
    return exc_info.value.code


# =============================================================================
# TestAddLine
# =============================================================================


@pytest.mark.django_db
class TestAddLine:
    def test_adds_standing_cover_on_open_day(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 2)

        assert line.ticket == cover
        assert line.date == NEXT_FRIDAY
        assert line.quantity == 2
        assert line.owner == owner

    def test_rejects_closed_day(self, service, owner, cover):
        with pytest.raises(PolicyViolation, match="not open on Monday") as exc_info:
            service.add_line(owner, cover.pk, NEXT_MONDAY, 2)

        assert _code(exc_info) == ErrorCode.CLUB_CLOSED
        assert not CartLine.objects.exists()

    def test_accepts_iso_date_string(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, "2025-06-27", 1)

        assert line.date == NEXT_FRIDAY

    def test_accepts_today(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, TODAY, 1)

        assert line.date == TODAY

    def test_increments_existing_line(self, service, owner, cover):
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 2)

        assert line.quantity == 3
        assert CartLine.objects.filter(user_id=owner.user_id).count() == 1

    def test_anonymous_owner(self, service, guest, cover):
        line = service.add_line(guest, cover.pk, NEXT_FRIDAY, 1)

        assert line.session_key == "anon-session-1"
        assert line.user_id is None

    def test_rejects_past_date(self, service, owner, cover):
        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, cover.pk, TODAY - timedelta(days=1), 1)

        assert _code(exc_info) == ErrorCode.PAST_DATE

    def test_rejects_missing_owner(self, service, cover):
        with pytest.raises(InputError) as exc_info:
            service.add_line(None, cover.pk, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.MISSING_IDENTITY

    @pytest.mark.parametrize("quantity", [0, -1, "2", 1.5, True], ids=["zero", "negative", "str", "float", "bool"])
    def test_rejects_invalid_quantity(self, service, owner, cover, quantity):
        with pytest.raises(InputError) as exc_info:
            service.add_line(owner, cover.pk, NEXT_FRIDAY, quantity)

        assert _code(exc_info) == ErrorCode.INVALID_INPUT

    @pytest.mark.parametrize(
        "value",
        [None, "", "27/06/2025", datetime(2025, 6, 27, 22, 0)],
        ids=["none", "empty", "bad-format", "datetime"],
    )
    def test_rejects_invalid_date(self, service, owner, cover, value):
        with pytest.raises(InputError) as exc_info:
            service.add_line(owner, cover.pk, value, 1)

        assert _code(exc_info) == ErrorCode.INVALID_INPUT

    def test_rejects_missing_ticket_id(self, service, owner):
        with pytest.raises(InputError) as exc_info:
            service.add_line(owner, None, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.INVALID_INPUT

    def test_rejects_unknown_ticket(self, service, owner):
        with pytest.raises(NotFoundError) as exc_info:
            service.add_line(owner, 999_999, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.TICKET_NOT_FOUND

    def test_rejects_inactive_ticket(self, service, owner, cover):
        Ticket.objects.filter(pk=cover.pk).update(is_active=False)

        with pytest.raises(NotFoundError) as exc_info:
            service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.TICKET_INACTIVE


# =============================================================================
# TestTicketDates
# =============================================================================


@pytest.mark.django_db
class TestTicketDates:
    def test_free_ticket_only_on_its_date(self, service, owner, club):
        free = Ticket.objects.create(club=club, name="Guest list", price=0, available_date=date(2025, 7, 1))

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, free.pk, date(2025, 7, 2), 1)
        assert _code(exc_info) == ErrorCode.DATE_MISMATCH

        line = service.add_line(owner, free.pk, date(2025, 7, 1), 1)
        assert line.date == date(2025, 7, 1)

    def test_free_ticket_without_date(self, service, owner, club):
        free = Ticket.objects.create(club=club, name="Guest list", price=0)

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, free.pk, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.NO_DATE_ASSIGNED

    def test_dated_ticket_only_on_its_date(self, service, owner, club):
        gala = Ticket.objects.create(club=club, name="Gala", price=20000, available_date=NEXT_MONDAY)

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, gala.pk, NEXT_FRIDAY, 1)
        assert _code(exc_info) == ErrorCode.DATE_MISMATCH

        # Dated tickets ignore opening days.
        assert service.add_line(owner, gala.pk, NEXT_MONDAY, 1).date == NEXT_MONDAY

    def test_special_event_blocks_cover(self, service, owner, club, cover):
        Ticket.objects.create(club=club, name="Gala", price=20000, available_date=NEXT_FRIDAY)

        with pytest.raises(PolicyViolation, match="special event") as exc_info:
            service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.EVENT_CONFLICT

    def test_recurrent_or_inactive_event_does_not_block_cover(self, service, owner, club, cover):
        Ticket.objects.create(
            club=club, name="Weekly", price=20000, available_date=NEXT_FRIDAY, is_recurrent_event=True
        )
        Ticket.objects.create(club=club, name="Cancelled", price=20000, available_date=NEXT_FRIDAY, is_active=False)

        assert service.add_line(owner, cover.pk, NEXT_FRIDAY, 1).quantity == 1

    def test_event_in_other_club_does_not_block_cover(self, service, owner, other_club, cover):
        Ticket.objects.create(club=other_club, name="Gala", price=20000, available_date=NEXT_FRIDAY)

        assert service.add_line(owner, cover.pk, NEXT_FRIDAY, 1).quantity == 1

    def test_booking_window(self, service, owner, cover):
        last_day = TODAY + timedelta(days=21)
        assert service.add_line(owner, cover.pk, last_day, 1).date == last_day

    def test_rejects_date_past_booking_window(self, service, owner, cover):
        with pytest.raises(PolicyViolation, match="within 21 days") as exc_info:
            service.add_line(owner, cover.pk, TODAY + timedelta(days=28), 1)

        assert _code(exc_info) == ErrorCode.DATE_OUT_OF_RANGE

    def test_booking_window_from_config(self, owner, cover, settings):
        settings.CLUBTICKETS = {"booking_window_days": 7}
        service = CartService(clock=FixedClock(TODAY))

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, cover.pk, TODAY + timedelta(days=14), 1)

        assert _code(exc_info) == ErrorCode.DATE_OUT_OF_RANGE


# =============================================================================
# TestCartConsistency
# =============================================================================


@pytest.mark.django_db
class TestCartConsistency:
    def test_rejects_second_club(self, service, owner, cover, other_club):
        other_cover = Ticket.objects.create(club=other_club, name="Cover", price=6000)
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, other_cover.pk, NEXT_FRIDAY, 1)

        assert _code(exc_info) == ErrorCode.MIXED_CLUB

    def test_rejects_second_date(self, service, owner, cover):
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, cover.pk, TODAY, 1)

        assert _code(exc_info) == ErrorCode.MIXED_DATE

    def test_same_club_and_date_different_ticket(self, service, owner, club, cover):
        vip = Ticket.objects.create(club=club, name="VIP", price=15000)
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)
        service.add_line(owner, vip.pk, NEXT_FRIDAY, 1)

        assert CartLine.objects.filter(user_id=owner.user_id).count() == 2

    def test_other_owners_cart_is_independent(self, service, owner, guest, cover, other_club):
        other_cover = Ticket.objects.create(club=other_club, name="Cover", price=6000)
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        line = service.add_line(guest, other_cover.pk, date(2025, 6, 28), 1)

        assert line.owner == guest

    def test_max_per_person(self, service, owner, cover):
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 3)

        with pytest.raises(PolicyViolation, match="up to 4") as exc_info:
            service.add_line(owner, cover.pk, NEXT_FRIDAY, 2)

        assert _code(exc_info) == ErrorCode.MAX_PER_PERSON_EXCEEDED
        assert exc_info.value.remaining == 1
        assert CartLine.objects.get().quantity == 3

    def test_insufficient_stock(self, service, owner, club):
        limited = Ticket.objects.create(club=club, name="Limited", price=8000, quantity=3)
        service.add_line(owner, limited.pk, NEXT_FRIDAY, 2)

        with pytest.raises(PolicyViolation, match="Only 1 tickets") as exc_info:
            service.add_line(owner, limited.pk, NEXT_FRIDAY, 2)

        assert _code(exc_info) == ErrorCode.INSUFFICIENT_STOCK
        assert exc_info.value.remaining == 1

    def test_stock_is_counted_per_owner(self, service, owner, guest, club):
        limited = Ticket.objects.create(club=club, name="Limited", price=8000, quantity=3)
        service.add_line(owner, limited.pk, NEXT_FRIDAY, 3)

        line = service.add_line(guest, limited.pk, NEXT_FRIDAY, 3)

        assert line.quantity == 3


# =============================================================================
# TestUpdateLine
# =============================================================================


@pytest.mark.django_db
class TestUpdateLine:
    def test_overwrites_quantity(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        updated = service.update_line(owner, line.pk, 4)

        assert updated.quantity == 4
        line.refresh_from_db()
        assert line.quantity == 4

    def test_lowering_quantity(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 4)

        assert service.update_line(owner, line.pk, 1).quantity == 1

    def test_checks_max_per_person(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 3)

        with pytest.raises(PolicyViolation) as exc_info:
            service.update_line(owner, line.pk, 5)

        assert _code(exc_info) == ErrorCode.MAX_PER_PERSON_EXCEEDED
        assert exc_info.value.remaining == 4

    def test_checks_stock(self, service, owner, club):
        limited = Ticket.objects.create(club=club, name="Limited", price=8000, quantity=2)
        line = service.add_line(owner, limited.pk, NEXT_FRIDAY, 1)

        with pytest.raises(PolicyViolation) as exc_info:
            service.update_line(owner, line.pk, 3)

        assert _code(exc_info) == ErrorCode.INSUFFICIENT_STOCK
        assert exc_info.value.remaining == 2

    def test_rejects_invalid_quantity(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        with pytest.raises(InputError):
            service.update_line(owner, line.pk, 0)

    def test_rejects_other_owner(self, service, owner, guest, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        with pytest.raises(AuthorizationError) as exc_info:
            service.update_line(guest, line.pk, 2)

        assert _code(exc_info) == ErrorCode.FORBIDDEN
        line.refresh_from_db()
        assert line.quantity == 1

    def test_rejects_unknown_line(self, service, owner):
        with pytest.raises(NotFoundError) as exc_info:
            service.update_line(owner, 999_999, 1)

        assert _code(exc_info) == ErrorCode.NOT_FOUND


# =============================================================================
# TestRemoveAndList
# =============================================================================


@pytest.mark.django_db
class TestRemoveAndList:
    def test_remove_line(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        service.remove_line(owner, line.pk)

        assert not CartLine.objects.exists()

    def test_repeat_remove_is_not_found(self, service, owner, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)
        service.remove_line(owner, line.pk)

        with pytest.raises(NotFoundError) as exc_info:
            service.remove_line(owner, line.pk)

        assert _code(exc_info) == ErrorCode.NOT_FOUND

    def test_remove_other_owners_line(self, service, owner, guest, cover):
        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        with pytest.raises(AuthorizationError):
            service.remove_line(guest, line.pk)

        assert CartLine.objects.filter(pk=line.pk).exists()

    def test_list_most_recent_first(self, service, owner, club, cover):
        vip = Ticket.objects.create(club=club, name="VIP", price=15000)
        first = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)
        second = service.add_line(owner, vip.pk, NEXT_FRIDAY, 1)

        assert [line.pk for line in service.list_lines(owner)] == [second.pk, first.pk]

    def test_list_is_scoped_to_owner(self, service, owner, guest, cover):
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        assert service.list_lines(guest) == []

    def test_clear(self, service, owner, guest, club, cover):
        vip = Ticket.objects.create(club=club, name="VIP", price=15000)
        service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)
        service.add_line(owner, vip.pk, NEXT_FRIDAY, 1)
        service.add_line(guest, cover.pk, NEXT_FRIDAY, 1)

        assert service.clear(owner) == 2
        assert service.list_lines(owner) == []
        assert len(service.list_lines(guest)) == 1


# =============================================================================
# TestPurgeExpired
# =============================================================================


@pytest.mark.django_db
class TestPurgeExpired:
    def test_fresh_cart_is_kept(self, owner, cover):
        CartLine.objects.create(user_id=owner.user_id, ticket=cover, date=NEXT_FRIDAY, quantity=1)
        service = CartService(clock=FixedClock(timezone.now()))

        assert service.purge_expired(owner) == 0
        assert CartLine.objects.count() == 1

    def test_expired_cart_is_purged(self, owner, guest, cover):
        CartLine.objects.create(user_id=owner.user_id, ticket=cover, date=NEXT_FRIDAY, quantity=1)
        CartLine.objects.create(session_key=guest.session_key, ticket=cover, date=NEXT_FRIDAY, quantity=1)
        CartLine.objects.filter(user_id=owner.user_id).update(created_at=timezone.now() - timedelta(minutes=45))
        service = CartService(clock=FixedClock(timezone.now()))

        assert service.purge_expired(owner) == 1
        assert service.purge_expired(guest) == 0
        assert CartLine.objects.count() == 1

    def test_empty_cart(self, owner):
        assert CartService(clock=FixedClock(timezone.now())).purge_expired(owner) == 0


# =============================================================================
# TestConcurrentInsert
# =============================================================================


class RacingCartStore(DjangoCartStore):
    """Simulates another request inserting the same line first."""

    def __init__(self, competing_quantity):
        self.competing_quantity = competing_quantity

    def create_line(self, owner, ticket_id, day, quantity):
        super().create_line(owner, ticket_id, day, self.competing_quantity)
        return super().create_line(owner, ticket_id, day, quantity)


@pytest.mark.django_db
class TestConcurrentInsert:
    def test_lost_race_adds_to_winning_line(self, owner, cover):
        service = CartService(carts=RacingCartStore(competing_quantity=2), clock=FixedClock(TODAY))

        line = service.add_line(owner, cover.pk, NEXT_FRIDAY, 1)

        assert line.quantity == 3
        assert CartLine.objects.count() == 1

    def test_lost_race_rechecks_ceilings(self, owner, cover):
        service = CartService(carts=RacingCartStore(competing_quantity=3), clock=FixedClock(TODAY))

        with pytest.raises(PolicyViolation) as exc_info:
            service.add_line(owner, cover.pk, NEXT_FRIDAY, 2)

        assert _code(exc_info) == ErrorCode.MAX_PER_PERSON_EXCEEDED
        assert exc_info.value.remaining == 1
