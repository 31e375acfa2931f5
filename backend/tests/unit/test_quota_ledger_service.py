# backend/tests/unit/test_quota_ledger_service.py
from decimal import Decimal

import pytest

from drivebook.core.exceptions import (
    BusinessRuleException,
    InsufficientQuotaException,
    NotFoundException,
    ValidationException,
)
from drivebook.models.quota import QuotaTransactionType
from drivebook.services.quota_ledger_service import QuotaLedgerService, hours_required


@pytest.fixture
def ledger(db) -> QuotaLedgerService:
    return QuotaLedgerService(db)


@pytest.mark.parametrize(
    "minutes,expected",
    [(30, 1), (60, 1), (61, 2), (90, 2), (120, 2), (150, 3)],
)
def test_hours_required_rounds_up(minutes, expected):
    assert hours_required(minutes) == Decimal(expected)


class TestBalances:
    def test_unknown_user_has_zero_balance(self, ledger):
        balance = ledger.get_balance("01UNKNOWNUSER0000000000000")

        assert balance == {
            "available_hours": Decimal("0"),
            "total_hours": Decimal("0"),
            "used_hours": Decimal("0"),
        }

    def test_purchase_credit(self, ledger, create_user):
        user = create_user()

        entry = ledger.credit(user_id=user.id, hours=Decimal("10"), description="10 hour pack")

        assert entry.transaction_type == QuotaTransactionType.PURCHASE.value
        balance = ledger.get_balance(user.id)
        assert balance["available_hours"] == Decimal("10")
        assert balance["total_hours"] == Decimal("10")
        assert ledger.recompute_balance(user.id)["consistent"] is True

    def test_negative_adjustment(self, ledger, create_user):
        user = create_user()
        ledger.credit(user_id=user.id, hours=Decimal("3"))

        ledger.credit(user_id=user.id, hours=Decimal("-2"), transaction_type="adjustment")

        assert ledger.get_available_hours(user.id) == Decimal("1")
        assert ledger.recompute_balance(user.id)["ledger_total"] == Decimal("1")

    def test_adjustment_cannot_go_negative(self, ledger, create_user):
        user = create_user()
        ledger.credit(user_id=user.id, hours=Decimal("1"))

        with pytest.raises(BusinessRuleException) as exc_info:
            ledger.credit(user_id=user.id, hours=Decimal("-2"), transaction_type="adjustment")

        assert exc_info.value.code == "NEGATIVE_BALANCE"
        assert ledger.get_available_hours(user.id) == Decimal("1")
        assert len(ledger.list_transactions(user.id)) == 1

    @pytest.mark.parametrize(
        "hours,transaction_type",
        [
            (Decimal("0"), "purchase"),
            (Decimal("-1"), "purchase"),
            (Decimal("1"), "booking"),
            (Decimal("1"), "refund"),
        ],
    )
    def test_invalid_credits(self, ledger, create_user, hours, transaction_type):
        user = create_user()

        with pytest.raises(ValidationException):
            ledger.credit(user_id=user.id, hours=hours, transaction_type=transaction_type)

    def test_unknown_user_is_not_credited(self, ledger):
        with pytest.raises(NotFoundException) as exc_info:
            ledger.credit(user_id="01NOSUCHUSER00000000000000", hours=Decimal("3"))

        assert exc_info.value.code == "USER_NOT_FOUND"
        assert ledger.list_transactions("01NOSUCHUSER00000000000000") == []


class TestBookingEntries:
    def test_debit_and_refund_net_to_zero(self, db, ledger, create_user):
        user = create_user()
        ledger.credit(user_id=user.id, hours=Decimal("2"))

        with ledger.transaction():
            ledger.debit_for_booking(
                user_id=user.id, booking_id="01BOOKING00000000000000000", hours=Decimal("2")
            )
        assert ledger.get_available_hours(user.id) == Decimal("0")

        with ledger.transaction():
            ledger.refund_for_booking(
                user_id=user.id, booking_id="01BOOKING00000000000000000", hours=Decimal("2")
            )

        balance = ledger.get_balance(user.id)
        assert balance["available_hours"] == Decimal("2")
        assert balance["used_hours"] == Decimal("0")
        entries = ledger.quota_repository.list_for_booking("01BOOKING00000000000000000")
        assert sorted(Decimal(str(e.hours_change)) for e in entries) == [Decimal("-2"), Decimal("2")]
        assert ledger.recompute_balance(user.id)["consistent"] is True

    def test_debit_without_balance_changes_nothing(self, ledger, create_user):
        user = create_user()
        ledger.credit(user_id=user.id, hours=Decimal("1"))

        with pytest.raises(InsufficientQuotaException) as exc_info:
            with ledger.transaction():
                ledger.debit_for_booking(
                    user_id=user.id, booking_id="01BOOKING00000000000000000", hours=Decimal("2")
                )

        assert exc_info.value.details == {"available_hours": 1.0, "required_hours": 2.0}
        assert ledger.get_available_hours(user.id) == Decimal("1")
        assert len(ledger.list_transactions(user.id)) == 1

    def test_debit_for_user_without_quota_row(self, ledger, create_user):
        user = create_user()

        with pytest.raises(InsufficientQuotaException):
            ledger.ensure_sufficient(user.id, Decimal("1"))
        with pytest.raises(InsufficientQuotaException):
            ledger.debit_for_booking(
                user_id=user.id, booking_id="01BOOKING00000000000000000", hours=Decimal("1")
            )

    def test_list_transactions(self, ledger, create_user):
        user = create_user()
        ledger.credit(user_id=user.id, hours=Decimal("1"), description="first")
        ledger.credit(user_id=user.id, hours=Decimal("2"), description="second")

        entries = ledger.list_transactions(user.id)

        assert sorted(e.description for e in entries) == ["first", "second"]
        assert ledger.list_transactions(user.id, limit=1)[0].user_id == user.id
