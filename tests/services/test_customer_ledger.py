"""
Tests for rental/services/customer_ledger.py
"""
import pytest
from decimal import Decimal
from sqlalchemy import text

from rental.services.customer_ledger import (
    CustomerLedger, CustomerNotFoundError, loyalty_points_for
)


class TestLoyaltyPoints:

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("120.00"), 12),
        (Decimal("129.99"), 12),
        (Decimal("9.99"), 0),
        (Decimal("10"), 1),
        (Decimal("0"), 0),
        (Decimal("-50"), 0),
    ])
    def test_floor_of_tenth(self, amount, expected):
        assert loyalty_points_for(amount) == expected

    def test_custom_unit(self):
        assert loyalty_points_for(Decimal("120"), unit=Decimal("25")) == 4


class TestAccrue:

    def test_accrue_increments(self, db_session, make_customer):
        customer_id = make_customer(total_spent=Decimal("10.00"), loyalty_points=1)
        ledger = CustomerLedger(db_session)

        accrual = ledger.accrue(customer_id, Decimal("120.00"))
        db_session.commit()

        assert accrual.points == 12
        balance = ledger.get_balance(customer_id)
        assert balance.total_spent == Decimal("130.00")
        assert balance.loyalty_points == 13

    def test_negative_amount_accrues_nothing(self, db_session, make_customer):
        customer_id = make_customer()
        ledger = CustomerLedger(db_session)

        accrual = ledger.accrue(customer_id, Decimal("-5"))
        db_session.commit()

        assert accrual.amount == Decimal("0")
        assert ledger.get_balance(customer_id).total_spent == Decimal("0")

    def test_unknown_customer(self, db_session):
        with pytest.raises(CustomerNotFoundError):
            CustomerLedger(db_session).accrue(777, Decimal("10"))

    def test_balance_of_unknown_customer(self, db_session):
        assert CustomerLedger(db_session).get_balance(777) is None


class TestMoneyStorage:

    def test_running_total_is_exact(self, db_session, make_customer):
        customer_id = make_customer()
        ledger = CustomerLedger(db_session)

        for _ in range(10):
            ledger.accrue(customer_id, Decimal("0.10"))
        ledger.accrue(customer_id, Decimal("0.20"))
        db_session.commit()

        assert ledger.get_balance(customer_id).total_spent == Decimal("1.20")

    def test_stored_as_integer_cents(self, db_session, make_customer):
        customer_id = make_customer(total_spent=Decimal("130.45"))

        raw = db_session.execute(
            text("SELECT total_spent, typeof(total_spent) FROM customers WHERE id = :id"),
            {"id": customer_id},
        ).one()
        db_session.commit()

        assert raw[0] == 13045
        assert raw[1] == "integer"
