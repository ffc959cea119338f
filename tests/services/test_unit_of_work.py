"""
Tests for rental/services/unit_of_work.py
"""
import pytest
from decimal import Decimal
from sqlalchemy import text

from rental.models.entities import BookingStatus
from rental.services.unit_of_work import UnitOfWork


class TestUnitOfWork:

    def test_commit_on_clean_exit(self, session_factory, make_booking, read_booking):
        booking_id = make_booking()

        with UnitOfWork(session_factory) as uow:
            assert uow.bookings.conditionally_mark_checked_out(booking_id) == 1

        assert uow.session is None
        assert read_booking(booking_id).status == BookingStatus.CHECKED_OUT

    def test_rollback_on_exception(self, session_factory, make_customer, make_booking,
                                   read_booking, read_customer):
        customer_id = make_customer()
        booking_id = make_booking(customer_id=customer_id)

        with pytest.raises(RuntimeError):
            with UnitOfWork(session_factory) as uow:
                uow.bookings.conditionally_mark_checked_out(booking_id)
                uow.ledger.accrue(customer_id, Decimal("120"))
                raise RuntimeError("boom")

        assert uow.session is None
        assert read_booking(booking_id).status == BookingStatus.CHECKED_IN
        assert read_customer(customer_id).total_spent == Decimal("0")

    def test_rollback_on_interrupt(self, session_factory, make_booking, read_booking):
        booking_id = make_booking()

        with pytest.raises(KeyboardInterrupt):
            with UnitOfWork(session_factory) as uow:
                uow.bookings.conditionally_mark_checked_out(booking_id)
                raise KeyboardInterrupt

        assert read_booking(booking_id).status == BookingStatus.CHECKED_IN

    def test_savepoint_failure_keeps_outer_work(self, session_factory, make_booking,
                                                read_booking, count_invoices):
        booking_id = make_booking()

        with UnitOfWork(session_factory) as uow:
            uow.bookings.conditionally_mark_checked_out(booking_id)
            with pytest.raises(ValueError):
                with uow.savepoint():
                    uow.invoices.issue(booking_id)
                    raise ValueError("discard invoice")

        assert read_booking(booking_id).status == BookingStatus.CHECKED_OUT
        assert count_invoices(booking_id) == 0

    def test_collaborators_share_session(self, session_factory):
        with UnitOfWork(session_factory) as uow:
            assert uow.bookings.db is uow.session
            assert uow.ledger.db is uow.session
            assert uow.invoices.db is uow.session


class TestLockTimeout:

    def test_lock_timeout_sets_busy_timeout(self, session_factory):
        with UnitOfWork(session_factory, lock_timeout=0.25) as uow:
            assert uow.session.in_transaction()
            assert uow.session.execute(text("PRAGMA busy_timeout")).scalar() == 250

    def test_default_busy_timeout_restored(self, session_factory):
        with UnitOfWork(session_factory, lock_timeout=0.25):
            pass

        with UnitOfWork(session_factory) as uow:
            assert uow.session.execute(text("PRAGMA busy_timeout")).scalar() == 5000
