"""
退房结算服务
一次退房 = 一个事务：
1. 带状态守卫的条件更新 CHECKED_IN -> CHECKED_OUT（并标记已支付）
2. 按同一事务内读取的金额累计客户消费与积分
3. 尽力开具发票（失败只回滚到保存点并记录告警）
4. 提交后发布事件
"""
from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Callable, List, Optional
import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from rental.config import settings
from rental.database import SessionLocal
from rental.models.entities import Booking
from rental.models.events import (
    EventType, BookingCheckedOutData, InvoiceIssuedData, InvoiceFailedData
)
from rental.services.booking_store import BookingStore
from rental.services.customer_ledger import CustomerNotFoundError
from rental.services.errors import (
    FailureKind, CheckOutError, BookingNotFoundError, BookingNotCheckedInError,
    BookingCustomerMissingError, StorageFailureError, CheckOutTimeoutError, InvoicingFailure
)
from rental.services.event_bus import event_bus, Event
from rental.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutResult:
    """退房成功结果"""
    booking_id: int
    customer_id: int
    settlement_amount: Decimal
    loyalty_points_earned: int
    checked_out_at: datetime
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    invoice_issued: bool = False
    invoicing_failure: Optional[InvoicingFailure] = None

    @property
    def has_warnings(self) -> bool:
        return self.invoicing_failure is not None


@dataclass
class StepOutcome:
    """单个步骤的执行结果"""
    step: str
    kind: FailureKind
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _Deadline:
    """调用方给定的时限，在步骤之间检查"""

    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        """剩余秒数，不限时为 None"""
        if self._expires_at is None:
            return None
        return max(self._expires_at - time.monotonic(), 0.0)

    def check(self, booking_id: int) -> None:
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise CheckOutTimeoutError(booking_id, self.timeout)

    def exhausted_by(self, error: Exception) -> bool:
        """时限已过，或等锁在剩余时限内未拿到锁"""
        if self._expires_at is None:
            return False
        if time.monotonic() >= self._expires_at:
            return True
        return isinstance(error, OperationalError) and "locked" in str(error).lower()


class CheckOutService:
    """退房服务"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = None,
        event_publisher: Callable[[Event], None] = None
    ):
        self._session_factory = session_factory or SessionLocal
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    def check_out(self, booking_id: int, timeout: Optional[float] = None) -> CheckOutResult:
        """
        退房结算

        Args:
            booking_id: 预订ID
            timeout: 时限（秒），默认取 CHECKOUT_TIMEOUT_SECONDS；超时整体回滚

        Returns:
            CheckOutResult；发票开具失败时 invoicing_failure 非空

        Raises:
            BookingNotFoundError: 预订不存在
            BookingNotCheckedInError: 预订不在入住状态（含重复退房）
            BookingCustomerMissingError: 关联客户不存在，不可重试
            CheckOutTimeoutError: 超过时限（含等锁），已回滚，可重试
            StorageFailureError: 事务未完成，已回滚，可重试
        """
        deadline = _Deadline(settings.CHECKOUT_TIMEOUT_SECONDS if timeout is None else timeout)
        checked_out_at = datetime.now()

        try:
            with UnitOfWork(self._session_factory, lock_timeout=deadline.remaining()) as uow:
                marked = self._run_step(
                    uow, "mark_checked_out", FailureKind.FATAL,
                    lambda: uow.bookings.conditionally_mark_checked_out(booking_id, checked_out_at)
                )
                if marked.value == 0:
                    raise self._rejection(uow.bookings, booking_id)
                deadline.check(booking_id)

                # 同一事务内读取，此时该行已被本事务的写锁保护
                financials = uow.bookings.get_financials(booking_id)
                settlement_amount = financials.settlement_amount
                accrual = self._run_step(
                    uow, "accrue_ledger", FailureKind.FATAL,
                    lambda: uow.ledger.accrue(financials.customer_id, settlement_amount)
                ).value
                deadline.check(booking_id)

                invoiced = self._run_step(
                    uow, "issue_invoice", FailureKind.RECOVERABLE,
                    lambda: self._ensure_invoice(uow, booking_id)
                )
                invoice = invoiced.value
                invoice_id = invoice.id if invoice is not None else None
                invoice_number = invoice.invoice_number if invoice is not None else None
                invoice_total = invoice.total_amount if invoice is not None else None
                deadline.check(booking_id)
        except CheckOutError as e:
            logger.warning(f"Checkout rejected for booking {booking_id}: {e.code.value} {e.message}")
            raise
        except CustomerNotFoundError as e:
            logger.warning(f"Checkout of booking {booking_id} rolled back: customer {e.customer_id} missing")
            raise BookingCustomerMissingError(booking_id, e.customer_id) from e
        except Exception as e:
            if deadline.exhausted_by(e):
                logger.warning(f"Checkout of booking {booking_id} timed out after {deadline.timeout}s: {e}")
                raise CheckOutTimeoutError(booking_id, deadline.timeout) from e
            logger.error(f"Checkout of booking {booking_id} rolled back: {e}", exc_info=True)
            raise StorageFailureError(booking_id) from e

        failure = None
        if not invoiced.ok:
            failure = InvoicingFailure(
                booking_id=booking_id,
                reason=str(invoiced.error),
                error_type=type(invoiced.error).__name__,
            )

        result = CheckOutResult(
            booking_id=booking_id,
            customer_id=financials.customer_id,
            settlement_amount=settlement_amount,
            loyalty_points_earned=accrual.points,
            checked_out_at=checked_out_at,
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            invoice_issued=invoice is not None,
            invoicing_failure=failure,
        )
        logger.info(
            f"Booking {booking_id} checked out: settled {settlement_amount}, "
            f"{accrual.points} points, invoice {invoice_number or '-'}"
        )

        self._publish_after_commit(result, invoice_total)
        return result

    def _run_step(self, uow: UnitOfWork, step: str, kind: FailureKind, action: Callable[[], Any]) -> StepOutcome:
        """
        执行一个步骤

        FATAL：异常直接抛出，由事务边界回滚
        RECOVERABLE：在保存点内执行，异常只回滚保存点，记录后继续
        """
        if kind == FailureKind.FATAL:
            return StepOutcome(step=step, kind=kind, value=action())

        try:
            with uow.savepoint():
                value = action()
        except Exception as e:
            logger.warning(f"Step {step} failed and was skipped: {e}")
            return StepOutcome(step=step, kind=kind, error=e)
        return StepOutcome(step=step, kind=kind, value=value)

    def _ensure_invoice(self, uow: UnitOfWork, booking_id: int):
        """没有发票时开具一张，已有则返回 None"""
        if uow.invoices.exists(booking_id):
            return None
        return uow.invoices.issue(booking_id)

    def _rejection(self, bookings: BookingStore, booking_id: int) -> CheckOutError:
        """条件更新未命中：区分预订不存在与状态不符"""
        status = bookings.get_status(booking_id)
        if status is None:
            return BookingNotFoundError(booking_id)
        return BookingNotCheckedInError(booking_id, status)

    def _publish_after_commit(self, result: CheckOutResult, invoice_total: Optional[Decimal]) -> None:
        """发布事件，发布失败不影响已提交的退房"""
        events = [Event(
            event_type=EventType.BOOKING_CHECKED_OUT,
            data=BookingCheckedOutData(
                booking_id=result.booking_id,
                customer_id=result.customer_id,
                settlement_amount=result.settlement_amount,
                loyalty_points_earned=result.loyalty_points_earned,
                check_out_time=result.checked_out_at,
                invoice_id=result.invoice_id,
            ).to_dict(),
            source="checkout_service"
        )]
        if result.invoice_issued:
            events.append(Event(
                event_type=EventType.INVOICE_ISSUED,
                data=InvoiceIssuedData(
                    invoice_id=result.invoice_id,
                    invoice_number=result.invoice_number,
                    booking_id=result.booking_id,
                    total_amount=invoice_total,
                ).to_dict(),
                source="checkout_service"
            ))
        if result.invoicing_failure:
            events.append(Event(
                event_type=EventType.INVOICE_FAILED,
                data=InvoiceFailedData(
                    booking_id=result.booking_id,
                    reason=result.invoicing_failure.reason,
                ).to_dict(),
                source="checkout_service"
            ))

        for event in events:
            try:
                self._publish_event(event)
            except Exception as e:
                logger.error(f"Failed to publish {event.event_type}: {e}", exc_info=True)

    def batch_check_out(self, booking_ids: List[int]) -> List[dict]:
        """批量退房，每个预订独立事务"""
        results = []
        for booking_id in booking_ids:
            try:
                result = self.check_out(booking_id)
                results.append({
                    'booking_id': booking_id,
                    'success': True,
                    'message': '退房成功',
                    'settlement_amount': str(result.settlement_amount),
                    'invoicing_failed': result.has_warnings,
                })
            except CheckOutError as e:
                results.append({
                    'booking_id': booking_id,
                    'success': False,
                    'message': e.message,
                    'error_code': e.code.value,
                    'retryable': e.retryable,
                })
        return results

    def get_today_expected_checkouts(self, today: date = None) -> List[Booking]:
        """获取今日预计退房"""
        with self._session_factory() as db:
            return BookingStore(db).list_checked_in_due_on(today or date.today())

    def get_overdue_stays(self, today: date = None) -> List[Booking]:
        """获取逾期未退房"""
        with self._session_factory() as db:
            return BookingStore(db).list_checked_in_overdue(today or date.today())
