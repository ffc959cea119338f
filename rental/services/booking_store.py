"""
预订存储 - 状态迁移与金额读取
所有状态迁移都是单条带状态守卫的 UPDATE，以影响行数判断是否成功，
不做"先读后写"
"""
from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental.models.entities import Booking, BookingStatus, PaymentStatus

ZERO = Decimal("0")


def _money(value) -> Decimal:
    """NULL 金额按 0 处理"""
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class BookingFinancials:
    """预订金额快照"""
    booking_id: int
    customer_id: int
    base_amount: Decimal
    services_total: Decimal
    extra_charges: Decimal
    discount_applied: Decimal

    @property
    def gross_amount(self) -> Decimal:
        return self.base_amount + self.services_total + self.extra_charges

    @property
    def settlement_amount(self) -> Decimal:
        """结算金额 = 房费 + 服务 + 额外 - 折扣，不低于 0"""
        return max(self.gross_amount - self.discount_applied, ZERO)


class BookingStore:
    """预订存储，所有操作在调用方的会话（事务）内执行"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, booking_id: int) -> Optional[Booking]:
        return self.db.get(Booking, booking_id, populate_existing=True)

    def exists(self, booking_id: int) -> bool:
        return self.db.execute(
            select(Booking.id).where(Booking.id == booking_id)
        ).first() is not None

    def get_status(self, booking_id: int) -> Optional[BookingStatus]:
        """获取预订当前状态，不存在返回 None"""
        return self.db.execute(
            select(Booking.status).where(Booking.id == booking_id)
        ).scalar_one_or_none()

    def get_financials(self, booking_id: int) -> Optional[BookingFinancials]:
        """读取金额字段及所属客户"""
        row = self.db.execute(
            select(
                Booking.customer_id,
                Booking.total_amount,
                Booking.services_total,
                Booking.extra_charges,
                Booking.discount_applied,
            ).where(Booking.id == booking_id)
        ).first()
        if row is None:
            return None
        return BookingFinancials(
            booking_id=booking_id,
            customer_id=row.customer_id,
            base_amount=_money(row.total_amount),
            services_total=_money(row.services_total),
            extra_charges=_money(row.extra_charges),
            discount_applied=_money(row.discount_applied),
        )

    def _transition(self, booking_id: int, from_status: BookingStatus, **values) -> int:
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def conditionally_mark_checked_out(self, booking_id: int, at: datetime = None) -> int:
        """
        CHECKED_IN -> CHECKED_OUT，同时标记已支付并记录退房时间

        Returns:
            影响行数：1 成功；0 表示预订不存在或不在入住状态
        """
        return self._transition(
            booking_id,
            BookingStatus.CHECKED_IN,
            status=BookingStatus.CHECKED_OUT,
            payment_status=PaymentStatus.PAID,
            actual_check_out=at or datetime.now(),
        )

    def check_in(self, booking_id: int, at: datetime = None) -> int:
        """RESERVED -> CHECKED_IN"""
        return self._transition(
            booking_id,
            BookingStatus.RESERVED,
            status=BookingStatus.CHECKED_IN,
            actual_check_in=at or datetime.now(),
        )

    def cancel(self, booking_id: int) -> int:
        """RESERVED -> CANCELLED"""
        return self._transition(
            booking_id,
            BookingStatus.RESERVED,
            status=BookingStatus.CANCELLED,
            payment_status=PaymentStatus.CANCELLED,
        )

    def list_checked_in_due_on(self, day: date) -> List[Booking]:
        """指定日期预计退房的在住预订"""
        return list(self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.CHECKED_IN,
                Booking.check_out_date == day,
            ).order_by(Booking.id)
        ).scalars())

    def list_checked_in_overdue(self, today: date) -> List[Booking]:
        """超过预计退房日期仍在住的预订"""
        return list(self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.CHECKED_IN,
                Booking.check_out_date < today,
            ).order_by(Booking.check_out_date, Booking.id)
        ).scalars())
