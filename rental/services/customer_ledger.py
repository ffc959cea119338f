"""
客户账户 - 累计消费与会员积分
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rental.config import settings
from rental.models.entities import Customer

logger = logging.getLogger(__name__)


class CustomerNotFoundError(LookupError):
    """客户不存在"""

    def __init__(self, customer_id: int):
        super().__init__(f"客户 {customer_id} 不存在")
        self.customer_id = customer_id


def loyalty_points_for(amount: Decimal, unit: Decimal = None) -> int:
    """积分 = floor(金额 / 积分单位)，负数或零金额不积分"""
    unit = unit or settings.LOYALTY_POINT_UNIT
    if amount <= 0:
        return 0
    return int((amount / unit).to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class LedgerAccrual:
    """一次累计的结果"""
    customer_id: int
    amount: Decimal
    points: int


@dataclass(frozen=True)
class LedgerBalance:
    customer_id: int
    total_spent: Decimal
    loyalty_points: int


class CustomerLedger:
    """
    客户账户

    累计以单条 UPDATE ... SET x = x + :delta 完成，
    同一客户的并发退房互不覆盖（无丢失更新）
    """

    def __init__(self, db: Session):
        self.db = db

    def accrue(self, customer_id: int, amount: Decimal) -> LedgerAccrual:
        """
        累计消费金额与积分

        Args:
            customer_id: 客户ID
            amount: 结算金额（负数按 0 处理）

        Raises:
            CustomerNotFoundError: 客户不存在
        """
        amount = max(amount, Decimal("0"))
        points = loyalty_points_for(amount)

        result = self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(
                total_spent=Customer.total_spent + amount,
                loyalty_points=Customer.loyalty_points + points,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CustomerNotFoundError(customer_id)

        logger.info(f"Accrued {amount} spend / {points} points to customer {customer_id}")
        return LedgerAccrual(customer_id=customer_id, amount=amount, points=points)

    def get_balance(self, customer_id: int) -> Optional[LedgerBalance]:
        """获取客户累计消费与积分"""
        row = self.db.execute(
            select(Customer.total_spent, Customer.loyalty_points)
            .where(Customer.id == customer_id)
        ).first()
        if row is None:
            return None
        return LedgerBalance(
            customer_id=customer_id,
            total_spent=row.total_spent if row.total_spent is not None else Decimal("0"),
            loyalty_points=row.loyalty_points or 0,
        )
