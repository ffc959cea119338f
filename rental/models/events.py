"""
领域事件定义 (Domain Events)
退房事务提交后发布，供告警、报表等订阅方使用
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 预订相关
    BOOKING_CHECKED_IN = "booking.checked_in"
    BOOKING_CHECKED_OUT = "booking.checked_out"
    BOOKING_CANCELLED = "booking.cancelled"

    # 发票相关
    INVOICE_ISSUED = "invoice.issued"
    INVOICE_FAILED = "invoice.failed"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime / Decimal 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class BookingCheckedInData(BaseEventData):
    """入住事件数据"""
    booking_id: int = 0
    customer_id: int = 0
    check_in_time: datetime = field(default_factory=datetime.now)


@dataclass
class BookingCheckedOutData(BaseEventData):
    """退房结算事件数据"""
    booking_id: int = 0
    customer_id: int = 0
    settlement_amount: Decimal = Decimal("0")
    loyalty_points_earned: int = 0
    check_out_time: datetime = field(default_factory=datetime.now)
    invoice_id: Optional[int] = None


@dataclass
class BookingCancelledData(BaseEventData):
    """取消预订事件数据"""
    booking_id: int = 0


@dataclass
class InvoiceIssuedData(BaseEventData):
    """发票开具事件数据"""
    invoice_id: int = 0
    invoice_number: str = ""
    booking_id: int = 0
    total_amount: Decimal = Decimal("0")


@dataclass
class InvoiceFailedData(BaseEventData):
    """发票开具失败事件数据（退房本身已成功）"""
    booking_id: int = 0
    reason: str = ""
