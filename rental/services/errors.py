"""
退房结算错误分类

- FATAL：中止整个事务并回滚（状态迁移、积分累计、提交）
- RECOVERABLE：降级为成功结果上的标记（发票开具）
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """步骤失败类型"""
    FATAL = "fatal"
    RECOVERABLE = "recoverable"


class CheckOutErrorCode(str, Enum):
    """退房错误码，供调用方区分终态错误与可重试错误"""
    NOT_FOUND = "NOT_FOUND"
    NOT_CHECKED_IN = "NOT_CHECKED_IN"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class CheckOutError(Exception):
    """退房失败基类，抛出时事务已回滚"""
    code: CheckOutErrorCode = CheckOutErrorCode.STORAGE_FAILURE
    retryable: bool = False

    def __init__(self, booking_id: int, message: str):
        super().__init__(message)
        self.booking_id = booking_id
        self.message = message


class BookingNotFoundError(CheckOutError):
    """预订不存在"""
    code = CheckOutErrorCode.NOT_FOUND

    def __init__(self, booking_id: int):
        super().__init__(booking_id, f"预订 {booking_id} 不存在")


class BookingNotCheckedInError(CheckOutError):
    """预订不在入住状态（含重复退房、重复提交）"""
    code = CheckOutErrorCode.NOT_CHECKED_IN

    def __init__(self, booking_id: int, current_status=None):
        status_text = getattr(current_status, "value", current_status)
        super().__init__(booking_id, f"预订 {booking_id} 当前状态为 {status_text}，无法退房")
        self.current_status = current_status


class BookingCustomerMissingError(CheckOutError):
    """预订关联的客户不存在，重试无法成功"""
    code = CheckOutErrorCode.CUSTOMER_NOT_FOUND

    def __init__(self, booking_id: int, customer_id: int):
        super().__init__(booking_id, f"预订 {booking_id} 关联的客户 {customer_id} 不存在，无法结算")
        self.customer_id = customer_id


class StorageFailureError(CheckOutError):
    """存储层失败（连接、约束、死锁），调用方可重试"""
    code = CheckOutErrorCode.STORAGE_FAILURE
    retryable = True

    def __init__(self, booking_id: int, message: str = None):
        super().__init__(booking_id, message or f"预订 {booking_id} 退房事务未能完成，已回滚")


class CheckOutTimeoutError(StorageFailureError):
    """超过调用方给定的时限，事务已回滚"""

    def __init__(self, booking_id: int, timeout: float):
        super().__init__(booking_id, f"预订 {booking_id} 退房超时（{timeout}s），已回滚")
        self.timeout = timeout


class InvoiceIssueError(Exception):
    """发票开具失败"""


@dataclass(frozen=True)
class InvoicingFailure:
    """附加在成功结果上的发票失败标记，仅用于日志和告警"""
    booking_id: int
    reason: str
    kind: FailureKind = FailureKind.RECOVERABLE
    error_type: Optional[str] = None
