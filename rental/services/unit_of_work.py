"""
事务边界 (Unit of Work)
一个会话 / 一个连接 / 一个事务，预订存储、客户账户、发票开具共享同一事务

    with UnitOfWork() as uow:
        uow.bookings.conditionally_mark_checked_out(booking_id)
        uow.ledger.accrue(customer_id, amount)

正常退出提交；任何异常（含超时、中断）回滚；无论如何都释放会话
lock_timeout 给定时，事务开始前即按其约束等锁时长
"""
from contextlib import contextmanager
from typing import Callable, Optional

from sqlalchemy.orm import Session

from rental.database import SessionLocal, LOCK_TIMEOUT_OPTION
from rental.services.booking_store import BookingStore
from rental.services.customer_ledger import CustomerLedger
from rental.services.invoice_service import InvoiceIssuer


class UnitOfWork:
    """作用域事务"""

    def __init__(self, session_factory: Callable[[], Session] = None, lock_timeout: Optional[float] = None):
        self._session_factory = session_factory or SessionLocal
        self._lock_timeout = lock_timeout
        self.session: Optional[Session] = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        if self._lock_timeout is not None:
            try:
                self._begin_with_lock_timeout(self._lock_timeout)
            except BaseException:
                self.session.close()
                self.session = None
                raise
        self.bookings = BookingStore(self.session)
        self.ledger = CustomerLedger(self.session)
        self.invoices = InvoiceIssuer(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.session.close()
            self.session = None
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except BaseException:
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    @contextmanager
    def savepoint(self):
        """
        嵌套事务：块内异常只回滚到保存点，外层事务继续有效
        异常仍向上抛出，由调用方决定是否容忍
        """
        with self.session.begin_nested():
            yield self

    def _begin_with_lock_timeout(self, seconds: float) -> None:
        """立即开始事务，等锁不超过 seconds 秒"""
        connection = self.session.connection(execution_options={LOCK_TIMEOUT_OPTION: seconds})
        if connection.dialect.name == "postgresql":
            # lock_timeout = 0 表示不限，至少给 1ms
            connection.exec_driver_sql(f"SET LOCAL lock_timeout = {max(int(seconds * 1000), 1)}")
