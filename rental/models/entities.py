"""
领域对象定义
客户、预订、发票及发票明细
预订状态只能通过 BookingStore 中带状态守卫的条件更新变更
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator
from rental.database import Base

CENT = Decimal("0.01")


# ============== 类型定义 ==============

class Money(TypeDecorator):
    """
    金额类型：库内存整数分，Python 侧为两位小数的 Decimal

    SQLite 没有定点小数，Numeric 会落成 REAL；存整数分后
    UPDATE ... SET total_spent = total_spent + :amount 在库内也是精确整数加法
    """
    impl = BigInteger
    cache_ok = True

    @property
    def python_type(self):
        return Decimal

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            value = str(value)
        cents = (Decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / 100).quantize(CENT)


# ============== 枚举定义 ==============

class BookingStatus(str, Enum):
    """预订状态枚举"""
    RESERVED = "RESERVED"        # 已预订
    CHECKED_IN = "CHECKED_IN"    # 已入住
    CHECKED_OUT = "CHECKED_OUT"  # 已退房
    CANCELLED = "CANCELLED"      # 已取消
    NO_SHOW = "NO_SHOW"          # 未到店


class PaymentStatus(str, Enum):
    """支付状态枚举（预订与发票共用）"""
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class LineItemType(str, Enum):
    """发票明细类型"""
    ROOM = "ROOM"
    SERVICE = "SERVICE"
    EXTRA_CHARGE = "EXTRA_CHARGE"
    DISCOUNT = "DISCOUNT"
    TAX = "TAX"


# ============== 领域对象 ==============

class Customer(Base):
    """
    客户对象
    total_spent / loyalty_points 只在退房提交时累加，单调不减
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), unique=True)
    phone = Column(String(20))
    address = Column(Text)
    total_spent = Column(Money(), nullable=False, default=0)
    loyalty_points = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)
    registration_date = Column(DateTime, default=datetime.utcnow)

    # 链接
    bookings = relationship("Booking", back_populates="customer")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Booking(Base):
    """
    预订对象
    金额字段：total_amount(房费) + services_total + extra_charges - discount_applied
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    room_number = Column(String(10))
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    actual_check_in = Column(DateTime)
    actual_check_out = Column(DateTime)
    booking_date = Column(DateTime, default=datetime.utcnow)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.RESERVED)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    total_amount = Column(Money(), nullable=False, default=0)  # 房费
    services_total = Column(Money(), default=0)                # 客房服务
    extra_charges = Column(Money(), default=0)                 # 额外费用
    discount_applied = Column(Money(), default=0)              # 折扣
    special_requests = Column(Text)
    created_by = Column(String(50))

    # 链接
    customer = relationship("Customer", back_populates="bookings")
    invoice = relationship("Invoice", back_populates="booking", uselist=False)

    @property
    def nights(self) -> int:
        if not self.check_in_date or not self.check_out_date:
            return 0
        return max((self.check_out_date - self.check_in_date).days, 1)


class Invoice(Base):
    """
    发票对象
    每个预订至多一张（booking_id 唯一约束）
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    invoice_number = Column(String(40), nullable=False, unique=True)
    invoice_date = Column(DateTime, default=datetime.utcnow)
    due_date = Column(DateTime)
    subtotal = Column(Money(), default=0)
    tax_amount = Column(Money(), default=0)
    discount_amount = Column(Money(), default=0)
    total_amount = Column(Money(), default=0)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_date = Column(DateTime)
    notes = Column(Text)
    created_by = Column(String(50))

    # 链接
    booking = relationship("Booking", back_populates="invoice")
    customer = relationship("Customer")
    line_items = relationship(
        "InvoiceLineItem", back_populates="invoice",
        cascade="all, delete-orphan", order_by="InvoiceLineItem.id"
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_overdue(self) -> bool:
        if self.is_paid or self.payment_status == PaymentStatus.CANCELLED:
            return False
        return self.due_date is not None and self.due_date < datetime.utcnow()


class InvoiceLineItem(Base):
    """发票明细"""
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    item_type = Column(SQLEnum(LineItemType), nullable=False)
    description = Column(String(200))
    quantity = Column(Integer, default=1)
    unit_price = Column(Money(), default=0)
    line_total = Column(Money(), default=0)

    # 链接
    invoice = relationship("Invoice", back_populates="line_items")
