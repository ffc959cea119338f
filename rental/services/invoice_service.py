"""
发票服务
按预订开具发票（每个预订至多一张），生成明细并计算税额
"""
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental.config import settings
from rental.models.entities import (
    Invoice, InvoiceLineItem, LineItemType, PaymentStatus
)
from rental.services.booking_store import BookingStore
from rental.services.errors import InvoiceIssueError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def make_invoice_number(booking_id: int, issued_at: datetime) -> str:
    """发票号：INV-日期-预订号"""
    return f"INV-{issued_at:%Y%m%d}-{booking_id:06d}"


class InvoiceIssuer:
    """发票开具"""

    def __init__(self, db: Session, tax_rate: Decimal = None, due_days: int = None):
        self.db = db
        self.tax_rate = settings.INVOICE_TAX_RATE if tax_rate is None else tax_rate
        self.due_days = settings.INVOICE_DUE_DAYS if due_days is None else due_days

    def exists(self, booking_id: int) -> bool:
        """该预订是否已有发票"""
        return self.db.execute(
            select(Invoice.id).where(Invoice.booking_id == booking_id)
        ).first() is not None

    def get_by_booking(self, booking_id: int) -> Optional[Invoice]:
        return self.db.execute(
            select(Invoice).where(Invoice.booking_id == booking_id)
        ).scalar_one_or_none()

    def issue(self, booking_id: int, created_by: str = None) -> Invoice:
        """
        为预订开具发票

        金额构成：
        1. 小计 = 房费 + 服务 + 额外费用
        2. 折扣不超过小计
        3. 税额 = (小计 - 折扣) * 税率，四舍五入到分
        4. 总额 = 小计 - 折扣 + 税额

        Raises:
            InvoiceIssueError: 预订不存在或已有发票
        """
        store = BookingStore(self.db)
        booking = store.get(booking_id)
        if booking is None:
            raise InvoiceIssueError(f"预订 {booking_id} 不存在，无法开具发票")
        if self.exists(booking_id):
            raise InvoiceIssueError(f"预订 {booking_id} 已有发票")

        financials = store.get_financials(booking_id)
        subtotal = financials.gross_amount
        discount = min(financials.discount_applied, subtotal)
        taxable = financials.settlement_amount
        tax = (taxable * self.tax_rate).quantize(CENT, rounding=ROUND_HALF_UP)

        now = datetime.now()
        paid = booking.payment_status == PaymentStatus.PAID
        invoice = Invoice(
            booking_id=booking_id,
            customer_id=booking.customer_id,
            invoice_number=make_invoice_number(booking_id, now),
            invoice_date=now,
            due_date=now + timedelta(days=self.due_days),
            subtotal=subtotal,
            tax_amount=tax,
            discount_amount=discount,
            total_amount=taxable + tax,
            payment_status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
            payment_date=now if paid else None,
            created_by=created_by or settings.INVOICE_CREATED_BY,
        )
        invoice.line_items = self._build_line_items(booking, financials, discount, tax)

        self.db.add(invoice)
        self.db.flush()  # 获取 invoice.id

        logger.info(f"Issued invoice {invoice.invoice_number} for booking {booking_id}")
        return invoice

    def _build_line_items(self, booking, financials, discount: Decimal, tax: Decimal) -> List[InvoiceLineItem]:
        room_text = f"房费（{booking.nights} 晚）"
        if booking.room_number:
            room_text = f"{booking.room_number} {room_text}"
        items = [
            InvoiceLineItem(
                item_type=LineItemType.ROOM,
                description=room_text,
                quantity=1,
                unit_price=financials.base_amount,
                line_total=financials.base_amount,
            )
        ]
        optional_items = [
            (LineItemType.SERVICE, "客房服务", financials.services_total),
            (LineItemType.EXTRA_CHARGE, "额外费用", financials.extra_charges),
            (LineItemType.DISCOUNT, "折扣", -discount),
            (LineItemType.TAX, f"税费（{self.tax_rate}）", tax),
        ]
        for item_type, description, amount in optional_items:
            if amount:
                items.append(InvoiceLineItem(
                    item_type=item_type,
                    description=description,
                    quantity=1,
                    unit_price=amount,
                    line_total=amount,
                ))
        return items
