"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from rental.models.entities import BookingStatus, PaymentStatus


# ============== 预订 Schemas ==============

class BookingResponse(BaseModel):
    id: int
    customer_id: int
    room_number: Optional[str]
    check_in_date: date
    check_out_date: date
    actual_check_in: Optional[datetime]
    actual_check_out: Optional[datetime]
    status: BookingStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    services_total: Optional[Decimal] = None
    extra_charges: Optional[Decimal] = None
    discount_applied: Optional[Decimal] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 退房 Schemas ==============

class CheckOutRequest(BaseModel):
    booking_id: int = Field(..., gt=0)


class InvoicingFailureResponse(BaseModel):
    reason: str
    error_type: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CheckOutResponse(BaseModel):
    message: str = "退房成功"
    booking_id: int
    customer_id: int
    settlement_amount: Decimal
    loyalty_points_earned: int
    checked_out_at: datetime
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    invoice_issued: bool = False
    invoicing_failure: Optional[InvoicingFailureResponse] = None
    model_config = ConfigDict(from_attributes=True)


class CheckOutErrorDetail(BaseModel):
    code: str
    message: str
    retryable: bool = False
