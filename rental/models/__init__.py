# Domain Models
from rental.models.entities import (
    Customer, Booking, Invoice, InvoiceLineItem,
    BookingStatus, PaymentStatus, LineItemType
)

__all__ = [
    'Customer', 'Booking', 'Invoice', 'InvoiceLineItem',
    'BookingStatus', 'PaymentStatus', 'LineItemType'
]
