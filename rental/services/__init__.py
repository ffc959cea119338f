# Business Services
from rental.services.booking_service import BookingService
from rental.services.checkout_service import CheckOutService, CheckOutResult
from rental.services.unit_of_work import UnitOfWork

__all__ = ['BookingService', 'CheckOutService', 'CheckOutResult', 'UnitOfWork']
