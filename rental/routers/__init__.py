# API Routers
from rental.routers import bookings, checkout

__all__ = ['bookings', 'checkout']
