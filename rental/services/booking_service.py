"""
预订状态服务 - 入住与取消
与退房相同，状态迁移都走带守卫的条件更新
"""
from datetime import datetime
from typing import Callable
import logging

from sqlalchemy.orm import Session

from rental.models.events import EventType, BookingCheckedInData, BookingCancelledData
from rental.services.event_bus import event_bus, Event
from rental.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class BookingService:
    """入住 / 取消"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = None,
        event_publisher: Callable[[Event], None] = None
    ):
        self._session_factory = session_factory
        self._publish_event = event_publisher or event_bus.publish

    def check_in(self, booking_id: int) -> datetime:
        """
        办理入住：RESERVED -> CHECKED_IN

        Raises:
            ValueError: 预订不存在或不在已预订状态
        """
        checked_in_at = datetime.now()
        with UnitOfWork(self._session_factory) as uow:
            if uow.bookings.check_in(booking_id, checked_in_at) == 0:
                raise ValueError(self._reject_reason(uow, booking_id, "入住"))
            customer_id = uow.bookings.get_financials(booking_id).customer_id

        logger.info(f"Booking {booking_id} checked in")
        self._publish_event(Event(
            event_type=EventType.BOOKING_CHECKED_IN,
            data=BookingCheckedInData(
                booking_id=booking_id,
                customer_id=customer_id,
                check_in_time=checked_in_at,
            ).to_dict(),
            source="booking_service"
        ))
        return checked_in_at

    def cancel(self, booking_id: int) -> None:
        """
        取消预订：RESERVED -> CANCELLED

        Raises:
            ValueError: 预订不存在或不在已预订状态
        """
        with UnitOfWork(self._session_factory) as uow:
            if uow.bookings.cancel(booking_id) == 0:
                raise ValueError(self._reject_reason(uow, booking_id, "取消"))

        logger.info(f"Booking {booking_id} cancelled")
        self._publish_event(Event(
            event_type=EventType.BOOKING_CANCELLED,
            data=BookingCancelledData(booking_id=booking_id).to_dict(),
            source="booking_service"
        ))

    def _reject_reason(self, uow: UnitOfWork, booking_id: int, action: str) -> str:
        status = uow.bookings.get_status(booking_id)
        if status is None:
            return "预订不存在"
        return f"预订当前状态为 {status.value}，无法{action}"
