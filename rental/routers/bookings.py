"""
预订路由 - 查询、入住、取消
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from rental.database import get_db, get_session_factory
from rental.models.schemas import BookingResponse
from rental.services.booking_service import BookingService
from rental.services.booking_store import BookingStore

router = APIRouter(prefix="/bookings", tags=["预订管理"])


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    """获取预订"""
    booking = BookingStore(db).get(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return booking


@router.post("/{booking_id}/check-in")
def check_in(booking_id: int, session_factory=Depends(get_session_factory)):
    """办理入住"""
    try:
        checked_in_at = BookingService(session_factory).check_in(booking_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"message": "入住成功", "booking_id": booking_id, "checked_in_at": checked_in_at}


@router.post("/{booking_id}/cancel")
def cancel(booking_id: int, session_factory=Depends(get_session_factory)):
    """取消预订"""
    try:
        BookingService(session_factory).cancel(booking_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"message": "取消成功", "booking_id": booking_id}
