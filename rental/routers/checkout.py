"""
退房结算路由
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from rental.database import get_session_factory
from rental.models.schemas import (
    BookingResponse, CheckOutRequest, CheckOutResponse, CheckOutErrorDetail
)
from rental.services.checkout_service import CheckOutService
from rental.services.errors import CheckOutError, CheckOutErrorCode

router = APIRouter(prefix="/checkout", tags=["退房结算"])

_STATUS_BY_CODE = {
    CheckOutErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CheckOutErrorCode.NOT_CHECKED_IN: status.HTTP_409_CONFLICT,
    CheckOutErrorCode.CUSTOMER_NOT_FOUND: status.HTTP_409_CONFLICT,
    CheckOutErrorCode.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _to_http_error(e: CheckOutError) -> HTTPException:
    detail = CheckOutErrorDetail(code=e.code.value, message=e.message, retryable=e.retryable)
    return HTTPException(status_code=_STATUS_BY_CODE[e.code], detail=detail.model_dump())


@router.post("", response_model=CheckOutResponse)
def check_out(
    data: CheckOutRequest,
    session_factory=Depends(get_session_factory)
):
    """退房"""
    service = CheckOutService(session_factory)
    try:
        result = service.check_out(data.booking_id)
    except CheckOutError as e:
        raise _to_http_error(e)
    return CheckOutResponse.model_validate(result)


@router.post("/batch")
def batch_check_out(
    booking_ids: List[int],
    session_factory=Depends(get_session_factory)
):
    """批量退房"""
    service = CheckOutService(session_factory)
    return {"results": service.batch_check_out(booking_ids)}


@router.get("/today-expected", response_model=List[BookingResponse])
def get_today_expected_checkouts(session_factory=Depends(get_session_factory)):
    """今日预计退房"""
    return CheckOutService(session_factory).get_today_expected_checkouts()


@router.get("/overdue", response_model=List[BookingResponse])
def get_overdue_stays(session_factory=Depends(get_session_factory)):
    """逾期未退房"""
    return CheckOutService(session_factory).get_overdue_stays()
