from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from courtbot.api.availability import verify_api_secret
from courtbot.models.schemas import BookingResult
from courtbot.services.booking_service import booking_service
from courtbot.services.database_service import database_service
from courtbot.services.slot_model import booking_request_for

router = APIRouter(prefix="/bookings", tags=["bookings"])


class CreateBookingRequest(BaseModel):
    account_id: int | None = None
    date: date
    start_hour: int = Field(..., ge=0, le=22)
    end_hour: int | None = Field(None, ge=1, le=23)


class BookingAttemptResponse(BaseModel):
    id: int
    account_id: int | None
    source: str
    booking_date: date
    start_hour: int
    end_hour: int
    time_label: str
    success: bool
    confirmed: bool
    retryable: bool
    message: str | None = None
    error: str | None = None
    created_at: datetime | None = None


@router.post("/", response_model=BookingResult)
async def create_booking(
    request: CreateBookingRequest,
    _: None = Depends(verify_api_secret),
) -> BookingResult:
    """Book a slot now. Infrastructure failures come back with retryable=true."""
    try:
        booking_request = booking_request_for(request.date, request.start_hour, request.end_hour)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return await booking_service.book_time_slot(request.account_id, booking_request)


@router.get("/", response_model=list[BookingAttemptResponse])
async def list_bookings(
    account_id: int | None = None, success: bool | None = None, limit: int = 50
) -> list[BookingAttemptResponse]:
    records = await database_service.get_booking_attempts(
        account_id=account_id, success=success, limit=limit
    )

    return [
        BookingAttemptResponse(
            id=r.id,
            account_id=r.account_id,
            source=r.source,
            booking_date=r.booking_date,
            start_hour=r.start_hour,
            end_hour=r.end_hour,
            time_label=r.time_label,
            success=r.success,
            confirmed=r.confirmed,
            retryable=r.retryable,
            message=r.message,
            error=r.error,
            created_at=r.created_at,
        )
        for r in records
    ]
