from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    password: str = Field(..., repr=False)


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=23)
    formatted: str = Field(..., description='Human label, e.g. "5:00 PM - 6:00 PM"')


class DateWindowEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    day_of_week: str
    month_name: str
    day: int
    year: int

    @property
    def full_date(self) -> str:
        return f"{self.day_of_week} {self.month_name} {self.day}, {self.year}"


class DayResult(BaseModel):
    date: str = Field(..., description="Formatted day label")
    booked: list[str] = Field(default_factory=list)
    available: list[str] = Field(default_factory=list)
    total_slots: int
    checked_at: datetime
    fallback_mode: bool = False


class CheckResult(BaseModel):
    success: bool
    dates: list[DayResult] = Field(default_factory=list)
    total_available_slots: int = 0
    checked_at: datetime
    fallback_mode: bool = False
    message: str | None = None
    account_id: int | None = None


class FormattedBooking(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    time: str


class BookingRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    time: TimeSlot
    formatted: FormattedBooking


class BookingOutcome(BaseModel):
    message: str
    confirmed: bool = True


class BookingResult(BaseModel):
    success: bool
    booking_request: BookingRequest
    result: BookingOutcome | None = None
    error: str | None = None
    retryable: bool = False
