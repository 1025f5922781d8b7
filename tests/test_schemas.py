"""
Tests for Pydantic schemas in courtbot/models/schemas.py.

These tests verify that all data models work correctly with valid data
and properly validate field constraints.
"""

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError

from courtbot.models.schemas import (
    BookingOutcome,
    BookingRequest,
    BookingResult,
    CheckResult,
    Credentials,
    DateWindowEntry,
    DayResult,
    FormattedBooking,
    TimeSlot,
)


class TestCredentials:
    """Tests for Credentials model."""

    def test_password_hidden_from_repr(self) -> None:
        """Test that the password never appears in repr output."""
        creds = Credentials(id=1, email="resident@example.com", password="hunter2")

        assert "hunter2" not in repr(creds)
        assert "resident@example.com" in repr(creds)

    def test_frozen(self) -> None:
        creds = Credentials(id=1, email="resident@example.com", password="hunter2")

        with pytest.raises(ValidationError):
            creds.email = "other@example.com"


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_valid_slot(self) -> None:
        slot = TimeSlot(start_hour=17, end_hour=18, formatted="5:00 PM - 6:00 PM")
        assert slot.start_hour == 17

    @pytest.mark.parametrize("hour", [-1, 24])
    def test_hour_bounds(self, hour: int) -> None:
        """Test that hours outside 0-23 are rejected."""
        with pytest.raises(ValidationError):
            TimeSlot(start_hour=hour, end_hour=12, formatted="x")


class TestDateWindowEntry:
    def test_full_date(self) -> None:
        entry = DateWindowEntry(
            date=date(2025, 9, 6), day_of_week="Saturday", month_name="September", day=6, year=2025
        )

        assert entry.full_date == "Saturday September 6, 2025"


class TestResults:
    """Tests for check and booking result models."""

    def test_check_result_defaults(self) -> None:
        result = CheckResult(success=True, checked_at=datetime(2025, 9, 5, tzinfo=UTC))

        assert result.dates == []
        assert result.total_available_slots == 0
        assert result.fallback_mode is False
        assert result.message is None

    def test_day_result_defaults(self) -> None:
        day = DayResult(date="Saturday September 6, 2025", total_slots=12, checked_at=datetime.now(UTC))

        assert day.booked == []
        assert day.available == []
        assert day.fallback_mode is False

    def test_check_result_json_round_trip(self) -> None:
        """Test that the stored JSON form restores the same model."""
        result = CheckResult(
            success=True,
            dates=[
                DayResult(
                    date="Saturday September 6, 2025",
                    booked=["5:00 PM - 6:00 PM"],
                    available=["6:00 PM - 7:00 PM"],
                    total_slots=12,
                    checked_at=datetime(2025, 9, 5, 12, tzinfo=UTC),
                )
            ],
            total_available_slots=1,
            checked_at=datetime(2025, 9, 5, 12, tzinfo=UTC),
        )

        assert CheckResult.model_validate_json(result.model_dump_json()) == result

    def test_booking_result(self) -> None:
        request = BookingRequest(
            date=date(2025, 9, 6),
            time=TimeSlot(start_hour=17, end_hour=18, formatted="5:00 PM - 6:00 PM"),
            formatted=FormattedBooking(date="Saturday, September 06, 2025", time="5:00 PM - 6:00 PM"),
        )

        result = BookingResult(success=True, booking_request=request, result=BookingOutcome(message="ok"))

        assert result.retryable is False
        assert result.error is None
        assert result.result.confirmed is True
