"""
Slot model for the amenity reservation calendar.

Pure functions that turn a scraped ``BookedIndex`` and a forward-looking date
window into per-day booked/available slot lists. Slot labels are compared as
exact strings: the site's own labels are the unit of comparison, so any drift
between the labels generated here and the scraped text shows up as a wrong
classification rather than being silently normalized away.
"""

import logging
from datetime import UTC, date, datetime, timedelta

import pytz

from courtbot.models.schemas import (
    BookingRequest,
    CheckResult,
    DateWindowEntry,
    DayResult,
    FormattedBooking,
    TimeSlot,
)

logger = logging.getLogger(__name__)

START_HOUR = 10
END_HOUR = 22
DEFAULT_TIMEZONE = "America/New_York"

# Raw scraped date label (no year) -> raw scraped time labels.
BookedIndex = dict[str, set[str]]


def to_12_hour_label(hour: int) -> str:
    """
    Convert a 24-hour integer hour to the site's 12-hour label.

    0 -> "12:00 AM", 9 -> "9:00 AM", 12 -> "12:00 PM", 13 -> "1:00 PM".
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour out of range: {hour}")
    suffix = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:00 {suffix}"


def slot_label(start_hour: int, end_hour: int) -> str:
    return f"{to_12_hour_label(start_hour)} - {to_12_hour_label(end_hour)}"


def canonical_slots() -> list[TimeSlot]:
    """One slot per hour in [START_HOUR, END_HOUR)."""
    return [
        TimeSlot(start_hour=hour, end_hour=hour + 1, formatted=slot_label(hour, hour + 1))
        for hour in range(START_HOUR, END_HOUR)
    ]


def canonical_labels() -> list[str]:
    return [slot.formatted for slot in canonical_slots()]


def date_window(
    days: int = 7, today: date | None = None, tz: str = DEFAULT_TIMEZONE
) -> list[DateWindowEntry]:
    """
    Build the window of ``days`` dates starting tomorrow.

    "Today" is read in the reference time zone so the window does not drift
    with the host clock.

    Args:
        days: Number of days in the window (7 or 10 in practice)
        today: Override for the current date; defaults to now in ``tz``
        tz: IANA time zone name used to resolve "today"

    Returns:
        One DateWindowEntry per day, in order.
    """
    if today is None:
        today = datetime.now(pytz.timezone(tz)).date()

    entries = []
    for offset in range(1, days + 1):
        day = today + timedelta(days=offset)
        entries.append(
            DateWindowEntry(
                date=day,
                day_of_week=day.strftime("%A"),
                month_name=day.strftime("%B"),
                day=day.day,
                year=day.year,
            )
        )

    if entries and entries[0].year != entries[-1].year:
        # Scraped rows carry no year, so matching is by month and day only.
        logger.warning(
            f"Date window {entries[0].date} to {entries[-1].date} crosses a year boundary; "
            f"reservation rows are matched by month and day only"
        )

    return entries


def _parse_month_day(label: str) -> tuple[str, int] | None:
    """Parse "Saturday, September 06" into ("September", 6)."""
    parts = label.split(", ")
    if len(parts) < 2:
        return None
    month_day = parts[1].strip().split(" ")
    if len(month_day) < 2:
        return None
    try:
        return month_day[0], int(month_day[1])
    except ValueError:
        return None


def dates_match(label: str, entry: DateWindowEntry) -> bool:
    parsed = _parse_month_day(label)
    if parsed is None:
        logger.debug(f"Unparseable reservation date label: {label!r}")
        return False
    month, day = parsed
    return month.lower() == entry.month_name.lower() and day == entry.day


def for_day(
    entry: DateWindowEntry,
    index: BookedIndex,
    checked_at: datetime | None = None,
) -> DayResult:
    """
    Classify every canonical slot for one day as booked or available.

    The first index key whose month name and day number match ``entry`` wins;
    its time labels become ``booked`` verbatim. ``available`` is the
    canonical labels minus that set, in canonical order.
    """
    labels = canonical_labels()
    booked_set: set[str] = set()
    for key, times in index.items():
        if dates_match(key, entry):
            booked_set = set(times)
            break

    # Canonical order first, then any scraped labels outside the canonical set.
    booked = [label for label in labels if label in booked_set]
    booked += sorted(booked_set.difference(labels))
    available = [label for label in labels if label not in booked_set]

    return DayResult(
        date=entry.full_date,
        booked=booked,
        available=available,
        total_slots=len(labels),
        checked_at=checked_at or datetime.now(UTC),
    )


def build_check_result(
    entries: list[DateWindowEntry],
    index: BookedIndex,
    account_id: int | None = None,
) -> CheckResult:
    checked_at = datetime.now(UTC)
    days = [for_day(entry, index, checked_at) for entry in entries]
    return CheckResult(
        success=True,
        dates=days,
        total_available_slots=sum(len(day.available) for day in days),
        checked_at=checked_at,
        account_id=account_id,
    )


def fallback_check_result(
    entries: list[DateWindowEntry],
    reason: str,
    account_id: int | None = None,
) -> CheckResult:
    """
    Build the degraded result returned when no browser could be acquired.

    Every day reports no booked and no available slots; availability is
    unknown rather than zero.
    """
    checked_at = datetime.now(UTC)
    total = len(canonical_slots())
    days = [
        DayResult(
            date=entry.full_date,
            booked=[],
            available=[],
            total_slots=total,
            checked_at=checked_at,
            fallback_mode=True,
        )
        for entry in entries
    ]
    return CheckResult(
        success=True,
        dates=days,
        total_available_slots=0,
        checked_at=checked_at,
        fallback_mode=True,
        message=f"Chrome unavailable, availability unknown: {reason}",
        account_id=account_id,
    )


def booking_request_for(
    target_date: date, start_hour: int, end_hour: int | None = None
) -> BookingRequest:
    """Build a request for the one-hour slot at ``start_hour`` (or an explicit end)."""
    end = start_hour + 1 if end_hour is None else end_hour
    if end <= start_hour:
        raise ValueError(f"End hour {end} must be after start hour {start_hour}")
    label = slot_label(start_hour, end)
    return BookingRequest(
        date=target_date,
        time=TimeSlot(start_hour=start_hour, end_hour=end, formatted=label),
        formatted=FormattedBooking(date=target_date.strftime("%A, %B %d, %Y"), time=label),
    )
