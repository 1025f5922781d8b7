"""
DOM Parsing Tests using HTML fixtures.

These tests validate that the selectors in amenity_dom_schema work against
markup shaped like the amenity reservation site, without needing live access.
The checked-in samples mirror the structure of live snapshots taken with
scripts/capture_html_snapshots.py.
"""

from datetime import date
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from courtbot.automation.availability_scraper import find_reservation_table, parse_reservations
from courtbot.drivers.amenity_dom_schema import DOM
from courtbot.models.schemas import DateWindowEntry
from courtbot.services.slot_model import BookedIndex, canonical_labels, for_day

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(*names: str) -> str:
    for name in names:
        html_path = FIXTURES_DIR / f"{name}.html"
        if html_path.exists():
            return html_path.read_text(encoding="utf-8")
    pytest.skip(f"None of {names} found. Run capture_html_snapshots.py first.")


@pytest.fixture
def login_page_html() -> BeautifulSoup:
    """Load the sign-in page HTML fixture."""
    return BeautifulSoup(load_fixture("amenity_login_sample"), "html.parser")


@pytest.fixture
def reservations_html() -> str:
    """Load the amenity page HTML fixture."""
    return load_fixture("amenity_reservations_sample")


def first_match(soup: BeautifulSoup, candidates: tuple[str, ...]) -> str | None:
    for candidate in candidates:
        if soup.select(candidate):
            return candidate
    return None


class TestLoginPageSelectors:
    """Tests for sign-in page selectors."""

    def test_username_input_resolves(self, login_page_html: BeautifulSoup) -> None:
        """The first username candidate should hit the email field."""
        selector = first_match(login_page_html, DOM.LOGIN.username_inputs)
        assert selector is not None
        assert login_page_html.select(selector)[0].get("id") == "UserName"

    def test_password_input_resolves(self, login_page_html: BeautifulSoup) -> None:
        selector = first_match(login_page_html, DOM.LOGIN.password_inputs)
        assert selector is not None
        assert login_page_html.select(selector)[0].get("type") == "password"

    def test_submit_button_resolves(self, login_page_html: BeautifulSoup) -> None:
        selector = first_match(login_page_html, DOM.LOGIN.submit_buttons)
        assert selector is not None
        assert login_page_html.select(selector)[0].get_text(strip=True) == "Sign In"

    def test_no_validation_error_on_clean_page(self, login_page_html: BeautifulSoup) -> None:
        assert first_match(login_page_html, DOM.LOGIN.validation_errors) is None


class TestReservationTableSelectors:
    """Tests for the upcoming reservations table."""

    def test_table_found_in_container(self, reservations_html: str) -> None:
        soup = BeautifulSoup(reservations_html, "html.parser")
        table = find_reservation_table(soup)

        assert table is not None
        assert "reservation-list" in table.get("class", [])

    def test_rows_parsed_with_date_carry_forward(self, reservations_html: str) -> None:
        """Rows without a date cell belong to the previous date."""
        pairs, probe = parse_reservations(reservations_html)

        assert pairs == [
            ("Saturday, September 06", "5:00 PM - 6:00 PM"),
            ("Saturday, September 06", "7:00 PM - 8:00 PM"),
            ("Monday, September 08", "10:00 AM - 11:00 AM"),
        ]
        assert 0 < len(probe) <= DOM.RESERVATIONS.change_probe_length

    def test_load_more_control(self, reservations_html: str) -> None:
        soup = BeautifulSoup(reservations_html, "html.parser")
        assert first_match(soup, DOM.RESERVATIONS.load_more_buttons) == "#more-messages #get-more"


class TestScrapedLabelsMatchSlotModel:
    """Scraped time labels must be spelled exactly like the canonical slot labels."""

    @pytest.fixture
    def index(self, reservations_html: str) -> BookedIndex:
        pairs, _ = parse_reservations(reservations_html)
        booked: BookedIndex = {}
        for date_label, time_label in pairs:
            booked.setdefault(date_label, set()).add(time_label)
        return booked

    def test_every_scraped_time_is_canonical(self, index: BookedIndex) -> None:
        labels = set(canonical_labels())
        for times in index.values():
            assert times <= labels

    def test_booked_rows_flow_into_day_result(self, index: BookedIndex) -> None:
        """A day's rows on the page come out as that day's booked slots, in canonical order."""
        entry = DateWindowEntry(
            date=date(2025, 9, 6), day_of_week="Saturday", month_name="September", day=6, year=2025
        )

        result = for_day(entry, index)

        assert result.booked == ["5:00 PM - 6:00 PM", "7:00 PM - 8:00 PM"]
        assert sorted(result.booked + result.available) == sorted(canonical_labels())
        assert not set(result.booked) & set(result.available)

    def test_day_without_rows_is_fully_available(self, index: BookedIndex) -> None:
        entry = DateWindowEntry(
            date=date(2025, 9, 7), day_of_week="Sunday", month_name="September", day=7, year=2025
        )

        result = for_day(entry, index)

        assert result.booked == []
        assert result.available == canonical_labels()


class TestBookingFormSelectors:
    """Tests for the new-reservation form."""

    @pytest.fixture
    def soup(self, reservations_html: str) -> BeautifulSoup:
        return BeautifulSoup(reservations_html, "html.parser")

    @pytest.mark.parametrize(
        "selector",
        [
            DOM.BOOKING.date_input,
            DOM.BOOKING.datepicker,
            DOM.BOOKING.calendar,
            DOM.BOOKING.start_time,
            DOM.BOOKING.end_time,
            DOM.BOOKING.submit_button,
        ],
    )
    def test_form_elements_exist(self, soup: BeautifulSoup, selector: str) -> None:
        assert len(soup.select(selector)) == 1

    def test_selectable_day_cells(self, soup: BeautifulSoup) -> None:
        """Only selectable days carry data-handler, with a 0-based month."""
        cells = soup.select(DOM.BOOKING.day_cells)

        assert [cell.a.get_text() for cell in cells] == ["6", "7", "8"]
        assert all(cell["data-month"] == "8" for cell in cells)

    def test_time_options_use_12_hour_labels(self, soup: BeautifulSoup) -> None:
        values = [opt["value"] for opt in soup.select(f"{DOM.BOOKING.start_time} option") if opt["value"]]

        assert "5:00 PM" in values
        assert "10:00 AM" in values
