"""
Centralized DOM schema for the amenity reservation site.

All CSS selectors used by the automation layer are defined here as named
constants, grouped by page. Fallback chains (tried in priority order, first
match wins) are tuples of strings.

When the site changes its markup, update selectors ONLY in this file.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LoginSelectors:
    """Selectors for the sign-in form."""

    username_inputs: tuple[str, ...] = (
        'input[type="text"]',
        'input[name="UserName"]',
        'input[id*="UserName"]',
        'input[name="email"]',
        'input[id*="email"]',
    )
    password_inputs: tuple[str, ...] = (
        'input[type="password"]',
        'input[name="password"]',
        'input[id*="password"]',
    )
    submit_buttons: tuple[str, ...] = (
        'button[type="submit"]',
        'button[id*="submit-sign-in"]',
        'input[type="submit"]',
    )
    # The page is still on the sign-in form if the URL contains any of these
    login_path_markers: tuple[str, ...] = ("logon", "login")
    validation_errors: tuple[str, ...] = (
        ".validation-summary-errors",
        ".alert-danger",
        ".error-message",
    )


@dataclass(frozen=True)
class ReservationListSelectors:
    """Selectors for the upcoming reservations table and its pagination."""

    container: str = "#upcoming-resv"
    tables: tuple[str, ...] = (
        "table.reservation-list.secondary-list",
        "table.reservation-list",
        "table.secondary-list",
        "table[class*='reservation']",
        "table[class*='list']",
        "table",
    )
    rows: str = "tbody tr"
    date_cell: str = "td.resv-date span"
    time_cell: str = "td.resv-time span"
    load_more_buttons: tuple[str, ...] = (
        "#more-messages #get-more",
        "#get-more",
        "a[id='get-more']",
        "button[id='get-more']",
        "a[href*='more']",
    )
    # Prefix length of the first table's HTML compared between pages
    change_probe_length: int = 500


@dataclass(frozen=True)
class BookingFormSelectors:
    """Selectors for the new-reservation form and its jQuery UI date picker."""

    date_input: str = "#resv-date"
    datepicker: str = "#ui-datepicker-div"
    calendar: str = ".ui-datepicker-calendar"
    day_cells: str = '.ui-datepicker-calendar td[data-handler="selectDay"]'
    start_time: str = "#SelStartTime"
    end_time: str = "#SelEndTime"
    submit_button: str = "#submit-new-reservation"
    success_indicators: tuple[str, ...] = (
        ".success-message",
        ".booking-confirmed",
        ".alert-success",
    )
    error_indicators: tuple[str, ...] = (
        ".validation-summary-errors",
        ".alert-danger",
        ".field-validation-error",
    )


@dataclass(frozen=True)
class AmenityDOMSchema:
    """Top-level container grouping all selector categories."""

    LOGIN: LoginSelectors = LoginSelectors()
    RESERVATIONS: ReservationListSelectors = ReservationListSelectors()
    BOOKING: BookingFormSelectors = BookingFormSelectors()


# Single import point: `from courtbot.drivers.amenity_dom_schema import DOM`
DOM = AmenityDOMSchema()
