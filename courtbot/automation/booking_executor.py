import logging
import tempfile
from datetime import datetime
from enum import Enum
from pathlib import Path

from courtbot.automation.errors import CourtbotError, DateNotFoundError, SessionLossError
from courtbot.config import settings
from courtbot.drivers.amenity_dom_schema import DOM, BookingFormSelectors
from courtbot.drivers.base import Driver
from courtbot.drivers.wait_helper import WaitStrategy
from courtbot.models.schemas import BookingOutcome, BookingRequest
from courtbot.services.slot_model import to_12_hour_label

logger = logging.getLogger(__name__)

# data-month is 0-based in the jQuery UI date picker. The click goes to the cell;
# the widget delegates it from the td to its day handler.
SELECT_DAY_SCRIPT = """(selector, month, year, day) => {
    const cells = document.querySelectorAll(selector);
    for (const cell of cells) {
        const link = cell.querySelector('a');
        if (!link) continue;
        if (cell.getAttribute('data-month') === String(month) &&
            cell.getAttribute('data-year') === String(year) &&
            link.textContent.trim() === String(day)) {
            cell.click();
            return true;
        }
    }
    return false;
}"""

READ_TEXT_SCRIPT = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.textContent.trim() : null;
}"""

REDIRECTED_MESSAGE = "Booking completed successfully"
UNCONFIRMED_MESSAGE = "Booking completed (no confirmation message found)"


def option_selector(select_selector: str, label: str) -> str:
    return f'{select_selector} option[value="{label}"]'


class BookingStep(str, Enum):
    NAVIGATE_CALENDAR = "navigate_calendar"
    SELECT_DAY = "select_day"
    SELECT_TIMES = "select_times"
    SUBMIT = "submit"


class BookingExecutor:
    """
    Fills in and submits the new-reservation form for one BookingRequest.

    Steps run in order and the first failure is terminal:
    NAVIGATE_CALENDAR -> SELECT_DAY -> SELECT_TIMES -> SUBMIT.
    The driver must already be logged in and on the amenity page.
    """

    def __init__(
        self,
        selectors: BookingFormSelectors = DOM.BOOKING,
        selector_timeout: float | None = None,
        settle_seconds: float | None = None,
        wait_strategy: WaitStrategy | None = None,
        diagnostics_dir: Path | None = None,
    ) -> None:
        self.selectors = selectors
        self.selector_timeout = (
            settings.selector_timeout_seconds if selector_timeout is None else selector_timeout
        )
        self.settle_seconds = (
            settings.booking_settle_seconds if settle_seconds is None else settle_seconds
        )
        self.wait_strategy = wait_strategy or WaitStrategy()
        self.diagnostics_dir = diagnostics_dir or Path(tempfile.gettempdir())
        self.current_step: BookingStep | None = None

    async def execute(self, driver: Driver, request: BookingRequest) -> BookingOutcome:
        """
        Run the booking flow.

        Raises:
            DateNotFoundError: The target day is not selectable in the calendar.
            SelectorNotFoundError: A form element never appeared.
            SessionLossError: The browser session died; left for the caller to retry.
        """
        logger.info(f"Booking {request.formatted.date} {request.formatted.time}")
        try:
            self.current_step = BookingStep.NAVIGATE_CALENDAR
            await self._navigate_calendar(driver)

            self.current_step = BookingStep.SELECT_DAY
            await self._select_day(driver, request)

            self.current_step = BookingStep.SELECT_TIMES
            await self._select_times(driver, request)

            self.current_step = BookingStep.SUBMIT
            return await self._submit(driver)
        except SessionLossError:
            raise
        except CourtbotError as e:
            logger.error(f"Booking failed at step {self.current_step.value}: {e}")
            await self._capture_diagnostic_info(driver, self.current_step.value)
            raise

    async def _navigate_calendar(self, driver: Driver) -> None:
        await driver.wait_for_selector(self.selectors.date_input, timeout=self.selector_timeout)
        await driver.click(self.selectors.date_input)
        await driver.wait_for_selector(
            self.selectors.datepicker, timeout=self.selector_timeout, visible=True
        )
        await driver.wait_for_selector(self.selectors.calendar, timeout=self.selector_timeout)

    async def _select_day(self, driver: Driver, request: BookingRequest) -> None:
        target = request.date
        found = await driver.evaluate(
            SELECT_DAY_SCRIPT, self.selectors.day_cells, target.month - 1, target.year, target.day
        )
        if not found:
            raise DateNotFoundError(f"{request.formatted.date} is not selectable in the calendar")
        logger.debug(f"Selected calendar day {target.isoformat()}")

    async def _select_times(self, driver: Driver, request: BookingRequest) -> None:
        start_label = to_12_hour_label(request.time.start_hour)
        end_label = to_12_hour_label(request.time.end_hour)

        # Options are filled in only after a day is picked
        for selector, label in (
            (self.selectors.start_time, start_label),
            (self.selectors.end_time, end_label),
        ):
            await driver.wait_for_selector(selector, timeout=self.selector_timeout)
            await driver.wait_for_selector(option_selector(selector, label), timeout=self.selector_timeout)
            await driver.select_option(selector, label)
        logger.debug(f"Selected times {start_label} to {end_label}")

    async def _submit(self, driver: Driver) -> BookingOutcome:
        await driver.click(self.selectors.submit_button)
        await self.wait_strategy.wait_after_action(
            driver,
            fixed_duration=self.settle_seconds,
            wait_condition=", ".join(self.selectors.success_indicators),
            timeout=self.selector_timeout,
        )

        for selector in self.selectors.success_indicators:
            if await driver.query(selector):
                text = await driver.evaluate(READ_TEXT_SCRIPT, selector)
                logger.info(f"Booking confirmed via {selector}")
                return BookingOutcome(message=text or REDIRECTED_MESSAGE, confirmed=True)

        if not await driver.query(self.selectors.submit_button):
            logger.info("Booking form is gone after submit; treating as confirmed")
            return BookingOutcome(message=REDIRECTED_MESSAGE, confirmed=True)

        for selector in self.selectors.error_indicators:
            if await driver.query(selector):
                text = await driver.evaluate(READ_TEXT_SCRIPT, selector)
                if text:
                    logger.warning(f"Booking form shows {selector}: {text}")

        logger.warning("No confirmation found and booking form still present")
        return BookingOutcome(message=UNCONFIRMED_MESSAGE, confirmed=False)

    async def _capture_diagnostic_info(self, driver: Driver, context: str) -> None:
        """Save a screenshot and page HTML for a failed step; never raises."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        screenshot_path = self.diagnostics_dir / f"courtbot_debug_{context}_{timestamp}.png"
        html_path = self.diagnostics_dir / f"courtbot_debug_{context}_{timestamp}.html"
        try:
            await driver.screenshot(str(screenshot_path))
            html_path.write_text(await driver.content(), encoding="utf-8")
            logger.info(f"Saved debug screenshot to {screenshot_path} and HTML to {html_path}")
        except (CourtbotError, OSError) as e:
            logger.warning(f"Failed to capture diagnostic info: {e}")
