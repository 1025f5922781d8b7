import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from courtbot.config import settings
from courtbot.drivers.amenity_dom_schema import DOM, ReservationListSelectors
from courtbot.drivers.base import Driver
from courtbot.drivers.wait_helper import WaitStrategy
from courtbot.services.slot_model import BookedIndex

logger = logging.getLogger(__name__)


@dataclass
class ScrapeStats:
    """Counters from the most recent scrape, for logging and tests."""

    pages: int = 0
    clicks: int = 0
    rows: int = 0
    stalled_pages: int = 0
    hit_cap: bool = False


def find_reservation_table(
    soup: BeautifulSoup, selectors: ReservationListSelectors = DOM.RESERVATIONS
) -> Tag | None:
    """Return the first table matching the candidate list, searched inside the container first."""
    scope = soup.select_one(selectors.container) or soup
    for candidate in selectors.tables:
        table = scope.select_one(candidate)
        if table is not None:
            return table
    return None


def parse_reservations(
    html: str, selectors: ReservationListSelectors = DOM.RESERVATIONS
) -> tuple[list[tuple[str, str]], str]:
    """
    Extract (date label, time label) pairs from the reservation table.

    Date cells appear only on the first row of each day's group; following
    rows inherit the last date seen.

    Returns:
        The pairs in table order, and a prefix of the table's inner HTML used
        to detect whether pagination actually changed the table.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = find_reservation_table(soup, selectors)
    if table is None:
        return [], ""

    pairs: list[tuple[str, str]] = []
    current_date: str | None = None
    rows = table.select(selectors.rows) or table.select("tr")
    for row in rows:
        date_cell = row.select_one(selectors.date_cell)
        if date_cell is not None:
            date_text = date_cell.get_text().strip()
            if date_text:
                current_date = date_text

        time_cell = row.select_one(selectors.time_cell)
        if time_cell is None or current_date is None:
            continue
        time_text = time_cell.get_text().strip()
        if time_text:
            pairs.append((current_date, time_text))

    probe = table.decode_contents()[: selectors.change_probe_length]
    return pairs, probe


class AvailabilityScraper:
    """
    Loads every page of the upcoming-reservations table into a BookedIndex.

    The listing shows a first page plus a "load more" control. The scraper
    re-reads the whole table after every click and merges it into the index,
    so rows repeated across pages collapse by set semantics.
    """

    def __init__(
        self,
        selectors: ReservationListSelectors = DOM.RESERVATIONS,
        max_clicks: int | None = None,
        settle_seconds: float | None = None,
        table_timeout: float | None = None,
        wait_strategy: WaitStrategy | None = None,
    ) -> None:
        self.selectors = selectors
        self.max_clicks = settings.load_more_max_clicks if max_clicks is None else max_clicks
        self.settle_seconds = (
            settings.load_more_settle_seconds if settle_seconds is None else settle_seconds
        )
        self.table_timeout = (
            settings.default_timeout_seconds if table_timeout is None else table_timeout
        )
        self.wait_strategy = wait_strategy or WaitStrategy()
        self.last_stats = ScrapeStats()

    async def load_all_reservations(self, driver: Driver) -> BookedIndex:
        """
        Paginate through the reservation table and index booked slots by date label.

        Raises:
            SelectorNotFoundError: No reservation table rendered.
            SessionLossError: The browser session died mid-scrape.
        """
        table_selector = await driver.resolve_field(self.selectors.tables, timeout=self.table_timeout)
        logger.info(f"Reservation table found via {table_selector!r}")

        index: BookedIndex = {}
        stats = ScrapeStats()
        self.last_stats = stats
        previous_probe: str | None = None

        while True:
            pairs, probe = parse_reservations(await driver.content(), self.selectors)
            stats.pages += 1
            stats.rows += len(pairs)
            for date_label, time_label in pairs:
                index.setdefault(date_label, set()).add(time_label)

            if previous_probe is not None and probe == previous_probe:
                stats.stalled_pages += 1
                logger.warning(
                    f"Reservation table unchanged after load-more click {stats.clicks}; "
                    f"pagination may not have advanced"
                )
            previous_probe = probe

            load_more = await self._visible_load_more(driver)
            if load_more is None:
                logger.debug("No visible load-more control; all reservations loaded")
                break
            if stats.clicks >= self.max_clicks:
                stats.hit_cap = True
                logger.warning(f"Stopped after {self.max_clicks} load-more clicks (safety cap)")
                break

            await driver.click(load_more)
            stats.clicks += 1
            logger.debug(f"Clicked load-more ({stats.clicks}/{self.max_clicks})")
            await self.wait_strategy.wait_after_action(
                driver,
                fixed_duration=self.settle_seconds,
                wait_condition=table_selector,
                timeout=self.table_timeout,
            )

        logger.info(
            f"Loaded {stats.rows} reservation rows across {stats.pages} pages "
            f"({stats.clicks} clicks, {len(index)} dates, {stats.stalled_pages} stalled)"
        )
        return index

    async def _visible_load_more(self, driver: Driver) -> str | None:
        for selector in self.selectors.load_more_buttons:
            if await driver.is_visible(selector):
                return selector
        return None
