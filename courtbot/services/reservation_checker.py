"""
Availability check orchestration.

``check_availability`` acquires a browser, logs in, loads every page of the
reservation table and turns it into per-day slot results. It always returns a
CheckResult: a missing browser yields a fallback result and any other failure
yields ``success=False`` with a message.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from courtbot.automation.authenticator import Authenticator
from courtbot.automation.availability_scraper import AvailabilityScraper
from courtbot.automation.errors import (
    AccountNotConfiguredError,
    CourtbotError,
    ResourceConstraintError,
)
from courtbot.automation.resilience import ResilienceWrapper
from courtbot.config import get_credentials, settings
from courtbot.drivers.base import Driver
from courtbot.drivers.runtime_profile import RuntimeProfile, default_profile
from courtbot.drivers.session_manager import FallbackSignal, SessionManager
from courtbot.models.schemas import BookingResult, CheckResult, Credentials, DateWindowEntry
from courtbot.services.slot_model import (
    BookedIndex,
    build_check_result,
    date_window,
    fallback_check_result,
)

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    async def save(
        self, result: CheckResult | BookingResult, source: str, account_id: int | None = None
    ) -> int: ...


class ReservationChecker:
    """
    Runs one availability check per call.

    Collaborators are injectable so tests can swap in fakes; by default they
    are built from settings and the detected RuntimeProfile.
    """

    def __init__(
        self,
        profile: RuntimeProfile | None = None,
        session_manager_factory: Callable[[], SessionManager] | None = None,
        authenticator: Authenticator | None = None,
        scraper: AvailabilityScraper | None = None,
        sink: ResultSink | None = None,
        window_days: int | None = None,
    ) -> None:
        self.profile = profile
        self._session_manager_factory = session_manager_factory
        self.authenticator = authenticator or Authenticator()
        self.scraper = scraper or AvailabilityScraper()
        self.sink = sink
        self.window_days = settings.window_days if window_days is None else window_days

    def _new_session_manager(self) -> SessionManager:
        if self._session_manager_factory is not None:
            return self._session_manager_factory()
        return SessionManager(self.profile or default_profile())

    async def check(self, account_id: int | None = None, source: str = "manual") -> CheckResult:
        """
        Check availability for one account over the configured window.

        Args:
            account_id: Configured account to log in as; defaults to the first account.
            source: Label stored with the persisted result.

        Returns:
            The CheckResult. Never raises for automation failures.
        """
        entries = date_window(self.window_days, tz=settings.timezone)
        credentials = get_credentials(account_id)

        if credentials is None:
            error = AccountNotConfiguredError(
                f"Account {account_id} is not configured"
                if account_id is not None
                else "No accounts configured"
            )
            return CheckResult(
                success=False,
                checked_at=datetime.now(UTC),
                message=str(error),
                account_id=account_id,
            )

        try:
            result = await self._run(credentials, entries)
        except ResourceConstraintError as e:
            logger.error(f"Browser unavailable for account {credentials.id}: {e}")
            result = fallback_check_result(entries, str(e), credentials.id)
        except CourtbotError as e:
            logger.error(f"Availability check failed for account {credentials.id}: {e}")
            result = CheckResult(
                success=False,
                checked_at=datetime.now(UTC),
                message=f"{e.__class__.__name__}: {e}",
                account_id=credentials.id,
            )
        except Exception as e:
            logger.exception(f"Unexpected error checking availability for account {credentials.id}")
            result = CheckResult(
                success=False,
                checked_at=datetime.now(UTC),
                message=f"Unexpected error: {e}",
                account_id=credentials.id,
            )

        await self._persist(result, source, credentials.id)
        return result

    async def _run(self, credentials: Credentials, entries: list[DateWindowEntry]) -> CheckResult:
        async with self._new_session_manager() as manager:
            acquired = await manager.acquire("check")
            if isinstance(acquired, FallbackSignal):
                logger.warning(f"Running check in fallback mode: {acquired.reason}")
                return fallback_check_result(entries, acquired.reason, credentials.id)

            async def login_and_scrape(driver: Driver) -> BookedIndex:
                await self.authenticator.login(driver, credentials)
                return await self.scraper.load_all_reservations(driver)

            wrapper = ResilienceWrapper(manager)
            index = await wrapper.run(acquired, login_and_scrape, purpose="check")

        result = build_check_result(entries, index, credentials.id)
        logger.info(
            f"Account {credentials.id}: {result.total_available_slots} slots available "
            f"across {len(result.dates)} days"
        )
        return result

    async def _persist(self, result: CheckResult, source: str, account_id: int) -> None:
        if self.sink is None:
            return
        try:
            await self.sink.save(result, source, account_id)
        except Exception as e:
            logger.error(f"Failed to persist availability snapshot: {e}")


async def check_availability(
    account_id: int | None = None,
    source: str = "manual",
    sink: ResultSink | None = None,
) -> CheckResult:
    """Run one availability check with default collaborators."""
    return await ReservationChecker(sink=sink).check(account_id, source)
