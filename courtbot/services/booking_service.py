"""
Booking orchestration.

This module provides the business logic for turning a BookingRequest into a
reservation on the amenity site: acquire a browser, log in, run the booking
form and report a structured BookingResult.
"""

import logging
from collections.abc import Callable

from courtbot.automation.authenticator import Authenticator
from courtbot.automation.booking_executor import BookingExecutor
from courtbot.automation.errors import CourtbotError, ResourceConstraintError
from courtbot.automation.resilience import ResilienceWrapper
from courtbot.config import get_credentials
from courtbot.drivers.base import Driver
from courtbot.drivers.runtime_profile import RuntimeProfile, default_profile
from courtbot.drivers.session_manager import FallbackSignal, SessionManager
from courtbot.models.schemas import BookingOutcome, BookingRequest, BookingResult, Credentials
from courtbot.services.reservation_checker import ResultSink

logger = logging.getLogger(__name__)


class BookingService:
    """
    Executes booking requests against the amenity site.

    A booking always produces a BookingResult. When no browser can be
    acquired the result is marked ``retryable`` so the caller can try again
    later; every other failure is reported with ``success=False`` and the
    error text.

    Attributes:
        sink: Optional persistence sink every result is written to.
    """

    def __init__(
        self,
        profile: RuntimeProfile | None = None,
        session_manager_factory: Callable[[], SessionManager] | None = None,
        authenticator: Authenticator | None = None,
        executor: BookingExecutor | None = None,
        sink: ResultSink | None = None,
    ) -> None:
        self.profile = profile
        self._session_manager_factory = session_manager_factory
        self.authenticator = authenticator or Authenticator()
        self.executor = executor or BookingExecutor()
        self.sink = sink

    def set_sink(self, sink: ResultSink | None) -> None:
        """Set the persistence sink for booking results."""
        self.sink = sink

    def _new_session_manager(self) -> SessionManager:
        if self._session_manager_factory is not None:
            return self._session_manager_factory()
        return SessionManager(self.profile or default_profile())

    async def book_time_slot(
        self,
        account_id: int | None,
        request: BookingRequest,
        source: str = "manual",
    ) -> BookingResult:
        """
        Book ``request`` for the given account.

        Args:
            account_id: Configured account to book as; defaults to the first account.
            request: The day and time slot to reserve.
            source: Label stored with the persisted result.

        Returns:
            BookingResult with success status and either the site's outcome or an error.
        """
        credentials = get_credentials(account_id)
        if credentials is None:
            return BookingResult(
                success=False,
                booking_request=request,
                error=f"Account {account_id} is not configured"
                if account_id is not None
                else "No accounts configured",
            )

        try:
            result = await self._run(credentials, request)
        except ResourceConstraintError as e:
            logger.error(f"Booking deferred, browser unavailable: {e}")
            result = BookingResult(
                success=False, booking_request=request, error=str(e), retryable=True
            )
        except CourtbotError as e:
            logger.error(f"Booking failed for account {credentials.id}: {e}")
            result = BookingResult(
                success=False, booking_request=request, error=f"{e.__class__.__name__}: {e}"
            )
        except Exception as e:
            logger.exception(f"Unexpected error booking for account {credentials.id}")
            result = BookingResult(success=False, booking_request=request, error=str(e))

        if self.sink is not None:
            try:
                await self.sink.save(result, source, credentials.id)
            except Exception as e:
                logger.error(f"Failed to persist booking attempt: {e}")

        return result

    async def _run(self, credentials: Credentials, request: BookingRequest) -> BookingResult:
        async with self._new_session_manager() as manager:
            acquired = await manager.acquire("book")
            if isinstance(acquired, FallbackSignal):
                logger.warning(f"No browser available for booking: {acquired.reason}")
                return BookingResult(
                    success=False,
                    booking_request=request,
                    error=f"Browser unavailable: {acquired.reason}",
                    retryable=True,
                )

            async def login_and_book(driver: Driver) -> BookingOutcome:
                await self.authenticator.login(driver, credentials)
                return await self.executor.execute(driver, request)

            wrapper = ResilienceWrapper(manager)
            outcome = await wrapper.run(acquired, login_and_book, purpose="book")

        logger.info(f"Booking for account {credentials.id} finished: {outcome.message}")
        return BookingResult(success=True, booking_request=request, result=outcome)


booking_service = BookingService()


async def book_time_slot(
    account_id: int | None, request: BookingRequest, source: str = "manual"
) -> BookingResult:
    return await booking_service.book_time_slot(account_id, request, source)
