import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from courtbot.automation.errors import ResourceConstraintError, SessionLossError, is_session_loss
from courtbot.config import settings
from courtbot.drivers.base import Driver
from courtbot.drivers.session_manager import FallbackSignal, SessionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[Driver], Awaitable[T]]


class ResilienceWrapper:
    """
    Retries a driver operation across session loss.

    Only session-loss errors are retried: the current driver is discarded,
    a fresh one is acquired through the SessionManager and the same operation
    is run again from the start. Any other error propagates on the first
    attempt, since retrying a logic or selector error cannot succeed.

    Attributes:
        reacquisitions: Number of replacement drivers acquired so far.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session_manager = session_manager
        self.max_attempts = settings.session_retry_attempts if max_attempts is None else max_attempts
        self.delay_seconds = (
            settings.session_retry_delay_seconds if delay_seconds is None else delay_seconds
        )
        self._sleep = sleep
        self.reacquisitions = 0

    async def run(self, driver: Driver, operation: Operation[T], purpose: str = "check") -> T:
        """
        Run ``operation(driver)``, re-acquiring the driver on session loss.

        Raises:
            SessionLossError: Session loss persisted through every attempt.
            ResourceConstraintError: No replacement driver could be acquired.
        """
        current = driver
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation(current)
            except Exception as e:
                if not is_session_loss(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(f"Session lost on final attempt {attempt}/{self.max_attempts}: {e}")
                    if isinstance(e, SessionLossError):
                        raise
                    raise SessionLossError(str(e)) from e

                logger.warning(
                    f"Session lost on attempt {attempt}/{self.max_attempts}: {e}. "
                    f"Re-acquiring browser in {self.delay_seconds}s..."
                )
                await self.session_manager.release()
                await self._sleep(self.delay_seconds)

                acquired = await self.session_manager.acquire(purpose)
                if isinstance(acquired, FallbackSignal):
                    raise ResourceConstraintError(
                        f"Could not re-acquire a browser after session loss: {acquired.reason}"
                    ) from e
                current = acquired
                self.reacquisitions += 1

        # max_attempts < 1
        raise ValueError("max_attempts must be at least 1")
