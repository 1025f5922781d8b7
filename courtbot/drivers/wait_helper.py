"""
Wait strategy helper for Driver operations.

The wait mode can be configured via the WAIT_MODE environment variable.

Three modes are supported:
- FIXED: Use fixed sleep durations (most reliable, slowest)
- EVENT_DRIVEN: Wait on a selector only (fastest, less reliable)
- HYBRID: Wait on a selector plus a small buffer sleep (balanced)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from courtbot.automation.errors import SelectorNotFoundError
from courtbot.config import WaitMode, settings
from courtbot.drivers.base import Driver

logger = logging.getLogger(__name__)

HYBRID_BUFFER_SECONDS = 0.3

Sleep = Callable[[float], Awaitable[None]]


class WaitStrategy:
    """
    Provides wait methods that behave differently based on the configured wait mode.

    Usage:
        wait_strategy = WaitStrategy()
        await driver.click("#get-more")
        await wait_strategy.wait_after_action(driver, fixed_duration=1.0, wait_condition="#upcoming-resv")
    """

    def __init__(self, mode: WaitMode | None = None, sleep: Sleep = asyncio.sleep) -> None:
        """
        Initialize the wait strategy.

        Args:
            mode: The wait mode to use. If None, uses the configured setting.
            sleep: Coroutine used for pauses; tests pass a recorder.
        """
        self.mode = mode or settings.wait_mode
        self._sleep = sleep
        logger.debug(f"WaitStrategy initialized with mode: {self.mode.value}")

    async def wait_after_action(
        self,
        driver: Driver,
        fixed_duration: float,
        wait_condition: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Wait after performing an action (click, form submission, etc.).

        Args:
            driver: The Driver instance
            fixed_duration: Duration to sleep in FIXED mode
            wait_condition: Optional selector to wait for in EVENT_DRIVEN/HYBRID modes.
                           If None, falls back to the fixed duration since there is
                           nothing to observe.
            timeout: Maximum wait time for the selector
        """
        if self.mode == WaitMode.FIXED or wait_condition is None:
            logger.debug(f"{self.mode.value} mode: sleeping {fixed_duration}s after action")
            await self._sleep(fixed_duration)
            return

        try:
            await driver.wait_for_selector(wait_condition, timeout=timeout)
            logger.debug(f"{self.mode.value} mode: condition {wait_condition} met after action")
        except SelectorNotFoundError:
            logger.warning(f"{self.mode.value} mode: timeout waiting for {wait_condition} after action")

        if self.mode == WaitMode.HYBRID:
            logger.debug(f"HYBRID mode: adding {HYBRID_BUFFER_SECONDS}s buffer after action")
            await self._sleep(HYBRID_BUFFER_SECONDS)
