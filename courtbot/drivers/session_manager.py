"""
Tiered browser acquisition.

A SessionManager owns at most one Driver at a time. ``acquire`` tries, in
order, a remote managed browser (when an endpoint is configured), then a
locally launched browser tuned to the RuntimeProfile, and finally gives up by
returning a FallbackSignal. It never raises for acquisition failures; callers
decide how to degrade.
"""

import asyncio
import logging
import random
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from courtbot.automation.errors import is_resource_constraint
from courtbot.config import BrowserEngine
from courtbot.drivers.base import DEFAULT_HEADERS, DEFAULT_USER_AGENT, DEFAULT_VIEWPORT, Driver
from courtbot.drivers.playwright_driver import PlaywrightDriver
from courtbot.drivers.runtime_profile import ProfileKind, RuntimeProfile
from courtbot.drivers.selenium_driver import SeleniumDriver

logger = logging.getLogger(__name__)

__all__ = ["FallbackSignal", "ProfileKind", "RuntimeProfile", "SessionManager", "driver_class_for"]

REMOTE_RETRY_BASE_SECONDS = 1.0
PROCESS_CLEANUP_TIMEOUT_SECONDS = 5.0

# Managers acquiring or holding a browser in this process. Host-wide process
# cleanup would kill their browsers too, so it only runs when none remain.
_ACTIVE_MANAGERS: "weakref.WeakSet[SessionManager]" = weakref.WeakSet()

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class FallbackSignal:
    """Returned by ``acquire`` when every tier failed."""

    reason: str
    attempts: int
    purpose: str = "check"
    resource_constrained: bool = False


def driver_class_for(engine: BrowserEngine) -> type[Driver]:
    if engine == BrowserEngine.PLAYWRIGHT:
        return PlaywrightDriver
    return SeleniumDriver


def _backoff(base: float, attempt: int) -> float:
    """Linearly increasing delay with up to 50% jitter."""
    return base * attempt + random.uniform(0, base / 2)


class SessionManager:
    """
    Acquires and releases the Driver for a single check or booking run.

    Usage:
        async with SessionManager(profile) as manager:
            driver = await manager.acquire("check")
            if isinstance(driver, FallbackSignal):
                ...
    """

    def __init__(
        self,
        profile: RuntimeProfile,
        driver_cls: type[Driver] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.profile = profile
        self.driver_cls = driver_cls or driver_class_for(profile.engine)
        self._sleep = sleep
        self._driver: Driver | None = None

    @property
    def driver(self) -> Driver | None:
        return self._driver

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.release()

    async def acquire(self, purpose: str = "check") -> Driver | FallbackSignal:
        """
        Obtain a configured Driver, or a FallbackSignal if no tier succeeds.

        Any driver already held by this manager is released first.
        """
        if self._driver is not None:
            await self.release()

        _ACTIVE_MANAGERS.add(self)
        errors: list[BaseException] = []

        driver: Driver | None = None
        try:
            if self.profile.remote_endpoint:
                driver = await self._acquire_remote(self.profile.remote_endpoint, errors)
            else:
                logger.debug("No remote browser endpoint configured; skipping remote tier")

            if driver is None and self.profile.local_launch_enabled:
                driver = await self._acquire_local(errors)
        except BaseException:
            _ACTIVE_MANAGERS.discard(self)
            raise

        if driver is None:
            _ACTIVE_MANAGERS.discard(self)
            constrained = any(is_resource_constraint(e) for e in errors)
            if errors:
                reason = f"{errors[-1].__class__.__name__}: {errors[-1]}"
            else:
                reason = "no browser tier is enabled"
            logger.error(
                f"Browser acquisition for {purpose} failed after {len(errors)} attempts; "
                f"falling back. Last error: {reason}"
            )
            return FallbackSignal(
                reason=reason,
                attempts=len(errors),
                purpose=purpose,
                resource_constrained=constrained,
            )

        self._driver = driver
        logger.info(f"Acquired {driver.engine_name} driver for {purpose}")
        return driver

    async def _open(self, factory: Callable[[], Awaitable[Driver]], timeout: float) -> Driver:
        driver = await asyncio.wait_for(factory(), timeout=timeout)
        try:
            await driver.configure(
                viewport=DEFAULT_VIEWPORT,
                user_agent=DEFAULT_USER_AGENT,
                headers=DEFAULT_HEADERS,
                navigation_timeout=self.profile.navigation_timeout,
                default_timeout=self.profile.default_timeout,
            )
        except Exception:
            await self._close_quietly(driver)
            raise
        return driver

    async def _acquire_remote(self, endpoint: str, errors: list[BaseException]) -> Driver | None:
        attempts = self.profile.remote_connect_attempts

        for attempt in range(1, attempts + 1):
            try:
                return await self._open(
                    lambda: self.driver_cls.connect_remote(endpoint, self.profile),
                    self.profile.remote_connect_timeout,
                )
            except Exception as e:
                errors.append(e)
                logger.warning(
                    f"Remote browser attempt {attempt}/{attempts} at "
                    f"{self.profile.redacted_endpoint} failed: {e.__class__.__name__}: {e}"
                )
                if attempt < attempts:
                    await self._sleep(_backoff(REMOTE_RETRY_BASE_SECONDS, attempt))

        logger.warning("Remote browser tier exhausted")
        return None

    async def _acquire_local(self, errors: list[BaseException]) -> Driver | None:
        attempts = self.profile.local_launch_attempts

        for attempt in range(1, attempts + 1):
            try:
                return await self._open(
                    lambda: self.driver_cls.launch_local(self.profile),
                    self.profile.local_launch_timeout,
                )
            except Exception as e:
                errors.append(e)
                if is_resource_constraint(e):
                    logger.error(
                        f"Local launch attempt {attempt}/{attempts} hit a host resource limit: {e}"
                    )
                else:
                    logger.warning(
                        f"Local launch attempt {attempt}/{attempts} failed: "
                        f"{e.__class__.__name__}: {e}"
                    )
                if self.profile.process_cleanup:
                    await self._cleanup_processes()
                if attempt < attempts:
                    delay = _backoff(self.profile.local_launch_backoff, attempt)
                    logger.info(f"Retrying local launch in {delay:.1f}s")
                    await self._sleep(delay)

        logger.warning("Local browser tier exhausted")
        return None

    async def release(self) -> None:
        """Close the held driver, swallowing close-time errors."""
        driver, self._driver = self._driver, None
        _ACTIVE_MANAGERS.discard(self)
        if driver is not None:
            await self._close_quietly(driver)
        if self.profile.process_cleanup:
            await self._cleanup_processes()

    async def _close_quietly(self, driver: Driver) -> None:
        try:
            await driver.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing {driver.engine_name} driver: {e}")

    async def _cleanup_processes(self) -> None:
        """
        Kill leftover browser processes; only used on constrained hosts.

        The kill is host-wide, so it is skipped while another manager in this
        process is acquiring or holding a browser.
        """
        others = sum(1 for manager in _ACTIVE_MANAGERS if manager is not self)
        if others:
            logger.debug(f"Skipping browser process cleanup; {others} other session(s) active")
            return
        try:
            process = await asyncio.create_subprocess_exec(
                "pkill",
                "-f",
                "chrome",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await asyncio.wait_for(process.wait(), timeout=PROCESS_CLEANUP_TIMEOUT_SECONDS)
        except (OSError, TimeoutError) as e:
            logger.debug(f"Browser process cleanup skipped: {e}")
