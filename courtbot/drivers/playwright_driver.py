import logging
from collections.abc import Awaitable, Mapping
from typing import Any, TypeVar

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from courtbot.automation.errors import (
    DriverError,
    SelectorNotFoundError,
    SessionLossError,
    is_session_loss,
)
from courtbot.drivers.base import DEFAULT_USER_AGENT, DEFAULT_VIEWPORT, Driver
from courtbot.drivers.runtime_profile import RuntimeProfile, redact_token

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlaywrightDriver(Driver):
    """Driver backed by Playwright's async Chromium API."""

    engine_name = "playwright"

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._navigation_timeout = 60.0
        self._default_timeout = 30.0

    @classmethod
    async def _open(cls, playwright: Playwright, browser: Browser) -> "PlaywrightDriver":
        # User agent is fixed per context, so it is set here rather than in configure()
        context = await browser.new_context(
            user_agent=DEFAULT_USER_AGENT,
            viewport={"width": DEFAULT_VIEWPORT[0], "height": DEFAULT_VIEWPORT[1]},
        )
        page = await context.new_page()
        return cls(playwright, browser, context, page)

    @classmethod
    async def connect_remote(cls, endpoint: str, profile: RuntimeProfile) -> "PlaywrightDriver":
        playwright = await async_playwright().start()
        try:
            logger.info(f"Connecting to remote browser over CDP at {redact_token(endpoint)}")
            browser = await playwright.chromium.connect_over_cdp(
                endpoint, timeout=profile.remote_connect_timeout * 1000
            )
            return await cls._open(playwright, browser)
        except BaseException:
            await playwright.stop()
            raise

    @classmethod
    async def launch_local(cls, profile: RuntimeProfile) -> "PlaywrightDriver":
        playwright = await async_playwright().start()
        try:
            logger.info(f"Launching local Chromium ({profile.kind.value} profile)")
            browser = await playwright.chromium.launch(
                headless=profile.headless,
                args=list(profile.launch_args),
                timeout=profile.local_launch_timeout * 1000,
            )
            return await cls._open(playwright, browser)
        except BaseException:
            await playwright.stop()
            raise

    async def _guard(self, action: Awaitable[T], selector: str | None = None) -> T:
        try:
            return await action
        except PlaywrightTimeoutError as e:
            if selector is not None:
                raise SelectorNotFoundError([selector]) from e
            raise DriverError(f"Playwright operation timed out: {e.message}") from e
        except PlaywrightError as e:
            if is_session_loss(e):
                raise SessionLossError(e.message) from e
            raise DriverError(e.message) from e

    async def configure(
        self,
        viewport: tuple[int, int],
        user_agent: str,
        headers: Mapping[str, str],
        navigation_timeout: float,
        default_timeout: float,
    ) -> None:
        self._navigation_timeout = navigation_timeout
        self._default_timeout = default_timeout
        if user_agent != DEFAULT_USER_AGENT:
            logger.debug("Playwright context user agent is fixed at creation; ignoring override")
        await self._guard(self._page.set_viewport_size({"width": viewport[0], "height": viewport[1]}))
        await self._guard(self._context.set_extra_http_headers(dict(headers)))
        self._page.set_default_navigation_timeout(navigation_timeout * 1000)
        self._page.set_default_timeout(default_timeout * 1000)

    async def goto(self, url: str, wait_until: str = "load", timeout: float | None = None) -> None:
        limit = timeout or self._navigation_timeout
        await self._guard(self._page.goto(url, wait_until=wait_until, timeout=limit * 1000))

    async def wait_for_selector(
        self, selector: str, timeout: float | None = None, visible: bool = False
    ) -> None:
        limit = timeout or self._default_timeout
        await self._guard(
            self._page.wait_for_selector(
                selector, state="visible" if visible else "attached", timeout=limit * 1000
            ),
            selector=selector,
        )

    async def query(self, selector: str) -> bool:
        count = await self._guard(self._page.locator(selector).count())
        return count > 0

    async def is_visible(self, selector: str) -> bool:
        return await self._guard(self._page.locator(selector).first.is_visible())

    async def type(self, selector: str, text: str) -> None:
        await self._guard(self._page.fill(selector, text), selector=selector)

    async def click(self, selector: str) -> None:
        await self._guard(self._page.click(selector), selector=selector)

    async def select_option(self, selector: str, label: str) -> None:
        locator = self._page.locator(selector)
        timeout = self._default_timeout * 1000
        if await self.query(f'{selector} option[value="{label}"]'):
            await self._guard(locator.select_option(value=label, timeout=timeout), selector=selector)
        else:
            await self._guard(locator.select_option(label=label, timeout=timeout), selector=selector)

    async def evaluate(self, script: str, *args: Any) -> Any:
        return await self._guard(self._page.evaluate(f"(args) => ({script})(...args)", list(args)))

    async def current_url(self) -> str:
        return self._page.url

    async def content(self) -> str:
        return await self._guard(self._page.content())

    async def screenshot(self, path: str) -> None:
        await self._guard(self._page.screenshot(path=path, full_page=True))

    async def close(self) -> None:
        try:
            if not self._page.is_closed():
                await self._page.close()
            await self._context.close()
            await self._browser.close()
        finally:
            await self._playwright.stop()
