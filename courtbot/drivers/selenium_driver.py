import asyncio
import functools
import logging
import os
import time as time_module
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from selenium import webdriver
from selenium.common.exceptions import (
    ElementClickInterceptedException,
    InvalidSessionIdException,
    NoSuchElementException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions
from selenium.webdriver.support.ui import Select, WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from courtbot.automation.errors import (
    CourtbotError,
    DriverError,
    SelectorNotFoundError,
    SessionLossError,
    is_session_loss,
)
from courtbot.drivers.base import Driver
from courtbot.drivers.runtime_profile import RuntimeProfile, redact_token

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_EXCEPTIONS = (
    StaleElementReferenceException,
    ElementClickInterceptedException,
)

SESSION_LOSS_EXCEPTIONS = (InvalidSessionIdException, NoSuchWindowException)

# Extra headroom on top of the WebDriver-side timeout before the event loop gives up
EXECUTOR_GRACE_SECONDS = 5.0

HIDE_WEBDRIVER_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined
})
"""


def with_retry(
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    exceptions: tuple[type[Exception], ...] = TRANSIENT_EXCEPTIONS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying element interactions that fail on transient Selenium issues.

    Uses exponential backoff between attempts. Only retries on specified exception
    types; runs on the driver's worker thread, so the sleep is blocking.

    Args:
        max_attempts: Maximum number of attempts (default 3)
        backoff_base: Base delay in seconds, doubled each attempt (default 0.5)
        exceptions: Tuple of exception types to retry on
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        delay = backoff_base * (2**attempt)
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: "
                            f"{e.__class__.__name__}. Retrying in {delay:.1f}s..."
                        )
                        time_module.sleep(delay)
                    else:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}: {e}")
            raise last_exception  # type: ignore[misc]

        return wrapper

    return decorator


def _chrome_options(profile: RuntimeProfile) -> Options:
    options = Options()
    if profile.headless:
        options.add_argument("--headless=new")
    for arg in profile.launch_args:
        options.add_argument(arg)
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)
    return options


def _split_token(endpoint: str) -> tuple[str, str | None]:
    """Move a ``token`` query parameter out of the URL; Selenium appends paths to it."""
    parts = urlsplit(endpoint)
    query = parse_qsl(parts.query)
    token = next((value for key, value in query if key == "token"), None)
    remaining = urlencode([(key, value) for key, value in query if key != "token"])
    return urlunsplit((parts.scheme, parts.netloc, parts.path, remaining, parts.fragment)), token


class SeleniumDriver(Driver):
    """
    Driver backed by Selenium WebDriver and Chrome.

    WebDriver is blocking and not thread-safe, so every call runs on a
    dedicated single-worker executor owned by this instance; the WebDriver
    object is only ever touched from that one thread.
    """

    engine_name = "selenium"

    def __init__(self, driver: webdriver.Remote, executor: ThreadPoolExecutor) -> None:
        self._driver = driver
        self._executor = executor
        self._navigation_timeout = 60.0
        self._default_timeout = 30.0

    @classmethod
    async def connect_remote(cls, endpoint: str, profile: RuntimeProfile) -> "SeleniumDriver":
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="selenium-remote")
        command_executor, token = _split_token(endpoint)

        def create() -> webdriver.Remote:
            options = _chrome_options(profile)
            if token:
                options.set_capability("browserless:token", token)
            return webdriver.Remote(command_executor=command_executor, options=options)

        logger.info(f"Connecting to remote WebDriver at {redact_token(endpoint)}")
        driver = await _create_on(executor, create)
        return cls(driver, executor)

    @classmethod
    async def launch_local(cls, profile: RuntimeProfile) -> "SeleniumDriver":
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="selenium-local")

        def create() -> webdriver.Chrome:
            options = _chrome_options(profile)
            # Check for an explicit ChromeDriver path first,
            # then fall back to ChromeDriverManager for automatic version management
            chromedriver_path = profile.chromedriver_path
            if chromedriver_path and os.path.exists(chromedriver_path):
                service = Service(chromedriver_path)
            else:
                service = Service(ChromeDriverManager().install())
            driver = webdriver.Chrome(service=service, options=options)
            driver.execute_cdp_cmd(
                "Page.addScriptToEvaluateOnNewDocument", {"source": HIDE_WEBDRIVER_SCRIPT}
            )
            return driver

        logger.info(f"Launching local Chrome ({profile.kind.value} profile)")
        driver = await _create_on(executor, create)
        return cls(driver, executor)

    async def _run(self, func: Callable[..., T], *args: Any, timeout: float | None = None) -> T:
        loop = asyncio.get_running_loop()
        limit = (timeout if timeout is not None else self._default_timeout) + EXECUTOR_GRACE_SECONDS
        name = getattr(func, "__name__", "driver call")
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, functools.partial(func, *args)),
                timeout=limit,
            )
        except TimeoutError as e:
            raise DriverError(f"{name} did not finish within {limit:.0f}s") from e
        except CourtbotError:
            raise
        except SESSION_LOSS_EXCEPTIONS as e:
            raise SessionLossError(str(e)) from e
        except WebDriverException as e:
            if is_session_loss(e):
                raise SessionLossError(str(e)) from e
            raise DriverError(f"{name} failed: {e.msg or e}") from e
        except ConnectionError as e:
            raise SessionLossError(f"WebDriver connection lost: {e}") from e

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

        def apply() -> None:
            self._driver.set_window_size(*viewport)
            self._driver.set_page_load_timeout(navigation_timeout)
            self._driver.set_script_timeout(default_timeout)
            if hasattr(self._driver, "execute_cdp_cmd"):
                self._driver.execute_cdp_cmd("Network.enable", {})
                self._driver.execute_cdp_cmd("Network.setUserAgentOverride", {"userAgent": user_agent})
                self._driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": dict(headers)})
            else:
                logger.debug("Remote WebDriver has no CDP access; keeping the browser's user agent")

        await self._run(apply)

    async def goto(self, url: str, wait_until: str = "load", timeout: float | None = None) -> None:
        limit = timeout or self._navigation_timeout

        def navigate() -> None:
            self._driver.get(url)
            if wait_until == "networkidle":
                # Closest WebDriver equivalent: wait for the document to finish loading
                WebDriverWait(self._driver, limit).until(
                    lambda d: d.execute_script("return document.readyState") == "complete"
                )

        try:
            await self._run(navigate, timeout=limit)
        except DriverError as e:
            if isinstance(e.__cause__, TimeoutException):
                raise DriverError(f"Navigation to {url} timed out after {limit:.0f}s") from e
            raise

    async def wait_for_selector(
        self, selector: str, timeout: float | None = None, visible: bool = False
    ) -> None:
        limit = timeout or self._default_timeout
        condition = (
            expected_conditions.visibility_of_element_located
            if visible
            else expected_conditions.presence_of_element_located
        )

        def wait() -> None:
            try:
                WebDriverWait(self._driver, limit).until(condition((By.CSS_SELECTOR, selector)))
            except TimeoutException as e:
                raise SelectorNotFoundError([selector]) from e

        await self._run(wait, timeout=limit)

    async def query(self, selector: str) -> bool:
        def find() -> bool:
            return len(self._driver.find_elements(By.CSS_SELECTOR, selector)) > 0

        return await self._run(find)

    async def is_visible(self, selector: str) -> bool:
        def visible() -> bool:
            for element in self._driver.find_elements(By.CSS_SELECTOR, selector):
                try:
                    if element.is_displayed():
                        return True
                except StaleElementReferenceException:
                    continue
            return False

        return await self._run(visible)

    def _find(self, selector: str) -> Any:
        try:
            return self._driver.find_element(By.CSS_SELECTOR, selector)
        except NoSuchElementException as e:
            raise SelectorNotFoundError([selector]) from e

    async def type(self, selector: str, text: str) -> None:
        @with_retry()
        def send() -> None:
            element = self._find(selector)
            element.clear()
            element.send_keys(text)

        await self._run(send)

    async def click(self, selector: str) -> None:
        @with_retry(exceptions=(StaleElementReferenceException,))
        def press() -> None:
            element = self._find(selector)
            try:
                element.click()
            except ElementClickInterceptedException:
                logger.debug(f"Click on {selector} intercepted, falling back to JavaScript click")
                self._driver.execute_script("arguments[0].click();", element)

        await self._run(press)

    async def select_option(self, selector: str, label: str) -> None:
        def choose() -> None:
            select = Select(self._find(selector))
            try:
                select.select_by_value(label)
            except NoSuchElementException:
                try:
                    select.select_by_visible_text(label)
                except NoSuchElementException as e:
                    raise SelectorNotFoundError(
                        [selector], f"Option {label!r} not found in {selector}"
                    ) from e

        await self._run(choose)

    async def evaluate(self, script: str, *args: Any) -> Any:
        wrapped = f"return ({script}).apply(null, arguments);"
        return await self._run(self._driver.execute_script, wrapped, *args)

    async def current_url(self) -> str:
        return await self._run(lambda: self._driver.current_url)

    async def content(self) -> str:
        return await self._run(lambda: self._driver.page_source)

    async def screenshot(self, path: str) -> None:
        await self._run(self._driver.save_screenshot, path)

    async def close(self) -> None:
        try:
            await self._run(self._driver.quit)
        finally:
            self._executor.shutdown(wait=False)


async def _create_on(executor: ThreadPoolExecutor, factory: Callable[[], T]) -> T:
    """
    Run ``factory`` on ``executor``, shutting the executor down if it fails.

    If the caller gives up first (a connect or launch timeout), the worker
    thread keeps building the WebDriver; it is quit as soon as it exists.
    """
    future = executor.submit(factory)
    try:
        return await asyncio.wrap_future(future)
    except asyncio.CancelledError:
        future.add_done_callback(_quit_orphan)
        executor.shutdown(wait=False)
        raise
    except BaseException:
        executor.shutdown(wait=False)
        raise


def _quit_orphan(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    driver = future.result()
    logger.warning("Quitting WebDriver that finished starting after its caller timed out")
    try:
        driver.quit()
    except WebDriverException as e:
        logger.debug(f"Orphaned WebDriver quit failed: {e}")
