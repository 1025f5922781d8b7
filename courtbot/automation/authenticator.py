import logging

from courtbot.automation.errors import (
    AuthError,
    CourtbotError,
    DriverError,
    SelectorNotFoundError,
    SessionLossError,
)
from courtbot.config import settings
from courtbot.drivers.amenity_dom_schema import DOM, LoginSelectors
from courtbot.drivers.base import Driver
from courtbot.drivers.wait_helper import WaitStrategy
from courtbot.models.schemas import Credentials

logger = logging.getLogger(__name__)

READ_TEXT_SCRIPT = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.textContent.trim() : null;
}"""


class Authenticator:
    """
    Drives the sign-in form.

    The amenity page redirects anonymous visitors to the sign-in form and
    back again afterwards, so ``login_url`` is normally the amenity URL itself
    and the driver is left on the amenity page on success.

    Success is judged by the URL after a fixed settle delay rather than by a
    navigation event: some deployments redirect client-side after the submit
    navigation has already resolved.
    """

    def __init__(
        self,
        login_url: str | None = None,
        selectors: LoginSelectors = DOM.LOGIN,
        selector_timeout: float | None = None,
        settle_seconds: float | None = None,
        wait_strategy: WaitStrategy | None = None,
    ) -> None:
        self.login_url = login_url or settings.amenity_url
        self.selectors = selectors
        self.selector_timeout = (
            settings.selector_timeout_seconds if selector_timeout is None else selector_timeout
        )
        self.settle_seconds = settings.login_settle_seconds if settle_seconds is None else settle_seconds
        self.wait_strategy = wait_strategy or WaitStrategy()

    async def login(self, driver: Driver, credentials: Credentials) -> None:
        """
        Log in with ``credentials``.

        Raises:
            AuthError: Any step failed or the site kept us on the sign-in page.
            SessionLossError: The browser session died; left for the caller to retry.
        """
        logger.info(f"Logging in account {credentials.id}...")
        try:
            await driver.goto(self.login_url, wait_until="networkidle")

            username_field = await driver.resolve_field(
                self.selectors.username_inputs, timeout=self.selector_timeout
            )
            await driver.type(username_field, credentials.email)

            password_field = await driver.resolve_field(
                self.selectors.password_inputs, timeout=self.selector_timeout
            )
            await driver.type(password_field, credentials.password)

            submit_button = await driver.resolve_field(
                self.selectors.submit_buttons, timeout=self.selector_timeout
            )
            await driver.click(submit_button)

            # Fixed settle: there is no reliable element to wait on across deployments
            await self.wait_strategy.wait_after_action(driver, fixed_duration=self.settle_seconds)
            current_url = await driver.current_url()
        except (SessionLossError, AuthError):
            raise
        except SelectorNotFoundError as e:
            raise AuthError(f"Login form not found; tried {', '.join(e.selectors)}") from e
        except CourtbotError as e:
            raise AuthError(f"Login failed: {e}") from e

        if self._still_on_login_page(current_url):
            message = await self._read_validation_error(driver)
            logger.error(f"Login failed. Still on URL: {current_url}")
            raise AuthError(f"Login rejected: {message}" if message else "Login rejected by site")

        logger.info(f"Login successful. Current URL: {current_url}")

    def _still_on_login_page(self, url: str) -> bool:
        lowered = url.lower()
        return any(marker in lowered for marker in self.selectors.login_path_markers)

    async def _read_validation_error(self, driver: Driver) -> str | None:
        for selector in self.selectors.validation_errors:
            try:
                if not await driver.query(selector):
                    continue
                text = await driver.evaluate(READ_TEXT_SCRIPT, selector)
            except (DriverError, SelectorNotFoundError) as e:
                logger.debug(f"Could not read validation error from {selector}: {e}")
                continue
            if text:
                return str(text)
        return None
