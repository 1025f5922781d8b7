"""
Tests for the sign-in flow in courtbot/automation/authenticator.py.
"""

import pytest

from courtbot.automation.authenticator import Authenticator
from courtbot.automation.errors import AuthError, DriverError, SessionLossError
from courtbot.config import WaitMode
from courtbot.drivers.wait_helper import WaitStrategy
from courtbot.models.schemas import Credentials
from tests.fixtures.fake_driver import (
    LOGIN_PAGE,
    LOGIN_PAGE_WITH_ERROR,
    FakeDriver,
    SleepRecorder,
)

AMENITY_URL = "https://amenity.test/Information/AmenityReservation"
LOGIN_URL = "https://amenity.test/Account/LogOn?ReturnUrl=%2fInformation"
SUBMIT = 'button[type="submit"]'


def redirect_to_amenity(driver: FakeDriver) -> None:
    driver.url = AMENITY_URL


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(id=1, email="resident@example.com", password="hunter2")


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def authenticator(sleep: SleepRecorder) -> Authenticator:
    """Create an Authenticator with no selector polling and a recorded settle."""
    return Authenticator(
        login_url=AMENITY_URL,
        selector_timeout=0.0,
        settle_seconds=10.0,
        wait_strategy=WaitStrategy(mode=WaitMode.FIXED, sleep=sleep),
    )


class TestLoginSuccess:
    """Tests for a successful login."""

    @pytest.mark.asyncio
    async def test_fills_form_and_submits(
        self, authenticator: Authenticator, credentials: Credentials, sleep: SleepRecorder
    ) -> None:
        """Test that the form is filled from the first matching candidates."""
        driver = FakeDriver(pages=[LOGIN_PAGE], url=LOGIN_URL, on_click={SUBMIT: redirect_to_amenity})

        await authenticator.login(driver, credentials)

        assert driver.visited == [(AMENITY_URL, "networkidle")]
        assert driver.typed == {
            'input[type="text"]': "resident@example.com",
            'input[type="password"]': "hunter2",
        }
        assert driver.clicks == [SUBMIT]
        assert sleep.calls == [10.0]

    @pytest.mark.asyncio
    async def test_fallback_username_candidate(
        self, authenticator: Authenticator, credentials: Credentials
    ) -> None:
        """Test that a later candidate is used when the first is absent."""
        page = LOGIN_PAGE.replace('type="text" ', "")
        driver = FakeDriver(pages=[page], url=LOGIN_URL, on_click={SUBMIT: redirect_to_amenity})

        await authenticator.login(driver, credentials)

        assert driver.typed['input[name="UserName"]'] == "resident@example.com"


class TestLoginFailure:
    """Tests for login failures."""

    @pytest.mark.asyncio
    async def test_rejected_credentials(
        self, authenticator: Authenticator, credentials: Credentials
    ) -> None:
        """Test that staying on the sign-in page raises AuthError with the site's message."""
        driver = FakeDriver(
            pages=[LOGIN_PAGE_WITH_ERROR],
            url=LOGIN_URL,
            evaluate_result="Invalid username or password.",
        )

        with pytest.raises(AuthError, match="Invalid username or password"):
            await authenticator.login(driver, credentials)

    @pytest.mark.asyncio
    async def test_rejected_without_message(
        self, authenticator: Authenticator, credentials: Credentials
    ) -> None:
        """Test the generic rejection when no validation message is shown."""
        driver = FakeDriver(pages=[LOGIN_PAGE], url=LOGIN_URL)

        with pytest.raises(AuthError, match="Login rejected by site"):
            await authenticator.login(driver, credentials)

    @pytest.mark.asyncio
    async def test_missing_form(self, authenticator: Authenticator, credentials: Credentials) -> None:
        """Test that an absent form raises AuthError naming the tried selectors."""
        driver = FakeDriver(pages=["<html><body></body></html>"], url=LOGIN_URL)

        with pytest.raises(AuthError, match="Login form not found") as exc_info:
            await authenticator.login(driver, credentials)

        assert 'input[name="UserName"]' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_driver_error_wrapped(
        self, authenticator: Authenticator, credentials: Credentials
    ) -> None:
        """Test that other driver errors surface as AuthError."""
        driver = FakeDriver(pages=[LOGIN_PAGE], url=LOGIN_URL, errors={"type": DriverError("boom")})

        with pytest.raises(AuthError, match="boom"):
            await authenticator.login(driver, credentials)

    @pytest.mark.asyncio
    async def test_session_loss_propagates(
        self, authenticator: Authenticator, credentials: Credentials
    ) -> None:
        """Test that session loss is not converted, so the caller can retry."""
        driver = FakeDriver(
            pages=[LOGIN_PAGE],
            url=LOGIN_URL,
            errors={"goto": SessionLossError("browser has been closed")},
        )

        with pytest.raises(SessionLossError):
            await authenticator.login(driver, credentials)
