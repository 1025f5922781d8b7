"""
Tests for session-loss retry in courtbot/automation/resilience.py and the
error classification it relies on in courtbot/automation/errors.py.
"""

import pytest

from courtbot.automation.errors import (
    AuthError,
    DriverError,
    ResourceConstraintError,
    SessionLossError,
    is_resource_constraint,
    is_session_loss,
)
from courtbot.automation.resilience import ResilienceWrapper
from courtbot.config import BrowserEngine
from courtbot.drivers.base import Driver
from courtbot.drivers.session_manager import ProfileKind, RuntimeProfile, SessionManager
from tests.fixtures.fake_driver import FakeDriver, SleepRecorder, make_driver_class

LOCAL_PROFILE = RuntimeProfile(
    kind=ProfileKind.LOCAL,
    engine=BrowserEngine.SELENIUM,
    local_launch_attempts=1,
)


def manager_with(local: list) -> SessionManager:
    return SessionManager(LOCAL_PROFILE, driver_cls=make_driver_class(local=local), sleep=SleepRecorder())


class FlakyOperation:
    """Raises the given errors in order, then returns the driver it ran on."""

    def __init__(self, *errors: BaseException) -> None:
        self.errors = list(errors)
        self.drivers: list[Driver] = []

    async def __call__(self, driver: Driver) -> Driver:
        self.drivers.append(driver)
        if self.errors:
            raise self.errors.pop(0)
        return driver


class TestErrorClassification:
    """Tests for is_session_loss and is_resource_constraint."""

    def test_session_loss_error(self) -> None:
        assert is_session_loss(SessionLossError("gone"))

    @pytest.mark.parametrize(
        "message",
        [
            "Target page, context or browser has been closed",
            "Message: invalid session id",
            "Protocol error (Runtime.callFunctionOn): Session closed",
            "chrome not reachable",
        ],
    )
    def test_engine_messages(self, message: str) -> None:
        """Test that raw engine errors are classified by message."""
        assert is_session_loss(RuntimeError(message))

    def test_other_automation_errors_not_retried(self) -> None:
        """Test that typed errors other than SessionLossError are never session loss."""
        assert not is_session_loss(AuthError("browser has been closed"))
        assert not is_session_loss(DriverError("element not interactable"))

    def test_unrelated_error(self) -> None:
        assert not is_session_loss(ValueError("bad value"))

    def test_resource_constraint(self) -> None:
        """Test host resource exhaustion markers."""
        assert is_resource_constraint(OSError("[Errno 11] Resource temporarily unavailable"))
        assert is_resource_constraint(RuntimeError("pthread_create: EAGAIN"))
        assert is_resource_constraint(ResourceConstraintError("no engine"))
        assert not is_resource_constraint(RuntimeError("net::ERR_NAME_NOT_RESOLVED"))


class TestResilienceWrapper:
    """Tests for re-acquiring the driver on session loss."""

    @pytest.mark.asyncio
    async def test_recovers_after_two_losses(self) -> None:
        """Test that two session losses lead to two re-acquisitions and a result."""
        replacements = [FakeDriver(), FakeDriver()]
        manager = manager_with(list(replacements))
        sleep = SleepRecorder()
        wrapper = ResilienceWrapper(manager, max_attempts=3, delay_seconds=2.0, sleep=sleep)
        first = FakeDriver()
        operation = FlakyOperation(SessionLossError("connection closed"), SessionLossError("disconnected"))

        result = await wrapper.run(first, operation)

        assert result is replacements[1]
        assert operation.drivers == [first, replacements[0], replacements[1]]
        assert wrapper.reacquisitions == 2
        assert sleep.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_session_error_propagates_immediately(self) -> None:
        """Test that other errors are not retried."""
        manager = manager_with([FakeDriver()])
        wrapper = ResilienceWrapper(manager, max_attempts=3, delay_seconds=0.0, sleep=SleepRecorder())
        operation = FlakyOperation(DriverError("element not interactable"))

        with pytest.raises(DriverError):
            await wrapper.run(FakeDriver(), operation)

        assert len(operation.drivers) == 1
        assert wrapper.reacquisitions == 0
        assert manager.driver_cls.local_calls == 0

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_session_loss(self) -> None:
        """Test that raw engine errors are surfaced as SessionLossError after the last attempt."""
        manager = manager_with([FakeDriver()])
        wrapper = ResilienceWrapper(manager, max_attempts=2, delay_seconds=0.0, sleep=SleepRecorder())
        operation = FlakyOperation(
            RuntimeError("browser has been closed"), RuntimeError("browser has been closed")
        )

        with pytest.raises(SessionLossError):
            await wrapper.run(FakeDriver(), operation)

        assert wrapper.reacquisitions == 1

    @pytest.mark.asyncio
    async def test_failed_reacquisition_is_resource_constraint(self) -> None:
        """Test that a fallback on re-acquire raises ResourceConstraintError."""
        manager = manager_with([OSError("Resource temporarily unavailable")])
        wrapper = ResilienceWrapper(manager, max_attempts=3, delay_seconds=0.0, sleep=SleepRecorder())
        operation = FlakyOperation(SessionLossError("connection closed"))

        with pytest.raises(ResourceConstraintError, match="Resource temporarily unavailable"):
            await wrapper.run(FakeDriver(), operation)

    @pytest.mark.asyncio
    async def test_first_attempt_success(self) -> None:
        """Test the no-failure path."""
        manager = manager_with([])
        wrapper = ResilienceWrapper(manager, max_attempts=3, delay_seconds=0.0, sleep=SleepRecorder())
        driver = FakeDriver()

        assert await wrapper.run(driver, FlakyOperation()) is driver
        assert wrapper.reacquisitions == 0
