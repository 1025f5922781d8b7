import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from courtbot.automation.errors import SelectorNotFoundError

if TYPE_CHECKING:
    from courtbot.drivers.runtime_profile import RuntimeProfile

logger = logging.getLogger(__name__)

SELECTOR_POLL_INTERVAL_SECONDS = 0.25

DEFAULT_VIEWPORT = (1366, 768)
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}


class Driver(ABC):
    """
    Uniform capability interface over a browser automation engine.

    One Driver wraps exactly one browser page. All methods are coroutines and
    every suspension point is bounded by a timeout. Adapters translate engine
    exceptions into ``SessionLossError``, ``SelectorNotFoundError`` or
    ``DriverError``.

    ``evaluate`` takes a JavaScript function expression, e.g.
    ``"(a, b) => a + b"``, and applies it to the positional arguments.
    """

    engine_name = "abstract"

    @classmethod
    @abstractmethod
    async def connect_remote(cls, endpoint: str, profile: "RuntimeProfile") -> "Driver":
        """Attach to a managed browser service at ``endpoint``."""
        pass

    @classmethod
    @abstractmethod
    async def launch_local(cls, profile: "RuntimeProfile") -> "Driver":
        """Launch a browser on this host using the profile's launch configuration."""
        pass

    @abstractmethod
    async def configure(
        self,
        viewport: tuple[int, int],
        user_agent: str,
        headers: Mapping[str, str],
        navigation_timeout: float,
        default_timeout: float,
    ) -> None:
        pass

    @abstractmethod
    async def goto(self, url: str, wait_until: str = "load", timeout: float | None = None) -> None:
        """Navigate to ``url``. ``wait_until`` is "load" or "networkidle"."""
        pass

    @abstractmethod
    async def wait_for_selector(
        self, selector: str, timeout: float | None = None, visible: bool = False
    ) -> None:
        """Wait for ``selector`` to be attached (or visible); raise SelectorNotFoundError on timeout."""
        pass

    @abstractmethod
    async def query(self, selector: str) -> bool:
        """Return True if at least one element matches ``selector`` right now."""
        pass

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        pass

    @abstractmethod
    async def type(self, selector: str, text: str) -> None:
        pass

    @abstractmethod
    async def click(self, selector: str) -> None:
        pass

    @abstractmethod
    async def select_option(self, selector: str, label: str) -> None:
        """Select the option whose value or visible text equals ``label``."""
        pass

    @abstractmethod
    async def evaluate(self, script: str, *args: Any) -> Any:
        pass

    @abstractmethod
    async def current_url(self) -> str:
        pass

    @abstractmethod
    async def content(self) -> str:
        """Return the serialized HTML of the current page."""
        pass

    @abstractmethod
    async def screenshot(self, path: str) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the page, then the browser or remote connection."""
        pass

    async def find_first(self, candidates: Sequence[str]) -> str | None:
        """Return the first candidate selector that currently matches, or None."""
        for selector in candidates:
            if await self.query(selector):
                return selector
        return None

    async def resolve_field(self, candidates: Sequence[str], timeout: float = 10.0) -> str:
        """
        Resolve an ordered candidate list to the first selector that matches.

        Candidates are re-checked until ``timeout`` elapses, so a field that
        renders late still resolves to the highest-priority candidate present.

        Raises:
            SelectorNotFoundError: No candidate matched before the timeout.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            selector = await self.find_first(candidates)
            if selector is not None:
                logger.debug(f"Resolved {selector!r} from {len(candidates)} candidates")
                return selector
            if loop.time() >= deadline:
                raise SelectorNotFoundError(candidates)
            await asyncio.sleep(SELECTOR_POLL_INTERVAL_SECONDS)
