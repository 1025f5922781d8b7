"""
Runtime profile for browser acquisition.

The host environment (developer machine, CI runner, memory-constrained
container) decides which launch configuration and timeouts the Session
Manager uses. ``RuntimeProfile.detect`` reads settings and environment once;
everything downstream receives the resulting value.
"""

import functools
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum

from courtbot import config
from courtbot.config import BrowserEngine, Settings

BROWSERLESS_HOST = "production-sfo.browserless.io"

BASE_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
    "--window-size=1366,768",
)

CONSTRAINED_LAUNCH_ARGS = BASE_LAUNCH_ARGS + (
    "--single-process",
    "--no-zygote",
    "--disable-gpu-sandbox",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-plugins",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--mute-audio",
    "--memory-pressure-off",
    "--js-flags=--max_old_space_size=256",
)

CONSTRAINED_ENV_MARKERS = ("FLY_APP_NAME", "FLY_ALLOC_ID", "RAILWAY_ENVIRONMENT")
CI_ENV_MARKERS = ("CI", "GITHUB_ACTIONS")

CI_TIMEOUT_MULTIPLIER = 2.0


class ProfileKind(str, Enum):
    LOCAL = "local"
    CI = "ci"
    CONSTRAINED = "constrained"


@dataclass(frozen=True)
class RuntimeProfile:
    kind: ProfileKind
    engine: BrowserEngine
    headless: bool = True
    remote_endpoint: str | None = None
    remote_connect_timeout: float = 30.0
    remote_connect_attempts: int = 2
    local_launch_enabled: bool = True
    local_launch_attempts: int = 5
    local_launch_backoff: float = 2.0
    local_launch_timeout: float = 60.0
    navigation_timeout: float = 60.0
    default_timeout: float = 30.0
    chromedriver_path: str = ""
    launch_args: tuple[str, ...] = BASE_LAUNCH_ARGS
    process_cleanup: bool = False

    @property
    def constrained(self) -> bool:
        return self.kind == ProfileKind.CONSTRAINED

    @property
    def redacted_endpoint(self) -> str | None:
        if self.remote_endpoint is None:
            return None
        return redact_token(self.remote_endpoint)

    @classmethod
    def detect(cls, settings: Settings, environ: Mapping[str, str] | None = None) -> "RuntimeProfile":
        """Build the profile from settings plus the process environment."""
        env = os.environ if environ is None else environ

        override = settings.runtime_environment.lower()
        if override in {kind.value for kind in ProfileKind}:
            kind = ProfileKind(override)
        elif any(env.get(marker) for marker in CONSTRAINED_ENV_MARKERS):
            kind = ProfileKind.CONSTRAINED
        elif any(env.get(marker) for marker in CI_ENV_MARKERS):
            kind = ProfileKind.CI
        else:
            kind = ProfileKind.LOCAL

        profile = cls(
            kind=kind,
            engine=settings.browser_engine,
            headless=settings.headless,
            remote_endpoint=remote_endpoint_for(settings),
            remote_connect_timeout=settings.remote_connect_timeout_seconds,
            remote_connect_attempts=max(1, settings.remote_connect_attempts),
            local_launch_enabled=settings.local_launch_enabled,
            local_launch_attempts=max(1, settings.local_launch_attempts),
            local_launch_backoff=settings.local_launch_backoff_seconds,
            local_launch_timeout=settings.local_launch_timeout_seconds,
            navigation_timeout=settings.navigation_timeout_seconds,
            default_timeout=settings.default_timeout_seconds,
            chromedriver_path=settings.chromedriver_path or env.get("CHROMEDRIVER_PATH", ""),
        )

        if kind == ProfileKind.CI:
            return replace(
                profile,
                navigation_timeout=profile.navigation_timeout * CI_TIMEOUT_MULTIPLIER,
                default_timeout=profile.default_timeout * CI_TIMEOUT_MULTIPLIER,
                local_launch_timeout=profile.local_launch_timeout * CI_TIMEOUT_MULTIPLIER,
            )
        if kind == ProfileKind.CONSTRAINED:
            # Constrained hosts always run headless with the minimal argument set.
            return replace(
                profile,
                headless=True,
                launch_args=CONSTRAINED_LAUNCH_ARGS,
                process_cleanup=True,
            )
        return profile


def remote_endpoint_for(settings: Settings) -> str | None:
    """
    Resolve the managed-browser endpoint, or None if the remote tier is off.

    An explicit endpoint wins; otherwise a token selects the hosted service,
    using its WebDriver URL for Selenium and its CDP URL for Playwright.
    """
    token = settings.browserless_token
    endpoint = settings.remote_browser_endpoint
    if endpoint:
        if token and "token=" not in endpoint:
            separator = "&" if "?" in endpoint else "?"
            endpoint = f"{endpoint}{separator}token={token}"
        return endpoint
    if not token:
        return None
    if settings.browser_engine == BrowserEngine.PLAYWRIGHT:
        return f"wss://{BROWSERLESS_HOST}?token={token}"
    return f"https://{BROWSERLESS_HOST}/webdriver?token={token}"


def redact_token(url: str) -> str:
    return re.sub(r"token=[^&]+", "token=***", url)


@functools.cache
def default_profile() -> RuntimeProfile:
    """The process-wide profile, detected once from the loaded settings."""
    return RuntimeProfile.detect(config.settings)
