import logging
import os
from collections.abc import Mapping
from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings

from courtbot.models.schemas import Credentials

logger = logging.getLogger(__name__)


class WaitMode(str, Enum):
    FIXED = "fixed"
    EVENT_DRIVEN = "event_driven"
    HYBRID = "hybrid"


class BrowserEngine(str, Enum):
    SELENIUM = "selenium"
    PLAYWRIGHT = "playwright"


class Settings(BaseSettings):
    amenity_url: str = (
        "https://www.avalonaccess.com/Information/Information/AmenityReservation"
        "?amenityKey=dd5c4252-e044-4012-a1e3-ec2e1a8cdddf"
    )

    # Legacy single-account credentials; USER{n}_EMAIL/USER{n}_PASSWORD take precedence.
    email: str = ""
    password: str = ""

    timezone: str = "America/New_York"
    window_days: int = 7

    browser_engine: BrowserEngine = BrowserEngine.SELENIUM
    headless: bool = True
    chromedriver_path: str = ""

    browserless_token: str = ""
    remote_browser_endpoint: str = ""
    remote_connect_timeout_seconds: float = 30.0
    remote_connect_attempts: int = 2

    local_launch_enabled: bool = True
    local_launch_attempts: int = 5
    local_launch_backoff_seconds: float = 2.0
    local_launch_timeout_seconds: float = 60.0
    # auto | local | ci | constrained
    runtime_environment: str = "auto"

    navigation_timeout_seconds: float = 60.0
    default_timeout_seconds: float = 30.0
    selector_timeout_seconds: float = 10.0

    login_settle_seconds: float = 10.0
    load_more_settle_seconds: float = 2.0
    load_more_max_clicks: int = 30
    booking_settle_seconds: float = 3.0
    session_retry_attempts: int = 3
    session_retry_delay_seconds: float = 2.0
    wait_mode: WaitMode = WaitMode.FIXED

    database_url: str = "sqlite+aiosqlite:///./courtbot.db"

    scheduler_api_key: str = ""
    api_secret_key: str = ""
    check_timeout_seconds: int = 600

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("window_days")
    @classmethod
    def validate_window_days(cls, value: int) -> int:
        if value not in (7, 10):
            raise ValueError("window_days must be 7 or 10")
        return value


settings = Settings()


def load_accounts(environ: Mapping[str, str] | None = None) -> list[Credentials]:
    """
    Read every configured account from the environment.

    Accounts are numbered USER1_EMAIL/USER1_PASSWORD, USER2_EMAIL/... and read
    until the first gap. If none are present, the legacy EMAIL/PASSWORD pair
    (or the matching settings fields) becomes account 1.
    """
    env = os.environ if environ is None else environ
    accounts: list[Credentials] = []

    index = 1
    while env.get(f"USER{index}_EMAIL"):
        accounts.append(
            Credentials(
                id=index,
                email=env[f"USER{index}_EMAIL"],
                password=env.get(f"USER{index}_PASSWORD", ""),
            )
        )
        index += 1

    if not accounts:
        email = env.get("EMAIL") or settings.email
        password = env.get("PASSWORD") or settings.password
        if email and password:
            accounts.append(Credentials(id=1, email=email, password=password))

    return accounts


def get_credentials(
    account_id: int | None = None, environ: Mapping[str, str] | None = None
) -> Credentials | None:
    """Return the account with the given id, or the first configured account."""
    accounts = load_accounts(environ)
    if not accounts:
        logger.error("No accounts configured. Set EMAIL and PASSWORD environment variables.")
        return None

    if account_id is None:
        return accounts[0]

    for account in accounts:
        if account.id == account_id:
            return account

    logger.error(
        f"Account {account_id} not found. Available accounts: "
        f"{', '.join(str(a.id) for a in accounts)}"
    )
    return None
