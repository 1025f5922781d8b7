import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from courtbot.api import availability, bookings, health, jobs
from courtbot.config import load_accounts, settings
from courtbot.drivers.runtime_profile import default_profile
from courtbot.models.database import init_db
from courtbot.services.booking_service import booking_service
from courtbot.services.database_service import database_service

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()

    if not settings.scheduler_api_key:
        logger.warning(
            "SCHEDULER_API_KEY is not configured. "
            "The /jobs/check-availability endpoint will return 500 errors. "
            "Set SCHEDULER_API_KEY environment variable for production use."
        )

    accounts = load_accounts()
    if accounts:
        logger.info(f"{len(accounts)} account(s) configured")
    else:
        logger.warning(
            "No accounts configured. Set USER1_EMAIL/USER1_PASSWORD "
            "(or EMAIL/PASSWORD) to enable checks and bookings."
        )

    profile = default_profile()
    logger.info(
        f"Runtime profile: {profile.kind.value}, engine {profile.engine.value}, "
        f"remote tier {'on' if profile.remote_endpoint else 'off'}, "
        f"local tier {'on' if profile.local_launch_enabled else 'off'}"
    )

    booking_service.set_sink(database_service)

    yield


app = FastAPI(
    title="Courtbot",
    description="Amenity reservation availability checker and booking assistant",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(jobs.router)
