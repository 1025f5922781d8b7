from fastapi import APIRouter

from courtbot.config import load_accounts, settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str | int]:
    """Liveness probe; also reports which engine and how many accounts are configured."""
    return {
        "status": "healthy",
        "service": "courtbot",
        "browser_engine": settings.browser_engine.value,
        "accounts": len(load_accounts()),
    }


@router.get("/")
async def root() -> dict[str, str | dict[str, str]]:
    return {
        "service": "Courtbot - Amenity Reservation Assistant",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "latest_availability": "/availability/latest",
            "availability_history": "/availability/history",
            "refresh": "/availability/refresh",
            "bookings": "/bookings",
            "scheduled_check": "/jobs/check-availability",
        },
    }
