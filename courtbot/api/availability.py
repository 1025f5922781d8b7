import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from courtbot.config import settings
from courtbot.models.schemas import CheckResult
from courtbot.services.database_service import database_service
from courtbot.services.reservation_checker import check_availability

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


def verify_api_secret(
    x_api_secret: str | None = Header(None, description="Shared secret for manual triggers"),
) -> None:
    """
    Check the optional X-API-Secret header.

    Only enforced when API_SECRET_KEY is configured, so local setups can
    trigger checks without one.
    """
    if not settings.api_secret_key:
        return
    if x_api_secret != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Secret header")


@router.post("/refresh", response_model=CheckResult)
async def refresh_availability(
    account_id: int | None = None,
    _: None = Depends(verify_api_secret),
) -> CheckResult:
    """Run a check now and store the snapshot."""
    logger.info(f"Manual availability refresh requested for account {account_id or 'default'}")
    return await check_availability(account_id, source="manual", sink=database_service)


@router.get("/latest", response_model=CheckResult)
async def latest_availability(account_id: int | None = None) -> CheckResult:
    snapshot = await database_service.get_latest_snapshot(account_id=account_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="No availability data yet")
    return snapshot


@router.get("/history", response_model=list[CheckResult])
async def availability_history(
    limit: int = Query(10, ge=1, le=100),
    account_id: int | None = None,
) -> list[CheckResult]:
    return await database_service.get_recent_snapshots(limit=limit, account_id=account_id)
