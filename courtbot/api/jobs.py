"""
Scheduled job endpoints.

This module provides the endpoint an external scheduler calls to refresh
availability for every configured account. It is secured with the
X-Scheduler-API-Key header.
"""

import asyncio
import logging
from datetime import UTC, datetime
from enum import Enum

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from courtbot.config import load_accounts, settings
from courtbot.models.schemas import CheckResult, Credentials
from courtbot.services.database_service import database_service
from courtbot.services.reservation_checker import check_availability

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


class JobExecutionStatus(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"


class JobExecutionItem(BaseModel):
    account_id: int
    status: JobExecutionStatus
    total_available_slots: int = 0
    error: str | None = None


class JobExecutionResult(BaseModel):
    executed_at: datetime
    total_accounts: int
    succeeded: int
    failed: int
    results: list[JobExecutionItem]


def verify_scheduler_auth(
    x_scheduler_api_key: str | None = Header(
        None, description="API key for scheduler authentication"
    ),
) -> None:
    """Verify the scheduler's API key."""
    if not settings.scheduler_api_key:
        raise HTTPException(
            status_code=500,
            detail="SCHEDULER_API_KEY is not configured on the server",
        )

    if not x_scheduler_api_key:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide X-Scheduler-API-Key header.",
        )

    if x_scheduler_api_key != settings.scheduler_api_key:
        raise HTTPException(status_code=401, detail="Invalid scheduler API key")


def _item_for(account_id: int, result: CheckResult) -> JobExecutionItem:
    if not result.success:
        status = JobExecutionStatus.FAILED
    elif result.fallback_mode:
        status = JobExecutionStatus.FALLBACK
    else:
        status = JobExecutionStatus.SUCCESS
    return JobExecutionItem(
        account_id=account_id,
        status=status,
        total_available_slots=result.total_available_slots,
        error=result.message if status != JobExecutionStatus.SUCCESS else None,
    )


async def _check_account(account: Credentials) -> JobExecutionItem:
    timeout = settings.check_timeout_seconds
    try:
        result = await asyncio.wait_for(
            check_availability(account.id, source="cron", sink=database_service),
            timeout=timeout,
        )
        return _item_for(account.id, result)
    except TimeoutError:
        logger.error(f"Availability check for account {account.id} timed out after {timeout}s")
        return JobExecutionItem(
            account_id=account.id,
            status=JobExecutionStatus.TIMEOUT,
            error=f"Execution timed out after {timeout} seconds",
        )
    except Exception as e:
        logger.exception(f"Availability check for account {account.id} failed with error: {e}")
        return JobExecutionItem(
            account_id=account.id,
            status=JobExecutionStatus.ERROR,
            error=str(e),
        )


@router.post("/check-availability", response_model=JobExecutionResult)
async def run_availability_checks(
    _: None = Depends(verify_scheduler_auth),
) -> JobExecutionResult:
    """
    Check availability for every configured account.

    Accounts run concurrently, each with its own browser and a per-account
    timeout. Fallback results count as succeeded: the run completed and
    recorded that availability is unknown.
    """
    now = datetime.now(UTC)
    accounts = load_accounts()
    if not accounts:
        logger.warning("Scheduled availability check ran with no accounts configured")

    results = list(await asyncio.gather(*(_check_account(account) for account in accounts)))
    succeeded = sum(
        1
        for item in results
        if item.status in (JobExecutionStatus.SUCCESS, JobExecutionStatus.FALLBACK)
    )

    return JobExecutionResult(
        executed_at=now,
        total_accounts=len(accounts),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=results,
    )
