"""
Database service for persisting check and booking results.

DatabaseService is the persistence sink the orchestration layer writes to:
``save`` accepts either a CheckResult or a BookingResult and stores it in the
matching table.
"""

import logging

from sqlalchemy import select

from courtbot.models.database import (
    AsyncSessionLocal,
    AvailabilitySnapshotRecord,
    BookingAttemptRecord,
)
from courtbot.models.schemas import BookingResult, CheckResult

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Provides database operations for availability snapshots and booking attempts.

    This service handles the conversion between Pydantic models used in the
    application layer and SQLAlchemy models used for persistence.
    """

    def _check_to_record(
        self, result: CheckResult, source: str, account_id: int | None
    ) -> AvailabilitySnapshotRecord:
        """Convert a CheckResult to an AvailabilitySnapshotRecord."""
        return AvailabilitySnapshotRecord(
            source=source,
            account_id=account_id if account_id is not None else result.account_id,
            success=result.success,
            fallback_mode=result.fallback_mode,
            total_available_slots=result.total_available_slots,
            checked_at=result.checked_at.replace(tzinfo=None),
            dates=", ".join(day.date for day in result.dates),
            message=result.message,
            data_json=result.model_dump_json(),
        )

    def _record_to_check(self, record: AvailabilitySnapshotRecord) -> CheckResult:
        """Convert an AvailabilitySnapshotRecord back to the CheckResult it stored."""
        return CheckResult.model_validate_json(record.data_json)  # type: ignore[arg-type]

    def _booking_to_record(
        self, result: BookingResult, source: str, account_id: int | None
    ) -> BookingAttemptRecord:
        """Convert a BookingResult to a BookingAttemptRecord."""
        request = result.booking_request
        return BookingAttemptRecord(
            source=source,
            account_id=account_id,
            booking_date=request.date,
            start_hour=request.time.start_hour,
            end_hour=request.time.end_hour,
            time_label=request.time.formatted,
            success=result.success,
            confirmed=bool(result.result and result.result.confirmed),
            retryable=result.retryable,
            message=result.result.message if result.result else None,
            error=result.error,
        )

    async def save(
        self, result: CheckResult | BookingResult, source: str, account_id: int | None = None
    ) -> int:
        """
        Persist a check or booking result.

        Returns:
            The primary key of the new row.
        """
        if isinstance(result, CheckResult):
            record: AvailabilitySnapshotRecord | BookingAttemptRecord = self._check_to_record(
                result, source, account_id
            )
        elif isinstance(result, BookingResult):
            record = self._booking_to_record(result, source, account_id)
        else:
            raise TypeError(f"Cannot persist {type(result).__name__}")

        async with AsyncSessionLocal() as db:
            db.add(record)
            await db.commit()
            await db.refresh(record)
            logger.debug(f"Saved {record.__tablename__} row {record.id} from {source}")
            return record.id  # type: ignore[return-value]

    async def get_latest_snapshot(
        self, account_id: int | None = None, successful_only: bool = True
    ) -> CheckResult | None:
        """Get the most recent availability snapshot, optionally for one account."""
        async with AsyncSessionLocal() as db:
            query = select(AvailabilitySnapshotRecord)
            if account_id is not None:
                query = query.where(AvailabilitySnapshotRecord.account_id == account_id)
            if successful_only:
                query = query.where(AvailabilitySnapshotRecord.success.is_(True))
            query = query.order_by(
                AvailabilitySnapshotRecord.checked_at.desc(), AvailabilitySnapshotRecord.id.desc()
            ).limit(1)
            result = await db.execute(query)
            record = result.scalar_one_or_none()
            if record:
                return self._record_to_check(record)
            return None

    async def get_recent_snapshots(
        self, limit: int = 10, account_id: int | None = None
    ) -> list[CheckResult]:
        """Get the newest snapshots first."""
        async with AsyncSessionLocal() as db:
            query = select(AvailabilitySnapshotRecord)
            if account_id is not None:
                query = query.where(AvailabilitySnapshotRecord.account_id == account_id)
            query = query.order_by(
                AvailabilitySnapshotRecord.checked_at.desc(), AvailabilitySnapshotRecord.id.desc()
            ).limit(limit)
            result = await db.execute(query)
            return [self._record_to_check(r) for r in result.scalars().all()]

    async def get_booking_attempts(
        self,
        account_id: int | None = None,
        success: bool | None = None,
        limit: int = 50,
    ) -> list[BookingAttemptRecord]:
        """Get booking attempts, newest first, optionally filtered by account and/or outcome."""
        async with AsyncSessionLocal() as db:
            query = select(BookingAttemptRecord)
            if account_id is not None:
                query = query.where(BookingAttemptRecord.account_id == account_id)
            if success is not None:
                query = query.where(BookingAttemptRecord.success.is_(success))
            query = query.order_by(
                BookingAttemptRecord.created_at.desc(), BookingAttemptRecord.id.desc()
            ).limit(limit)
            result = await db.execute(query)
            return list(result.scalars().all())


database_service = DatabaseService()
