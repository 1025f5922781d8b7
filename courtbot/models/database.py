"""
SQLAlchemy database models for persistent storage.

This module defines the schema for availability snapshots and booking
attempts. The automation core only writes through DatabaseService; the
tables exist so results can be served back over HTTP and compared over time.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from courtbot.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class AvailabilitySnapshotRecord(Base):
    """
    One availability check result.

    Columns:
        id: Auto-incrementing primary key.
        source: What triggered the check ("manual", "cron", "script").
        account_id: Configured account the check ran as, if any.
        success: Whether the check completed.
        fallback_mode: True when no browser could be acquired and slot data is unknown.
        total_available_slots: Sum of available slots across the window.
        checked_at: When the check finished (UTC, naive).
        dates: Comma-separated day labels covered by the snapshot.
        message: Failure or fallback explanation.
        data_json: The full CheckResult as JSON.
        created_at: When this record was written.
    """

    __tablename__ = "availability_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), nullable=False, index=True)
    account_id = Column(Integer, nullable=True, index=True)
    success = Column(Boolean, nullable=False)
    fallback_mode = Column(Boolean, default=False)
    total_available_slots = Column(Integer, default=0)
    checked_at = Column(DateTime, nullable=False, index=True)
    dates = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    data_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class BookingAttemptRecord(Base):
    """
    One booking attempt and its outcome.

    Columns:
        id: Auto-incrementing primary key.
        source: What triggered the booking.
        account_id: Configured account the booking ran as.
        booking_date: The day that was requested.
        start_hour: Requested start hour (24h).
        end_hour: Requested end hour (24h).
        time_label: Human slot label, e.g. "5:00 PM - 6:00 PM".
        success: Whether the booking flow completed.
        confirmed: Whether the site showed a confirmation signal.
        retryable: True when the failure was infrastructure (no browser).
        message: Confirmation text from the site, if any.
        error: Failure explanation, if any.
        created_at: When this record was written.
    """

    __tablename__ = "booking_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(20), nullable=False)
    account_id = Column(Integer, nullable=True, index=True)
    booking_date = Column(Date, nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)
    time_label = Column(String(40), nullable=False)
    success = Column(Boolean, nullable=False)
    confirmed = Column(Boolean, default=False)
    retryable = Column(Boolean, default=False)
    message = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


engine = create_async_engine(
    settings.database_url.replace("sqlite://", "sqlite+aiosqlite://")
    if settings.database_url.startswith("sqlite://")
    else settings.database_url,
    echo=False,
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
