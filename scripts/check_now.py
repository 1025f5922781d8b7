#!/usr/bin/env python3
"""
Run one availability check from the command line and print the result as JSON.

Usage:
    python scripts/check_now.py [--account-id N] [--save]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from courtbot.config import settings
from courtbot.models.database import init_db
from courtbot.services.database_service import database_service
from courtbot.services.reservation_checker import check_availability


async def main(account_id: int | None, save: bool) -> int:
    sink = None
    if save:
        await init_db()
        sink = database_service

    result = await check_availability(account_id, source="script", sink=sink)
    print(result.model_dump_json(indent=2))

    if not result.success:
        return 1
    if result.fallback_mode:
        return 2
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check amenity availability now")
    parser.add_argument("--account-id", type=int, default=None)
    parser.add_argument("--save", action="store_true", help="Store the snapshot in the database")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(main(args.account_id, args.save)))
