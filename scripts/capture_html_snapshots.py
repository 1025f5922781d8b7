#!/usr/bin/env python3
"""
Capture HTML snapshots from the live amenity site for testing.

This script:
1. Acquires a browser through the same SessionManager the service uses
2. Saves the sign-in page
3. Logs in and saves the amenity page (reservation table + booking form)
4. Clicks "load more" once, if present, and saves the second page

Usage:
    python scripts/capture_html_snapshots.py [--account-id N]
"""

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from courtbot.automation.authenticator import Authenticator
from courtbot.config import get_credentials, settings
from courtbot.drivers.amenity_dom_schema import DOM
from courtbot.drivers.base import Driver
from courtbot.drivers.runtime_profile import default_profile
from courtbot.drivers.session_manager import FallbackSignal, SessionManager

FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"

LOAD_MORE_WAIT = 3


async def save_snapshot(driver: Driver, name: str, metadata: dict | None = None) -> Path:
    """Save HTML snapshot, screenshot and metadata."""
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)

    html_path = FIXTURES_DIR / f"{name}.html"
    html_path.write_text(await driver.content(), encoding="utf-8")
    print(f"  Saved: {html_path}")

    screenshot_path = FIXTURES_DIR / f"{name}.png"
    await driver.screenshot(str(screenshot_path))
    print(f"  Saved: {screenshot_path}")

    if metadata is not None:
        meta_path = FIXTURES_DIR / f"{name}.meta.json"
        metadata["url"] = await driver.current_url()
        metadata["captured_at"] = time.strftime("%Y-%m-%d %H:%M:%S")
        meta_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        print(f"  Saved: {meta_path}")

    return html_path


async def capture_snapshots(account_id: int | None) -> None:
    """Main capture routine."""
    print("=" * 60)
    print("Amenity Site HTML Snapshot Capture")
    print("=" * 60)

    credentials = get_credentials(account_id)
    if credentials is None:
        print("ERROR: No account configured.")
        print("Set USER1_EMAIL/USER1_PASSWORD (or EMAIL/PASSWORD) in .env")
        sys.exit(1)

    async with SessionManager(default_profile()) as manager:
        driver = await manager.acquire("check")
        if isinstance(driver, FallbackSignal):
            print(f"ERROR: No browser available: {driver.reason}")
            sys.exit(1)

        print("\n[1/3] Capturing sign-in page...")
        await driver.goto(settings.amenity_url, wait_until="networkidle")
        await save_snapshot(driver, "amenity_login_page", {"state": "login_form"})

        print("\n[2/3] Logging in and capturing amenity page...")
        await Authenticator().login(driver, credentials)
        await driver.resolve_field(DOM.RESERVATIONS.tables, timeout=settings.default_timeout_seconds)
        await save_snapshot(driver, "amenity_reservations_page", {"state": "first_page"})

        print("\n[3/3] Capturing second reservation page...")
        load_more = None
        for selector in DOM.RESERVATIONS.load_more_buttons:
            if await driver.is_visible(selector):
                load_more = selector
                break
        if load_more is None:
            print("  No load-more control visible; skipping")
        else:
            await driver.click(load_more)
            await asyncio.sleep(LOAD_MORE_WAIT)
            await save_snapshot(
                driver, "amenity_reservations_page_2", {"state": "after_load_more", "via": load_more}
            )

    print("\nDone. Run scripts/validate_selectors.py to check the schema against the snapshots.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--account-id", type=int, default=None)
    args = parser.parse_args()
    asyncio.run(capture_snapshots(args.account_id))
