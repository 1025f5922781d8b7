#!/usr/bin/env python3
"""
Validate the amenity DOM schema against captured HTML fixtures.

This script:
1. Loads the login and reservation page fixtures (captured snapshots if present,
   otherwise the checked-in samples)
2. Tests every selector and candidate list in amenity_dom_schema against them
3. Parses the reservation table the way the scraper does and reports the result

Usage:
    python scripts/validate_selectors.py
"""

import json
import sys
from pathlib import Path

from bs4 import BeautifulSoup

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from courtbot.automation.availability_scraper import parse_reservations
from courtbot.drivers.amenity_dom_schema import DOM

FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"

# Candidate lists where at least one entry must match, per fixture
CANDIDATE_LISTS = {
    "login": {
        "username_inputs": DOM.LOGIN.username_inputs,
        "password_inputs": DOM.LOGIN.password_inputs,
        "submit_buttons": DOM.LOGIN.submit_buttons,
    },
    "reservations": {
        "tables": DOM.RESERVATIONS.tables,
        "load_more_buttons": DOM.RESERVATIONS.load_more_buttons,
    },
}

# Single selectors expected on the reservation page
SINGLE_SELECTORS = {
    "reservations": {
        "container": DOM.RESERVATIONS.container,
        "date_cell": DOM.RESERVATIONS.date_cell,
        "time_cell": DOM.RESERVATIONS.time_cell,
        "date_input": DOM.BOOKING.date_input,
        "start_time": DOM.BOOKING.start_time,
        "end_time": DOM.BOOKING.end_time,
        "submit_button": DOM.BOOKING.submit_button,
    },
}


def load_html(*fixture_names: str) -> str | None:
    """Return the first fixture that exists, as raw HTML."""
    for fixture_name in fixture_names:
        html_path = FIXTURES_DIR / f"{fixture_name}.html"
        if html_path.exists():
            return html_path.read_text(encoding="utf-8")
    return None


def test_selector(soup: BeautifulSoup, selector: str) -> tuple[int, list[str]]:
    """Test a CSS selector against HTML and return match count and sample text."""
    try:
        elements = soup.select(selector)
    except ValueError as e:
        return -1, [f"ERROR: {e}"]
    samples = []
    for el in elements[:3]:
        text = el.get_text(strip=True)[:50]
        samples.append(f"<{el.name} id='{el.get('id', '')}'>{text}...")
    return len(elements), samples


def validate_selectors() -> int:
    """Main validation routine. Returns the number of failing checks."""
    print("=" * 70)
    print("Amenity DOM Selector Validation Report")
    print("=" * 70)

    raw = {
        "login": load_html("amenity_login_page", "amenity_login_sample"),
        "reservations": load_html("amenity_reservations_page", "amenity_reservations_sample"),
    }

    report: dict[str, list[dict]] = {"working": [], "broken": []}

    for page, html in raw.items():
        print(f"\n{'=' * 70}")
        print(f"Page: {page.upper()}")
        print("=" * 70)
        if html is None:
            print("  SKIPPED: No fixture available")
            continue
        soup = BeautifulSoup(html, "html.parser")

        for name, candidates in CANDIDATE_LISTS.get(page, {}).items():
            winner = None
            for candidate in candidates:
                count, _ = test_selector(soup, candidate)
                if count > 0:
                    winner = candidate
                    break
            if winner:
                print(f"  [OK] {name}: first match {winner!r}")
                report["working"].append({"page": page, "name": name, "selector": winner})
            else:
                print(f"  [X]  {name}: none of {len(candidates)} candidates matched")
                report["broken"].append({"page": page, "name": name, "selector": list(candidates)})

        for name, selector in SINGLE_SELECTORS.get(page, {}).items():
            count, samples = test_selector(soup, selector)
            if count > 0:
                print(f"  [OK] {name}: {selector} ({count} matches)")
                for sample in samples:
                    print(f"       Sample: {sample}")
                report["working"].append({"page": page, "name": name, "selector": selector})
            else:
                print(f"  [X]  {name}: {selector}")
                report["broken"].append({"page": page, "name": name, "selector": selector})

    if raw["reservations"]:
        pairs, _ = parse_reservations(raw["reservations"])
        dates = sorted({date_label for date_label, _ in pairs})
        print(f"\nParsed {len(pairs)} reservation rows across {len(dates)} dates")
        for date_label in dates:
            times = [t for d, t in pairs if d == date_label]
            print(f"  {date_label}: {', '.join(times)}")

    print("\n" + "=" * 70)
    print(f"[OK] Working: {len(report['working'])}   [X] Broken: {len(report['broken'])}")

    report_path = FIXTURES_DIR / "selector_report.json"
    report_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(f"Report saved to: {report_path}")

    return len(report["broken"])


if __name__ == "__main__":
    sys.exit(1 if validate_selectors() else 0)
