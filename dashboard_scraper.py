#!/usr/bin/env python3
"""
PermitInfo Dashboard Scraper

Reads the permit grid on the portal dashboard and, for every active permit
with a detail page, the plates that can be assigned to it.

Usage:
    python dashboard_scraper.py
    python dashboard_scraper.py --visible --concurrency 2
"""

import asyncio
import json
import sys
from typing import Optional
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

import portal_map
from models import Permit, Plate
from portal_errors import EnrichmentError, ScrapeFieldError


# =============================================================================
# Row parsing
# =============================================================================


async def _cell_text(row, field: str, selector: str) -> str:
    cell = await row.query_selector(selector)
    if cell is None:
        raise ScrapeFieldError(field, f"no cell matching {selector}")
    return (await cell.inner_text()).strip()


async def _detail_url(row, base_url: str, timeout_ms: float) -> Optional[str]:
    """Detail link of a row, or None. Inactive permits usually have none."""
    try:
        link = await row.wait_for_selector(portal_map.DETAIL_LINK, timeout=timeout_ms)
    except PlaywrightTimeout:
        return None
    if link is None:
        return None
    href = await link.get_attribute("href")
    if not href:
        return None
    return urljoin(base_url, href)


async def parse_row(row, base_url: str, detail_link_timeout_ms: float = 1000) -> Permit:
    """
    Parse one dashboard row into a Permit.

    Raises ScrapeFieldError if a cell is missing or a required cell is
    empty; callers drop the row.
    """
    fields = {}
    for field, selector in portal_map.ROW_FIELDS.items():
        fields[field] = await _cell_text(row, field, selector)

    for field in portal_map.REQUIRED_ROW_FIELDS:
        if not fields[field]:
            raise ScrapeFieldError(field, "empty")

    fields["detail_page_url"] = await _detail_url(row, base_url, detail_link_timeout_ms)
    return Permit(**fields)


async def scrape_dashboard(session) -> list[Permit]:
    """Parse every dashboard row. Unparsable rows are logged and dropped."""
    page = session.page
    reporter = session.reporter

    rows = await page.query_selector_all(portal_map.DASHBOARD_ROW)
    reporter.log(f"📋 Found {len(rows)} dashboard rows")

    permits = []
    for index, row in enumerate(rows, start=1):
        try:
            permit = await parse_row(row, page.url, session.config.detail_link_timeout_ms)
        except ScrapeFieldError as e:
            reporter.log(f"  ⚠ Row {index} dropped: {e}")
            continue
        except PlaywrightError as e:
            reporter.log(f"  ⚠ Row {index} dropped: {e}")
            continue
        permits.append(permit)

    return permits


def active_permits(permits: list[Permit]) -> list[Permit]:
    return [p for p in permits if p.is_active]


# =============================================================================
# Plate enrichment
# =============================================================================


async def extract_plates(page) -> list[Plate]:
    """Read the assignable plates from a permit detail page."""
    plates = []
    for row in await page.query_selector_all(portal_map.PLATE_ROW):
        label = await row.query_selector(portal_map.PLATE_LABEL)
        if label is None:
            continue
        plate = (await label.inner_text()).strip()
        if not plate:
            continue
        name_cell = await row.query_selector(portal_map.PLATE_NAME)
        name = (await name_cell.inner_text()).strip() if name_cell else ""
        plates.append(Plate(plate=plate, name=name))
    return plates


async def _close_page(session, page):
    try:
        await page.close()
    except PlaywrightError as e:
        session.reporter.log(f"  ⚠ Could not close detail page: {e}")


async def enrich_plates(session, permit: Permit) -> Permit:
    """
    Return a copy of `permit` with its available plates.

    Permits that are not active, or have no detail page, are returned as-is
    without opening a page.
    """
    if not permit.can_enrich:
        return permit

    page = None
    try:
        page = await session.open_page()
        await session.navigate(permit.detail_page_url, page=page)
        plates = await extract_plates(page)
    except PlaywrightError as e:
        raise EnrichmentError(permit.permit_no, str(e)) from e
    finally:
        if page is not None:
            await _close_page(session, page)

    session.reporter.log(f"  ✓ Permit {permit.permit_no}: {len(plates)} plates")
    return permit.model_copy(update={"available_plates": plates})


async def enrich_all(session, permits: list[Permit]) -> list[Permit]:
    """
    Enrich permits concurrently, at most `enrichment_concurrency` at a time.

    Order is preserved. A failed permit is kept with an empty plate list.
    """
    sem = asyncio.Semaphore(session.config.enrichment_concurrency)

    async def bounded_enrich(permit: Permit) -> Permit:
        async with sem:
            try:
                return await enrich_plates(session, permit)
            except EnrichmentError as e:
                session.reporter.log(f"  ⚠ {e}")
                return permit.model_copy(update={"available_plates": []})

    return list(await asyncio.gather(*(bounded_enrich(p) for p in permits)))


async def load_active_permits(session) -> list[Permit]:
    """Read path: scrape the dashboard, keep active permits, fetch their plates."""
    permits = await scrape_dashboard(session)
    active = active_permits(permits)
    session.reporter.log(f"✓ {len(active)} of {len(permits)} permits are active")
    if active:
        session.reporter.log(f"⬇️  Fetching plates for {len(active)} permits...")
    return await enrich_all(session, active)


# =============================================================================
# CLI Interface
# =============================================================================


async def main():
    """Main entry point."""
    import argparse

    from permit_session import PermitSession
    from portal_config import Config
    from progress_channel import ChannelRegistry, ProgressReporter

    parser = argparse.ArgumentParser(description="PermitInfo dashboard scraper")
    parser.add_argument(
        "--visible",
        action="store_true",
        help="Run browser in visible mode (not headless)"
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Max detail pages open at once"
    )
    args = parser.parse_args()

    config = Config.from_env()
    config = config.model_copy(update={"headless": not args.visible})
    if args.concurrency:
        config = config.model_copy(update={"enrichment_concurrency": args.concurrency})

    reporter = ProgressReporter(ChannelRegistry(), "cli", debug=config.debug)
    async with PermitSession(config, reporter) as session:
        await session.authenticate()
        permits = await load_active_permits(session)

    print(json.dumps([p.model_dump(by_alias=True) for p in permits], indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
