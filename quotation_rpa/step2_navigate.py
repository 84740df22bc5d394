from __future__ import annotations

import logging

from .context import RunContext
from .locators import NEW_VALUATION, PROFILES_GRID, QUOTATIONS_ENTRY, any_present, resolve_first
from .waits import pause

logger = logging.getLogger(__name__)


async def _click_and_settle(page, loc, settle_ms: int, timeout_ms: int) -> None:
    await loc.click(timeout=timeout_ms)
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except Exception as e:
        logger.debug("no network idle after navigation click: %s", e)
    await pause(settle_ms)


async def open_quotations(page, ctx: RunContext, *, timeout_ms: int = 30000) -> bool:
    em = ctx.emitter
    em.detail(f"[NAVIGATE] Current URL: {page.url}")
    loc, cand = await resolve_first(page, QUOTATIONS_ENTRY, require_visible=True)
    if loc is None:
        em.warning("Could not find quotations menu, page may already be on quotations")
        return False
    em.detail(f"[NAVIGATE] Clicking quotations entry: {cand}")
    await _click_and_settle(page, loc, ctx.timings.navigation_settle_ms, timeout_ms)
    em.detail(f"[NAVIGATE] Navigation complete. New URL: {page.url}")
    return True


async def create_new_valuation(page, ctx: RunContext, *, timeout_ms: int = 30000) -> bool:
    em = ctx.emitter
    loc, cand = await resolve_first(page, NEW_VALUATION)
    if loc is not None:
        em.detail(f"[NAVIGATE] Clicking new valuation: {cand}")
        await _click_and_settle(page, loc, ctx.timings.valuation_settle_ms, timeout_ms)
        return True

    if await any_present(page, PROFILES_GRID):
        em.info("Profiles grid already visible, continuing without creating new valuation")
    else:
        em.warning("Could not find NEW VALUATION button, continuing anyway...")
    return False


async def navigate_to_entry_screen(page, ctx: RunContext, *, timeout_ms: int = 30000) -> bool:
    """Best effort: landing page -> quotations -> new valuation.

    Returns True when the line-item grid is present afterwards. A missing
    grid is only a warning; the fill steps tolerate absent rows.
    """
    ctx.emitter.info("Navigating to Quotations / Online Orders...")
    await open_quotations(page, ctx, timeout_ms=timeout_ms)
    ctx.checkpoint("navigation")

    ctx.emitter.info("Creating new valuation...")
    await create_new_valuation(page, ctx, timeout_ms=timeout_ms)

    on_grid = await any_present(page, PROFILES_GRID)
    if not on_grid:
        ctx.emitter.warning("Line-item grid not detected after navigation")
    return on_grid
