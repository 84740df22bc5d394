from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .context import RunContext
from .form_adapter import HOOK_OK, FormAdapter
from .waits import pause, wait_until

logger = logging.getLogger(__name__)


@dataclass
class RowOutcome:
    """What the filler saw for one row. Diagnostic only; reconciliation decides."""

    row: str
    reference: str
    amount: str = ""
    retries: int = 0
    skipped: bool = False
    steps: list[str] = field(default_factory=list)

    @property
    def calculated(self) -> bool:
        return bool(self.amount)


async def ensure_rows(form: FormAdapter, grid: str, required: int, ctx: RunContext) -> int:
    """Grow ``grid`` with the portal's add-row hook until it holds ``required`` rows."""
    t = ctx.timings
    current = await form.row_count(grid)
    ctx.emitter.detail(f"[{grid.upper()}] Current rows: {current}, needed: {required}")
    if current >= required:
        return current

    ctx.emitter.detail(f"[{grid.upper()}] Adding {required - current} more rows...")
    while current < required:
        if await form.trigger(f"{grid}.add_row") != HOOK_OK:
            ctx.emitter.warning(f"Could not add {grid} rows; grid has {current} of {required}")
            break
        current += 1
        await pause(t.row_add_pause_ms)
    await pause(t.grid_stabilize_ms)
    ctx.emitter.detail(f"[{grid.upper()}] Rows ready: {current}")
    return current


async def read_when_filled(form: FormAdapter, field: str, row: str, timeout_ms: int, poll_ms: int) -> str:
    """Poll a row field until it carries a value; '' on timeout."""
    value = await wait_until(lambda: form.get_value(field, row), timeout_ms, poll_ms)
    return value or ""


async def option_snapshot(form: FormAdapter, field: str, row: str | None = None) -> list[str]:
    try:
        return await form.option_values(field, row)
    except Exception as e:
        logger.debug("options of %s unreadable: %s", field, e)
        return []


async def wait_options_replaced(
    form: FormAdapter, field: str, row: str | None, before: list[str], timeout_ms: int, poll_ms: int
) -> bool:
    """Wait until a select's option list differs from ``before`` and offers a choice.

    The previous list usually already has several options, so only a change
    shows that the portal repopulated it. False when ``timeout_ms`` passes first.
    """

    async def replaced() -> bool:
        values = await option_snapshot(form, field, row)
        return len(values) > 1 and values != before

    return bool(await wait_until(replaced, timeout_ms, poll_ms))
