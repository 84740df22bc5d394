from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .context import RunContext
from .form_adapter import FormAdapter
from .models import RunOptions
from .waits import pause

NUMBER_RE = re.compile(r"\d[\d.,]*")

GENERATE_REPORT = "GENERATE REPORT"
CREATE_PROFORMA = "CREATE A PROFORMA"


def parse_amount(text: str | None) -> Decimal | None:
    """First number in ``text``; handles '60084.31 €', '60,084.31' and '60.084,31'.

    A lone separator followed by exactly three digits is read as thousands
    grouping, so '12.345' gives 12345 where a plain invariant parse would
    give 12.345. Portal totals carry two decimals, so a three-digit tail only
    shows up as a grouped whole amount.
    """
    m = NUMBER_RE.search((text or "").replace("\xa0", " "))
    if not m:
        return None
    raw = m.group(0).rstrip(".,")
    if "," in raw and "." in raw:
        dec = "," if raw.rfind(",") > raw.rfind(".") else "."
        thousands = "." if dec == "," else ","
        raw = raw.replace(thousands, "").replace(dec, ".")
    else:
        for sep in (",", "."):
            if sep not in raw:
                continue
            parts = raw.split(sep)
            # A lone separator before exactly three digits is a thousands mark.
            grouped = len(parts) > 2 or (len(parts[-1]) == 3 and parts[0] != "0")
            raw = raw.replace(sep, "") if grouped else raw.replace(sep, ".")
            break
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


async def run_portal_actions(form: FormAdapter, options: RunOptions, ctx: RunContext) -> None:
    for wanted, label, message in (
        (options.generate_report, GENERATE_REPORT, "Generating report..."),
        (options.create_proforma, CREATE_PROFORMA, "Creating proforma..."),
    ):
        if not wanted:
            continue
        ctx.checkpoint(label.lower())
        ctx.emitter.info(message)
        if not await form.click_action(label):
            ctx.emitter.warning(f"Could not find button: {label}")
        await pause(ctx.timings.action_delay_ms)


async def extract_total(form: FormAdapter, ctx: RunContext) -> Decimal:
    """Portal's own grand total, or 0 with a warning when it cannot be read."""
    try:
        text = await form.read_total_text()
    except Exception as e:
        ctx.emitter.warning(f"Could not capture portal total: {e}")
        return Decimal("0")
    total = parse_amount(text)
    if total is None:
        ctx.emitter.warning("Could not capture portal total: no numeric value found")
        return Decimal("0")
    ctx.emitter.info(f"Portal ESTIMATE TOTAL: {total} EUR")
    return total
