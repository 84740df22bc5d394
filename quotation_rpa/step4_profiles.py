from __future__ import annotations

from .context import RunContext
from .finish_codes import map_finish
from .form_adapter import FormAdapter
from .models import LineItem, row_number
from .rows import RowOutcome, ensure_rows, option_snapshot, read_when_filled, wait_options_replaced
from .step3_header import RowDefaults

MAX_PROFILE_RETRIES = 2

# Calculation triggers tried after the first one, in order.
RETRY_LADDER: tuple[str, ...] = ("profile.calculate", "profile.calculate_alt")


async def _set_finish_and_shade(
    form: FormAdapter,
    ctx: RunContext,
    out: RowOutcome,
    n: int,
    finish_label: str,
    shade: str,
    defaults: RowDefaults,
) -> None:
    t = ctx.timings
    row = out.row
    if finish_label:
        finish = map_finish(finish_label)
    else:
        finish = getattr(defaults, f"finish{n}")
        ctx.emitter.detail(f"[ROW {row}] Using header Finish{n}: {finish}")

    ctx.checkpoint(f"profile {row} finish{n}")
    out.steps.append(f"finish{n}")
    stale = await option_snapshot(form, f"profile.shade{n}", row)
    await form.set_value(f"profile.finish{n}", finish, row)
    await form.trigger(f"profile.repopulate_shade{n}", row)
    await wait_options_replaced(form, f"profile.shade{n}", row, stale, t.row_finish_settle_ms, t.poll_interval_ms)

    if not shade:
        shade = getattr(defaults, f"shade{n}")
        ctx.emitter.detail(f"[ROW {row}] Using header Shade{n}: {shade}")
    ctx.checkpoint(f"profile {row} shade{n}")
    out.steps.append(f"shade{n}")
    await form.choose_option(f"profile.shade{n}", shade, row)


async def fill_profile_row(form: FormAdapter, item: LineItem, row: str, defaults: RowDefaults, ctx: RunContext) -> RowOutcome:
    """SetReference -> SetQuantity -> Finish/Shade x2 -> TriggerCalculation -> VerifyAmount.

    An empty amount after the retry ladder is only logged; the reconciliation
    pass classifies the row.
    """
    t = ctx.timings
    em = ctx.emitter
    out = RowOutcome(row=row, reference=item.reference)
    em.detail(f"[ROW {row}] Processing: REF={item.reference}, AMT={item.quantity}, DESC={item.description}")

    ctx.checkpoint(f"profile {row}")
    ctx.progress["profile"] += 1
    out.steps.append("reference")
    if not await form.set_value("profile.reference", item.reference, row):
        em.warning(f"Row {row}: reference input not found, row skipped")
        out.skipped = True
        return out
    await form.trigger("profile.validate_reference", row)
    # Reference validation fetches the profile metadata from the server.
    await read_when_filled(form, "profile.description", row, t.reference_settle_ms, t.poll_interval_ms)

    ctx.checkpoint(f"profile {row} quantity")
    out.steps.append("quantity")
    await form.set_value("profile.quantity", str(item.quantity), row)

    await _set_finish_and_shade(form, ctx, out, 1, item.finish1, item.shade1, defaults)
    await _set_finish_and_shade(form, ctx, out, 2, item.finish2, item.shade2, defaults)

    ctx.checkpoint(f"profile {row} calculate")
    out.steps.append("calculate")
    await form.trigger("profile.calculate", row)
    out.amount = await read_when_filled(form, "profile.amount", row, t.calc_wait_ms, t.poll_interval_ms)
    if out.amount:
        em.detail(f"[ROW {row}] Amount calculated: {out.amount}")
        return out

    for event in RETRY_LADDER[:MAX_PROFILE_RETRIES]:
        ctx.checkpoint(f"profile {row} retry {out.retries + 1}")
        out.retries += 1
        em.detail(f"[ROW {row}] Amount not calculated, retry {out.retries} via {event}...")
        await form.trigger(event, row)
        out.amount = await read_when_filled(form, "profile.amount", row, t.calc_retry_wait_ms, t.poll_interval_ms)
        if out.amount:
            em.detail(f"[ROW {row}] Amount calculated on retry {out.retries}: {out.amount}")
            return out

    em.warning(f"Row {row}: amount still not calculated after retries (REF {item.reference})")
    return out


async def fill_profiles(form: FormAdapter, items: list[LineItem], defaults: RowDefaults, ctx: RunContext) -> list[RowOutcome]:
    """Fill selected profiles strictly one row at a time, rows numbered by selection order."""
    ctx.emitter.info(f"Ensuring {len(items)} rows are available in the grid...")
    await ensure_rows(form, "profile", len(items), ctx)
    ctx.emitter.info(f"Filling {len(items)} profile items...")

    outcomes: list[RowOutcome] = []
    for idx, item in enumerate(items):
        outcomes.append(await fill_profile_row(form, item, row_number(idx), defaults, ctx))

    done = sum(1 for o in outcomes if o.calculated)
    ctx.emitter.info(f"All profile rows processed ({done}/{len(items)} calculated); final verification follows")
    return outcomes
