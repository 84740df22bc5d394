from __future__ import annotations

from .context import RunContext
from .form_adapter import FormAdapter
from .models import LineItem, row_number
from .rows import RowOutcome, ensure_rows, read_when_filled

MAX_ACCESSORY_RETRIES = 3


async def _submit_reference(form: FormAdapter, item: LineItem, row: str, ctx: RunContext, wait_ms: int) -> str | None:
    """Write the reference, fire its lookup hook and wait for the description.

    Returns None when the row has no reference input.
    """
    if not await form.set_value("accessory.reference", item.reference, row):
        return None
    await form.trigger("accessory.validate_reference", row)
    return await read_when_filled(form, "accessory.description", row, wait_ms, ctx.timings.poll_interval_ms)


async def _submit_quantity(form: FormAdapter, item: LineItem, row: str) -> None:
    await form.set_value("accessory.quantity", str(item.quantity), row)
    await form.trigger("accessory.calculate", row)


async def _snapshot(form: FormAdapter, row: str) -> str:
    price = await form.get_value("accessory.price", row)
    desc = await form.get_value("accessory.description", row)
    return f"price={price}, desc={desc}"


async def fill_accessory_row(form: FormAdapter, item: LineItem, row: str, ctx: RunContext) -> RowOutcome:
    """Reference lookup, then quantity and price calculation, then a three-tier retry ladder.

    1. re-trigger the calculation only
    2. re-submit the reference, then recalculate with a longer wait
    3. clear the row and submit reference and quantity from scratch
    """
    t = ctx.timings
    em = ctx.emitter
    out = RowOutcome(row=row, reference=item.reference)
    em.detail(f"[ACC {row}] Processing: REF={item.reference}, AMT={item.quantity}, DESC={item.description}")

    ctx.checkpoint(f"accessory {row}")
    ctx.progress["accessory"] += 1
    out.steps.append("reference")
    desc = await _submit_reference(form, item, row, ctx, t.acc_reference_wait_ms)
    if desc is None:
        em.warning(f"Accessory row {row}: reference input not found, row skipped")
        out.skipped = True
        return out
    if not desc:
        ctx.checkpoint(f"accessory {row} reference retry")
        em.detail(f"[ACC {row}] Description not yet populated, re-submitting reference...")
        desc = await _submit_reference(form, item, row, ctx, t.acc_reference_retry_wait_ms)
        if not desc:
            em.detail(f"[ACC {row}] Reference {item.reference} not confirmed by the portal")

    ctx.checkpoint(f"accessory {row} quantity")
    out.steps.append("quantity")
    await _submit_quantity(form, item, row)
    out.amount = await read_when_filled(form, "accessory.amount", row, t.acc_calc_wait_ms, t.poll_interval_ms)
    if out.amount:
        em.detail(f"[ACC {row}] Amount={out.amount}, {await _snapshot(form, row)}")
        return out

    em.detail(f"[ACC {row}] Amount empty ({await _snapshot(form, row)}), retry 1...")
    ctx.checkpoint(f"accessory {row} retry 1")
    out.retries = 1
    await form.trigger("accessory.calculate", row)
    out.amount = await read_when_filled(form, "accessory.amount", row, t.acc_retry1_wait_ms, t.poll_interval_ms)
    if out.amount:
        em.detail(f"[ACC {row}] Amount on retry 1: {out.amount}")
        return out

    em.detail(f"[ACC {row}] Still empty, retry 2 (re-validate reference)...")
    ctx.checkpoint(f"accessory {row} retry 2")
    out.retries = 2
    await _submit_reference(form, item, row, ctx, t.acc_reference_retry_wait_ms)
    await form.trigger("accessory.calculate", row)
    out.amount = await read_when_filled(form, "accessory.amount", row, t.acc_retry2_wait_ms, t.poll_interval_ms)
    if out.amount:
        em.detail(f"[ACC {row}] Amount on retry 2: {out.amount}")
        return out

    em.detail(f"[ACC {row}] Still empty, retry 3 (reference and quantity from scratch)...")
    ctx.checkpoint(f"accessory {row} retry 3")
    out.retries = 3
    await form.set_value("accessory.quantity", "", row)
    await form.set_value("accessory.reference", "", row)
    await _submit_reference(form, item, row, ctx, t.acc_reference_retry_wait_ms)
    await _submit_quantity(form, item, row)
    out.amount = await read_when_filled(form, "accessory.amount", row, t.acc_retry3_wait_ms, t.poll_interval_ms)
    if out.amount:
        em.detail(f"[ACC {row}] Amount on retry 3: {out.amount}")
        return out

    em.warning(f"Accessory row {row}: not yet calculated after retries (REF {item.reference}); will verify at the end")
    return out


async def fill_accessories(form: FormAdapter, items: list[LineItem], ctx: RunContext) -> list[RowOutcome]:
    if not items:
        return []
    ctx.emitter.info(f"Filling {len(items)} accessories...")
    await ensure_rows(form, "accessory", len(items), ctx)

    outcomes: list[RowOutcome] = []
    for idx, item in enumerate(items):
        outcomes.append(await fill_accessory_row(form, item, row_number(idx), ctx))

    done = sum(1 for o in outcomes if o.calculated)
    ctx.emitter.info(f"All accessory rows processed ({done}/{len(items)} calculated); final verification follows")
    return outcomes
