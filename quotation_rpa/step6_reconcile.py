from __future__ import annotations

from .context import RunContext
from .form_adapter import FormAdapter
from .models import LineItem, UnfilledItem, row_number
from .waits import wait_until

PROFILE_REASON = "Amount not calculated - needs manual review"


async def _all_amounts_present(form: FormAdapter, profiles: list[LineItem], accessories: list[LineItem]) -> bool:
    for grid, items in (("profile", profiles), ("accessory", accessories)):
        for idx in range(len(items)):
            if not await form.get_value(f"{grid}.amount", row_number(idx)):
                return False
    return True


async def settle(form: FormAdapter, profiles: list[LineItem], accessories: list[LineItem], ctx: RunContext) -> None:
    """Give in-flight portal calculations time to land before the final read."""
    t = ctx.timings
    ctx.emitter.info(
        f"All items filled. Waiting up to {t.reconcile_settle_ms / 1000:g} seconds for all calculations to settle..."
    )
    await wait_until(lambda: _all_amounts_present(form, profiles, accessories), t.reconcile_settle_ms, t.poll_interval_ms)


async def _accessory_reason(form: FormAdapter, row: str) -> str:
    price = await form.get_value("accessory.price", row)
    desc = await form.get_value("accessory.description", row)
    return f"Amount not calculated (price={price}, desc={desc})"


async def reconcile(
    form: FormAdapter,
    profiles: list[LineItem],
    accessories: list[LineItem],
    ctx: RunContext,
    *,
    attempted: dict[str, int] | None = None,
    not_attempted_reason: str = "",
) -> None:
    """Re-read every selected row's amount and fill the unfilled lists.

    This is the only place that decides which items count as filled. With
    ``attempted`` given, rows past that count per grid were never touched and
    are recorded with ``not_attempted_reason`` instead of being read. The
    result is only updated once every row has been read, so a pass that
    raises leaves it untouched.
    """
    result = ctx.result
    em = ctx.emitter
    em.info("[FINAL CHECK] Starting verification of all rows...")

    unfilled: dict[str, list[UnfilledItem]] = {"profile": [], "accessory": []}
    for grid, items in (("profile", profiles), ("accessory", accessories)):
        limit = len(items) if attempted is None else attempted.get(grid, 0)
        bucket = unfilled[grid]
        for idx, item in enumerate(items):
            row = row_number(idx)
            if idx >= limit:
                reason = not_attempted_reason
            else:
                amount = await form.get_value(f"{grid}.amount", row)
                if amount:
                    continue
                reason = PROFILE_REASON if grid == "profile" else await _accessory_reason(form, row)
            bucket.append(
                UnfilledItem(
                    row_number=row,
                    reference=item.reference,
                    quantity=item.quantity,
                    description=item.description,
                    reason=reason,
                )
            )
        if items:
            missing = len(bucket)
            label = "Profiles" if grid == "profile" else "Accessories"
            em.info(f"[FINAL CHECK] {label}: {len(items) - missing}/{len(items)} have amounts")

    result.unfilled_profiles[:] = unfilled["profile"]
    result.unfilled_accessories[:] = unfilled["accessory"]
    result.reconciled = True
    result.finalize_counts()


def mark_all_unfilled(profiles: list[LineItem], accessories: list[LineItem], ctx: RunContext, reason: str) -> None:
    """Classify everything as unfilled when the form cannot be read at all."""
    result = ctx.result
    result.unfilled_profiles.clear()
    result.unfilled_accessories.clear()
    for items, bucket in ((profiles, result.unfilled_profiles), (accessories, result.unfilled_accessories)):
        for idx, item in enumerate(items):
            bucket.append(
                UnfilledItem(
                    row_number=row_number(idx),
                    reference=item.reference,
                    quantity=item.quantity,
                    description=item.description,
                    reason=reason,
                )
            )
    result.reconciled = True
    result.finalize_counts()


def log_unfilled_summary(accessories_selected: int, ctx: RunContext) -> None:
    result = ctx.result
    em = ctx.emitter
    if result.unfilled_profiles:
        em.warning(f"UNFILLED PROFILES: {len(result.unfilled_profiles)} items need manual review")
        for u in result.unfilled_profiles:
            em.warning(f"  - Row {u.row_number}: REF {u.reference} x {u.quantity} - {u.reason}")
    else:
        em.success("All profiles have calculated amounts!")

    if result.unfilled_accessories:
        em.warning(f"UNFILLED ACCESSORIES: {len(result.unfilled_accessories)} items need manual review")
        for u in result.unfilled_accessories:
            em.warning(f"  - Row {u.row_number}: REF {u.reference} x {u.quantity} - {u.reason}")
    elif accessories_selected:
        em.success("All accessories have calculated amounts!")
