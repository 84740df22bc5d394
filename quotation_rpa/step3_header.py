from __future__ import annotations

from dataclasses import dataclass

from .context import RunContext
from .finish_codes import map_finish
from .form_adapter import FormAdapter
from .models import HeaderConfig
from .rows import option_snapshot, wait_options_replaced

PRICE_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("header.price_with_break", "price_with_break", "WITH BREAK"),
    ("header.price_without_break", "price_without_break", "WITHOUT BREAK"),
    ("header.discount_pvc", "discount_pvc", "PVC"),
    ("header.discount_aluminium", "discount_aluminium", "ALUMINIUM"),
    ("header.discount_accessories", "discount_accessories", "ACCESSORIES DISCOUNT"),
)


@dataclass(frozen=True)
class RowDefaults:
    """Finish/shade the portal actually applied at quotation level."""

    finish1: str
    shade1: str
    finish2: str
    shade2: str


async def _set_select(form: FormAdapter, ctx: RunContext, field: str, value: str, label: str) -> bool:
    if not value:
        return False
    if not await form.exists(field):
        ctx.emitter.warning(f"{label} field not found, skipped")
        return False
    if await form.select_option(field, value):
        return True
    chosen = await form.choose_option(field, value, notify=True, fallback_first=False)
    if not chosen:
        ctx.emitter.warning(f"{label}: no option matches {value!r}")
    return bool(chosen)


async def _set_input(form: FormAdapter, ctx: RunContext, field: str, value: str, label: str) -> bool:
    if value is None or value == "":
        return False
    if not await form.set_value(field, value, notify=True):
        ctx.emitter.warning(f"{label} field not found, skipped")
        return False
    return True


async def _set_finish_pair(form: FormAdapter, ctx: RunContext, n: int, finish_label: str, shade: str) -> None:
    t = ctx.timings
    finish_field, shade_field = f"header.finish{n}", f"header.shade{n}"
    code = map_finish(finish_label)
    ctx.emitter.detail(f"[HEADER] Setting Finish {n}: {finish_label} -> value={code}")
    stale = await option_snapshot(form, shade_field)
    if await _set_select(form, ctx, finish_field, code, f"Finish {n}"):
        # Shade list is repopulated by the portal once a finish is chosen.
        if not await wait_options_replaced(form, shade_field, None, stale, t.finish_settle_ms, t.poll_interval_ms):
            ctx.emitter.detail(f"[HEADER] Shade {n} list unchanged after finish change")
    ctx.emitter.detail(f"[HEADER] Setting Shade {n}: {shade}")
    await _set_select(form, ctx, shade_field, shade, f"Shade {n}")


async def set_header_fields(form: FormAdapter, header: HeaderConfig, ctx: RunContext) -> None:
    ctx.emitter.info("Setting header fields...")
    await _set_select(form, ctx, "header.microns", str(header.microns), "Microns")
    await _set_select(form, ctx, "header.language", header.language, "Language")
    await _set_input(form, ctx, "header.client_code", header.client_code, "Client code")
    await _set_finish_pair(form, ctx, 1, header.finish1, header.shade1)
    await _set_finish_pair(form, ctx, 2, header.finish2, header.shade2)


async def set_customized_prices(form: FormAdapter, header: HeaderConfig, ctx: RunContext) -> None:
    ctx.emitter.info("Setting customized prices...")
    for field, attr, label in PRICE_FIELDS:
        value = getattr(header, attr)
        ctx.emitter.detail(f"[PRICES] Setting {label}: {value}")
        await _set_input(form, ctx, field, value, label)
    if await form.trigger("header.custom_prices_changed") != "ok":
        ctx.emitter.detail("[PRICES] custom price hook not available")


async def apply_header(form: FormAdapter, header: HeaderConfig, ctx: RunContext) -> None:
    await set_header_fields(form, header, ctx)
    ctx.checkpoint("header")
    await set_customized_prices(form, header, ctx)


async def capture_row_defaults(form: FormAdapter, header: HeaderConfig) -> RowDefaults:
    """Read the quotation-level finish/shade back from the live form.

    Rows fall back to these when a line item carries no finish of its own.
    """
    values = {}
    for n in (1, 2):
        try:
            finish = await form.get_value(f"header.finish{n}")
            shade = await form.get_value(f"header.shade{n}")
        except Exception:
            finish = shade = ""
        values[f"finish{n}"] = finish or map_finish(getattr(header, f"finish{n}"))
        values[f"shade{n}"] = shade or getattr(header, f"shade{n}")
    return RowDefaults(**values)
