"""Logical view of the portal's quotation form.

Every piece of portal markup the fill steps depend on (element ids, native
script hooks, row numbering) lives here. The steps only speak in logical
field and event names, so a markup change is confined to this module.
"""
from __future__ import annotations

import logging
from typing import Sequence

from .locators import TOTAL_TEXT_ANCHOR, TOTAL_VALUE, Candidate, action_button, resolve_first

logger = logging.getLogger(__name__)

# Logical field -> CSS selector. ``{row}`` is the zero-padded row number.
FIELDS: dict[str, str] = {
    "header.microns": "#ctl00_ContentPlaceHolderCortizoCenter_LstMicraje, select[name*='Micraje']",
    "header.language": "#ctl00_ContentPlaceHolderCortizoCenter_ddlIdioma, select[name*='Idioma']",
    "header.client_code": "#ctl00_ContentPlaceHolderCortizoCenter_txtCodCliente, input[name*='CodCliente']",
    "header.finish1": "#ddlAcabado_1_ColorGeneral",
    "header.shade1": "#ddlMatiz_1_ColorGeneral",
    "header.finish2": "#ddlAcabado_2_ColorGeneral",
    "header.shade2": "#ddlMatiz_2_ColorGeneral",
    "header.price_with_break": "#ctl00_ContentPlaceHolderCortizoCenter_txtPrecioConRotura",
    "header.price_without_break": "#ctl00_ContentPlaceHolderCortizoCenter_txtPrecioSinRotura",
    "header.discount_pvc": "#ctl00_ContentPlaceHolderCortizoCenter_txtPVCDescuentoPVC",
    "header.discount_aluminium": "#ctl00_ContentPlaceHolderCortizoCenter_txtPVCDescuentoAluminio",
    "header.discount_accessories": "#ctl00_ContentPlaceHolderCortizoCenter_txtDescuentoAccesorios",
    "profile.reference": "#txtReferencia_{row}",
    "profile.quantity": "#txtCantidad_{row}",
    "profile.finish1": "#ddlAcabado1_{row}",
    "profile.shade1": "#ddlMatiz1_{row}",
    "profile.finish2": "#ddlAcabado2_{row}",
    "profile.shade2": "#ddlMatiz2_{row}",
    "profile.amount": "#txtImporte_{row}",
    "profile.description": "#txtDescripcion_{row}",
    "accessory.reference": "#txtReferenciaAcc_{row}",
    "accessory.quantity": "#txtCantidadAcc_{row}",
    "accessory.amount": "#txtImporteAcc_{row}",
    "accessory.description": "#txtDescripcionAcc_{row}",
    "accessory.price": "#txtPrecioAcc_{row}",
}

# Logical event -> (native hook, target field or None, extra hook args).
EVENTS: dict[str, tuple[str, str | None, tuple]] = {
    "profile.validate_reference": ("ValidarFormatoDatosPerfil", "profile.reference", (False,)),
    "profile.repopulate_shade1": ("RellenarComboMatices", "profile.finish1", ()),
    "profile.repopulate_shade2": ("RellenarComboMatices", "profile.finish2", ()),
    "profile.calculate": ("ValidarCamposLinea", "profile.shade1", (False,)),
    "profile.calculate_alt": ("ValidarCamposLinea", "profile.shade2", (False,)),
    "profile.add_row": ("dgPerfilesAddRow", None, ()),
    "accessory.validate_reference": ("ValidarFormatoDatosAcc", "accessory.reference", ()),
    "accessory.calculate": ("ValidarCamposLineaAcc", "accessory.quantity", (False,)),
    "accessory.add_row": ("dgAccesoriosAddRow", None, ()),
    "header.custom_prices_changed": ("precioPersonalizadoChanged", None, ()),
}

# Field whose presence marks an existing grid row.
GRID_ROW_FIELDS = {
    "profile": "profile.reference",
    "accessory": "accessory.reference",
}

HOOK_OK = "ok"
HOOK_NOT_FOUND = "not-found"
HOOK_MISSING = "no-hook"

_GET_VALUE_JS = """(sel) => {
    const el = document.querySelector(sel);
    return el ? (el.value || '') : null;
}"""

_SET_VALUE_JS = """([sel, value, notify]) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    el.value = value;
    if (notify) {
        el.dispatchEvent(new Event('input', { bubbles: true }));
        el.dispatchEvent(new Event('change', { bubbles: true }));
    }
    return true;
}"""

_CHOOSE_OPTION_JS = """([sel, wanted, notify, fallbackFirst]) => {
    const el = document.querySelector(sel);
    if (!el || !el.options || el.options.length === 0) return '';
    const opts = Array.from(el.options);
    let pick = null;
    if (wanted) {
        pick = opts.find(o => o.value === wanted)
            || opts.find(o => o.value && (o.text || '').toUpperCase().includes(wanted.toUpperCase()));
    }
    if (!pick && fallbackFirst) {
        pick = opts.find(o => o.value);
    }
    const found = !!pick;
    if (found) el.value = pick.value;
    if (found && notify) {
        el.dispatchEvent(new Event('change', { bubbles: true }));
    }
    return found ? el.value : '';
}"""

_OPTION_VALUES_JS = """(sel) => {
    const el = document.querySelector(sel);
    return el && el.options ? Array.from(el.options).map(o => o.value) : [];
}"""

_CALL_HOOK_JS = """([fn, sel, extra]) => {
    let args = [];
    if (sel) {
        const el = document.querySelector(sel);
        if (!el) return 'not-found';
        args = [el];
    }
    if (typeof window[fn] !== 'function') return 'no-hook';
    window[fn](...args, ...extra);
    return 'ok';
}"""

_ROW_COUNT_JS = """(template) => {
    let count = 0;
    for (let i = 1; i <= 999; i++) {
        const rowNum = String(i).padStart(4, '0');
        if (document.querySelector(template.split('{row}').join(rowNum))) {
            count++;
        } else {
            break;
        }
    }
    return count;
}"""

_TOTAL_BY_ANCHOR_JS = """(anchor) => {
    for (const el of document.querySelectorAll('body *')) {
        if (el.children.length === 0 && (el.innerText || '').includes(anchor)) {
            const parent = el.parentElement;
            if (!parent) continue;
            for (const inp of parent.querySelectorAll('input')) {
                if (inp.value) return inp.value;
            }
            const txt = (parent.innerText || '').replace(anchor, '');
            if (/\\d/.test(txt)) return txt;
        }
    }
    return '';
}"""


def field_selector(field: str, row: str | None = None) -> str:
    try:
        template = FIELDS[field]
    except KeyError:
        raise KeyError(f"Unknown form field: {field}") from None
    if "{row}" in template:
        if not row:
            raise ValueError(f"Field {field} needs a row number")
        return template.replace("{row}", row)
    return template


class FormAdapter:
    """Get/set form fields and fire portal events by logical name."""

    async def get_value(self, field: str, row: str | None = None) -> str:
        raise NotImplementedError

    async def exists(self, field: str, row: str | None = None) -> bool:
        raise NotImplementedError

    async def set_value(self, field: str, value: str, row: str | None = None, *, notify: bool = False) -> bool:
        raise NotImplementedError

    async def select_option(self, field: str, value: str, row: str | None = None) -> bool:
        raise NotImplementedError

    async def choose_option(
        self,
        field: str,
        wanted: str,
        row: str | None = None,
        *,
        notify: bool = False,
        fallback_first: bool = True,
    ) -> str:
        raise NotImplementedError

    async def option_values(self, field: str, row: str | None = None) -> list[str]:
        raise NotImplementedError

    async def trigger(self, event: str, row: str | None = None) -> str:
        raise NotImplementedError

    async def row_count(self, grid: str) -> int:
        raise NotImplementedError

    async def click_action(self, label: str) -> bool:
        raise NotImplementedError

    async def read_total_text(self) -> str:
        raise NotImplementedError


class PortalFormAdapter(FormAdapter):
    """FormAdapter over a live Playwright page of the quotation screen."""

    def __init__(self, page, *, timeout_ms: int = 30000) -> None:
        self.page = page
        self.timeout_ms = timeout_ms

    async def get_value(self, field: str, row: str | None = None) -> str:
        value = await self.page.evaluate(_GET_VALUE_JS, field_selector(field, row))
        return (value or "").strip()

    async def exists(self, field: str, row: str | None = None) -> bool:
        value = await self.page.evaluate(_GET_VALUE_JS, field_selector(field, row))
        return value is not None

    async def set_value(self, field: str, value: str, row: str | None = None, *, notify: bool = False) -> bool:
        return bool(await self.page.evaluate(_SET_VALUE_JS, [field_selector(field, row), str(value), notify]))

    async def select_option(self, field: str, value: str, row: str | None = None) -> bool:
        sel = field_selector(field, row)
        loc = self.page.locator(sel).first
        try:
            if await loc.count() == 0:
                logger.warning("[SELECT] element not found: %s", sel)
                return False
        except Exception as e:
            logger.warning("[SELECT] lookup failed: %s (%s)", sel, e)
            return False
        try:
            await loc.select_option(value=value, timeout=self.timeout_ms)
            return True
        except Exception as e1:
            logger.info("[SELECT] by value failed for %s=%r (%s), trying label", sel, value, e1)
        try:
            await loc.select_option(label=value, timeout=self.timeout_ms)
            return True
        except Exception as e2:
            logger.warning("[SELECT] by label also failed for %s=%r (%s)", sel, value, e2)
            return False

    async def choose_option(
        self,
        field: str,
        wanted: str,
        row: str | None = None,
        *,
        notify: bool = False,
        fallback_first: bool = True,
    ) -> str:
        chosen = await self.page.evaluate(
            _CHOOSE_OPTION_JS, [field_selector(field, row), wanted or "", notify, fallback_first]
        )
        return chosen or ""

    async def option_values(self, field: str, row: str | None = None) -> list[str]:
        return list(await self.page.evaluate(_OPTION_VALUES_JS, field_selector(field, row)) or [])

    async def trigger(self, event: str, row: str | None = None) -> str:
        try:
            hook, target, extra = EVENTS[event]
        except KeyError:
            raise KeyError(f"Unknown form event: {event}") from None
        sel = field_selector(target, row) if target else None
        return await self.page.evaluate(_CALL_HOOK_JS, [hook, sel, list(extra)])

    async def row_count(self, grid: str) -> int:
        template = FIELDS[GRID_ROW_FIELDS[grid]]
        return int(await self.page.evaluate(_ROW_COUNT_JS, template) or 0)

    async def click_action(self, label: str) -> bool:
        loc, cand = await resolve_first(self.page, action_button(label))
        if loc is None:
            logger.warning("Could not find button: %s", label)
            return False
        await loc.click(timeout=self.timeout_ms)
        try:
            await self.page.wait_for_load_state("networkidle", timeout=self.timeout_ms)
        except Exception as e:
            logger.debug("no network idle after %r: %s", label, e)
        logger.info("clicked %r via %s", label, cand)
        return True

    async def read_total_text(self) -> str:
        return await first_text(self.page, TOTAL_VALUE) or await self.page.evaluate(_TOTAL_BY_ANCHOR_JS, TOTAL_TEXT_ANCHOR) or ""


async def first_text(page, candidates: Sequence[Candidate]) -> str:
    """Text (or input value) of the first candidate carrying a digit."""
    for cand in candidates:
        try:
            loc = cand.build(page).first
            if await loc.count() == 0:
                continue
            txt = ""
            try:
                txt = await loc.input_value(timeout=1000)
            except Exception:
                txt = await loc.inner_text(timeout=1000)
            txt = (txt or "").strip()
            if any(ch.isdigit() for ch in txt):
                return txt
        except Exception:
            continue
    return ""
