from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """One way of finding a logical element. ``kind`` is css, text, xpath or role."""

    kind: str
    value: str
    name: str | None = None

    def build(self, page):
        if self.kind == "role":
            if self.name:
                return page.get_by_role(self.value, name=self.name)
            return page.get_by_role(self.value)
        if self.kind == "text":
            return page.locator(f"text={self.value}")
        if self.kind == "xpath":
            return page.locator(f"xpath={self.value}")
        return page.locator(self.value)

    def __str__(self) -> str:
        if self.kind == "role":
            return f"role={self.value}" + (f"[name={self.name!r}]" if self.name else "")
        if self.kind == "css":
            return self.value
        return f"{self.kind}={self.value}"


def css(value: str) -> Candidate:
    return Candidate("css", value)


def text(value: str) -> Candidate:
    return Candidate("text", value)


def xpath(value: str) -> Candidate:
    return Candidate("xpath", value)


def role(value: str, name: str | None = None) -> Candidate:
    return Candidate("role", value, name)


LOGIN_USERNAME: tuple[Candidate, ...] = (
    css("input[name*='usuario' i]"),
    css("input[id*='usuario' i]"),
    css("input[type='text']"),
    css("input[type='email']"),
)
LOGIN_PASSWORD: tuple[Candidate, ...] = (
    css("input[type='password']"),
    css("input[name*='pass' i]"),
)
LOGIN_SUBMIT: tuple[Candidate, ...] = (
    text("ACCEDER"),
    text("ACCESS"),
    role("button", "ACCEDER"),
    css("input[type='submit']"),
    css("button[type='submit']"),
    css(".loginbotones"),
    css("[onclick*='Login']"),
)
LOGIN_MARKERS: tuple[Candidate, ...] = (
    css("input[type='password']"),
)

QUOTATIONS_ENTRY: tuple[Candidate, ...] = (
    css("#ctl00_ico7"),
    css("a.ico7"),
    css("a[href*='ControlRedirect'][href*='CgAAAB']"),
    text("QUOTATIONS"),
    text("ONLINE ORDERS"),
    css("[href*='Valoraciones']"),
    xpath("//a[contains(@class, 'ico7')]"),
)
NEW_VALUATION: tuple[Candidate, ...] = (
    text("NEW VALUATION"),
    text("NUEVA VALORACIÓN"),
    text("NUEVA VALORACION"),
    css("[value='NEW VALUATION']"),
    css("[value*='NUEVA']"),
    css("input[value*='NEW']"),
    css("button:has-text('NEW')"),
    css("button:has-text('NUEVA')"),
    css("#btnNewValuation"),
    css("a:has-text('NEW VALUATION')"),
    css(".botonesvaloraciones:has-text('NEW')"),
)
PROFILES_GRID: tuple[Candidate, ...] = (
    css("#gvPerfiles"),
)

TOTAL_VALUE: tuple[Candidate, ...] = (
    css("#ctl00_ContentPlaceHolderCortizoCenter_lblTotalValoracion"),
    css("#lblTotalValoracion"),
    css(".total-valoracion"),
    css("input[id*='Total']"),
    css("span[id*='Total']"),
)
TOTAL_TEXT_ANCHOR = "ESTIMATE TOTAL"

# Landmarks reported in page-state diagnostics.
PAGE_LANDMARKS: tuple[tuple[str, str], ...] = (
    ("Login Form", "input[type='password']"),
    ("Quotations Link", "#ctl00_ico7, a.ico7"),
    ("Profiles Grid", "#gvPerfiles"),
    ("General Color Finish 1", "#ddlAcabado_1_ColorGeneral"),
    ("First Reference Input", "#txtReferencia_0001"),
)


def action_button(label: str) -> tuple[Candidate, ...]:
    return (
        text(label),
        css(f"button:has-text('{label}')"),
        css(f"input[value*='{label}']"),
        css(f"a:has-text('{label}')"),
    )


async def resolve_first(page, candidates: Sequence[Candidate], *, require_visible: bool = False):
    """Return ``(locator, candidate)`` for the first candidate that matches, else ``(None, None)``."""
    for cand in candidates:
        try:
            loc = cand.build(page).first
            if await loc.count() == 0:
                logger.debug("locator miss: %s", cand)
                continue
            if require_visible and not await loc.is_visible():
                logger.debug("locator hidden: %s", cand)
                continue
            return loc, cand
        except Exception as e:
            logger.debug("locator error: %s (%s)", cand, e)
            continue
    return None, None


async def any_present(page, candidates: Sequence[Candidate]) -> bool:
    loc, _ = await resolve_first(page, candidates)
    return loc is not None
