"""In-memory stand-ins for the portal form, the Playwright page and the session."""

from __future__ import annotations

import time
from collections import Counter
from typing import Callable, Dict, List, Optional, Tuple

from playwright.async_api import TimeoutError as PWTimeoutError

from quotation_rpa.form_adapter import HOOK_MISSING, HOOK_NOT_FOUND, HOOK_OK, FormAdapter

SHADE_OPTIONS: List[Tuple[str, str]] = [
    ("", "-- select --"),
    ("P1019M", "P1019M TEXTURE"),
    ("9016", "RAL 9016 WHITE"),
    ("9005", "RAL 9005 BLACK"),
]

# What a shade select still offers before the portal repopulates it.
STALE_SHADE_OPTIONS: List[Tuple[str, str]] = [
    ("", "-- select --"),
    ("3003", "RAL 3003 RED"),
]

CALC_EVENTS = {"profile.calculate", "profile.calculate_alt", "accessory.calculate"}


class FakePortalForm(FormAdapter):
    """Simulates the quotation screen.

    ``behaviour`` maps a reference to how the portal treats it:

    - ``ok``: amount appears on the first calculation trigger
    - ``late:N``: amount appears on the Nth calculation trigger for the row
    - ``reads:N``: amount becomes readable on the Nth read after the first trigger
    - ``never``: reference is recognised, amount never appears
    - ``unknown``: reference is not recognised at all

    Unlisted references behave as ``ok``.

    Shade selects keep offering ``STALE_SHADE_OPTIONS`` until ``shade_delay_s``
    after their finish changed (header) or was repopulated (rows).
    """

    def __init__(
        self,
        behaviour: Optional[Dict[str, str]] = None,
        *,
        rows: Optional[Dict[str, int]] = None,
        add_row_ok: bool = True,
        missing_fields: Tuple[str, ...] = (),
        total_text: Optional[str] = "60.084,31 €",
        actions: Tuple[str, ...] = ("GENERATE REPORT", "CREATE A PROFORMA"),
        shade_delay_s: float = 0.0,
    ) -> None:
        self.behaviour = dict(behaviour or {})
        self.rows = dict(rows or {"profile": 1, "accessory": 1})
        self.add_row_ok = add_row_ok
        self.missing_fields = set(missing_fields)
        self.total_text = total_text
        self.actions = set(actions)
        self.shade_delay_s = shade_delay_s

        self.values: Dict[Tuple[str, Optional[str]], str] = {}
        self.repopulated: Dict[Tuple[str, Optional[str]], float] = {}
        self.calc_calls: Counter = Counter()
        self.amount_reads: Counter = Counter()
        self.events: List[Tuple[str, Optional[str]]] = []
        self.writes: List[Tuple[str, Optional[str], str]] = []
        self.clicks: List[str] = []
        self.on_reference: Optional[Callable[[str, str], None]] = None
        self.fail_on_event: Optional[str] = None
        self.fail_on_read: Optional[Tuple[str, Optional[str]]] = None

    # helpers

    def _grid(self, field: str) -> str:
        return field.split(".", 1)[0]

    def _row_exists(self, field: str, row: Optional[str]) -> bool:
        grid = self._grid(field)
        if grid not in self.rows:
            return field not in self.missing_fields
        return row is not None and 1 <= int(row) <= self.rows[grid]

    def _mode(self, grid: str, row: str) -> str:
        ref = self.values.get((f"{grid}.reference", row), "")
        return self.behaviour.get(ref, "ok")

    def _amount_visible(self, grid: str, row: str) -> bool:
        mode = self._mode(grid, row)
        calls = self.calc_calls[(grid, row)]
        if mode in ("never", "unknown") or calls == 0:
            return False
        if mode.startswith("late:"):
            return calls >= int(mode.split(":")[1])
        if mode.startswith("reads:"):
            return self.amount_reads[(grid, row)] >= int(mode.split(":")[1])
        return True

    def _store(self, field: str, row: Optional[str], value: str) -> None:
        self.writes.append((field, row, value))
        self.values[(field, row)] = value
        if field.startswith("header.finish"):
            self.repopulated[(f"header.shade{field[-1]}", None)] = time.monotonic()

    def _options(self, field: str, row: Optional[str]) -> List[Tuple[str, str]]:
        if not field.startswith(("profile.shade", "header.shade")):
            return SHADE_OPTIONS
        since = self.repopulated.get((field, row))
        if since is None or time.monotonic() - since < self.shade_delay_s:
            return STALE_SHADE_OPTIONS
        return SHADE_OPTIONS

    def set_amount(self, grid: str, row: str, amount: str) -> None:
        self.values[(f"{grid}.amount", row)] = amount

    def references(self, grid: str) -> List[Tuple[str, str]]:
        return [(row, value) for field, row, value in self.writes if field == f"{grid}.reference" and value]

    # FormAdapter

    async def get_value(self, field: str, row: Optional[str] = None) -> str:
        if not self._row_exists(field, row):
            return ""
        if self.fail_on_read == (field, row):
            self.fail_on_read = None
            raise RuntimeError(f"portal did not answer reading {field} {row}")
        if field.endswith(".amount") and (field, row) not in self.values:
            grid = self._grid(field)
            if self.calc_calls[(grid, row)]:
                self.amount_reads[(grid, row)] += 1
            if self._amount_visible(grid, row):
                qty = self.values.get((f"{grid}.quantity", row), "1") or "1"
                return f"{10 * int(qty)}.00"
            return ""
        return self.values.get((field, row), "")

    async def exists(self, field: str, row: Optional[str] = None) -> bool:
        return self._row_exists(field, row)

    async def set_value(self, field: str, value: str, row: Optional[str] = None, *, notify: bool = False) -> bool:
        if not self._row_exists(field, row):
            return False
        self.writes.append((field, row, str(value)))
        self.values[(field, row)] = str(value)
        if field.endswith(".reference") and value and self.on_reference is not None:
            self.on_reference(self._grid(field), row)
        return True

    async def select_option(self, field: str, value: str, row: Optional[str] = None) -> bool:
        if not self._row_exists(field, row):
            return False
        if ".shade" in field and value not in {v for v, _ in self._options(field, row)}:
            return False
        self._store(field, row, value)
        return True

    async def choose_option(
        self,
        field: str,
        wanted: str,
        row: Optional[str] = None,
        *,
        notify: bool = False,
        fallback_first: bool = True,
    ) -> str:
        if not self._row_exists(field, row):
            return ""
        options = self._options(field, row)
        chosen = ""
        for value, _ in options:
            if wanted and value == wanted:
                chosen = value
                break
        if not chosen and wanted:
            for value, label in options:
                if value and wanted.upper() in label.upper():
                    chosen = value
                    break
        if not chosen and fallback_first:
            chosen = next((value for value, _ in options if value), "")
        if chosen:
            self._store(field, row, chosen)
        return chosen

    async def option_values(self, field: str, row: Optional[str] = None) -> List[str]:
        if not self._row_exists(field, row):
            return []
        return [value for value, _ in self._options(field, row)]

    async def trigger(self, event: str, row: Optional[str] = None) -> str:
        self.events.append((event, row))
        if self.fail_on_event == event:
            raise RuntimeError(f"portal script error in {event}")
        grid, _, name = event.partition(".")
        if name == "add_row":
            if not self.add_row_ok:
                return HOOK_MISSING
            self.rows[grid] += 1
            return HOOK_OK
        if grid in self.rows and not self._row_exists(event, row):
            return HOOK_NOT_FOUND
        if name == "validate_reference":
            ref = self.values.get((f"{grid}.reference", row), "")
            if ref and self.behaviour.get(ref, "ok") != "unknown":
                self.values[(f"{grid}.description", row)] = f"DESC {ref}"
                if grid == "accessory":
                    self.values[(f"{grid}.price", row)] = "3.10"
        elif name.startswith("repopulate_shade"):
            self.repopulated[(f"profile.shade{name[-1]}", row)] = time.monotonic()
        elif event in CALC_EVENTS:
            self.calc_calls[(grid, row)] += 1
        return HOOK_OK

    async def row_count(self, grid: str) -> int:
        return self.rows.get(grid, 0)

    async def click_action(self, label: str) -> bool:
        self.clicks.append(label)
        return label in self.actions

    async def read_total_text(self) -> str:
        if self.total_text is None:
            raise RuntimeError("total element not found")
        return self.total_text


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    async def count(self) -> int:
        if self.selector in self.page.broken:
            raise RuntimeError(f"bad selector {self.selector}")
        return 1 if self.selector in self.page.elements else 0

    async def is_visible(self) -> bool:
        return self.page.elements.get(self.selector, False)

    async def click(self, **kwargs) -> None:
        self.page.clicks.append(self.selector)
        action = self.page.on_click.get(self.selector)
        if action is not None:
            action(self.page)

    async def fill(self, value: str) -> None:
        self.page.filled[self.selector] = value

    async def press(self, key: str) -> None:
        self.page.pressed.append((self.selector, key))


class FakePage:
    """Selectors present in ``elements`` exist; the mapped bool is their visibility."""

    def __init__(self, elements: Optional[Dict[str, bool]] = None, url: str = "https://portal.test/Login.aspx") -> None:
        self.elements: Dict[str, bool] = dict(elements or {})
        self.url = url
        self.broken: set = set()
        self.clicks: List[str] = []
        self.filled: Dict[str, str] = {}
        self.pressed: List[Tuple[str, str]] = []
        self.on_click: Dict[str, Callable[["FakePage"], None]] = {}
        self.load_state_error: Optional[Exception] = None

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def get_by_role(self, role: str, name: Optional[str] = None) -> FakeLocator:
        return FakeLocator(self, f"role={role}[name={name}]" if name else f"role={role}")

    async def wait_for_load_state(self, state: str = "load", **kwargs) -> None:
        if self.load_state_error is not None:
            raise self.load_state_error

    async def wait_for_url(self, predicate, timeout: int = 0) -> None:
        if not predicate(self.url):
            raise PWTimeoutError(f"Timeout {timeout}ms exceeded waiting for URL")

    async def title(self) -> str:
        return "Cortizo Center"


class FakeSession:
    """Session double with the surface the orchestrator uses."""

    def __init__(self, form: Optional[FakePortalForm] = None, page: Optional[FakePage] = None, *, start_error: Optional[Exception] = None) -> None:
        self.form = form or FakePortalForm()
        self.page = page or FakePage({"#gvPerfiles": True}, url="https://portal.test/Home.aspx")
        self.start_error = start_error
        self.started_with = None
        self.screenshots: List[str] = []
        self.closed = False

    async def start(self, credential, emitter) -> "FakeSession":
        self.started_with = credential
        if self.start_error is not None:
            raise self.start_error
        emitter.success("Login successful!")
        return self

    async def screenshot(self, name: str = "quotation") -> str:
        self.screenshots.append(name)
        return f"artifacts/{name}-screenshot.png"

    async def stop_trace(self) -> str:
        return "artifacts/trace.zip"

    async def close(self) -> None:
        self.closed = True
