from __future__ import annotations

import json
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .config import _to_bool, _to_int
from .models import HeaderConfig, LineItem, RunOptions

# Extraction output uses camelCase; both spellings are accepted.
_ALIASES = {
    "referenceCode": "reference",
    "ref": "reference",
    "qty": "quantity",
    "amount": "quantity",
}


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def parse_line_item(raw: Dict[str, Any], fallback_id: int) -> LineItem | None:
    data = {_ALIASES.get(k, k): v for k, v in raw.items()}
    reference = _text(data.get("reference"))
    if not reference:
        return None
    qty = _to_int(_text(data.get("quantity")), 1) or 1
    selected = data.get("selected", True)
    if not isinstance(selected, bool):
        selected = _to_bool(_text(selected), True)
    return LineItem(
        id=_to_int(_text(data.get("id")), fallback_id),
        reference=reference,
        quantity=qty,
        description=_text(data.get("description")),
        finish1=_text(data.get("finish1")),
        shade1=_text(data.get("shade1")),
        finish2=_text(data.get("finish2")),
        shade2=_text(data.get("shade2")),
        selected=selected,
    )


def parse_line_items(raw_items: List[Dict[str, Any]] | None) -> List[LineItem]:
    items: List[LineItem] = []
    for idx, raw in enumerate(raw_items or []):
        if not isinstance(raw, dict):
            continue
        item = parse_line_item(raw, idx + 1)
        if item is not None:
            items.append(item)
    return items


def header_from_env(overrides: Dict[str, Any] | None = None) -> HeaderConfig:
    """HeaderConfig defaults, then CORTIZO_HEADER_<FIELD> env vars, then ``overrides``."""
    values: Dict[str, str] = {}
    for f in fields(HeaderConfig):
        env_value = (os.getenv(f"CORTIZO_HEADER_{f.name.upper()}") or "").strip()
        if env_value:
            values[f.name] = env_value
    for key, value in (overrides or {}).items():
        if key in HeaderConfig.__dataclass_fields__ and _text(value):
            values[key] = _text(value)
    return HeaderConfig(**values)


def options_from(raw: Dict[str, Any] | None) -> RunOptions:
    raw = raw or {}

    def flag(name: str) -> bool:
        value = raw.get(name, False)
        return value if isinstance(value, bool) else _to_bool(_text(value), False)

    return RunOptions(generate_report=flag("generate_report"), create_proforma=flag("create_proforma"))


def load_run_input(path: Path) -> Tuple[HeaderConfig, List[LineItem], List[LineItem], RunOptions]:
    """Read ``{"profiles": [...], "accessories": [...], "header": {...}, "options": {...}}``."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object with 'profiles' and 'accessories'")
    header = header_from_env(data.get("header"))
    profiles = parse_line_items(data.get("profiles"))
    accessories = parse_line_items(data.get("accessories"))
    return header, profiles, accessories, options_from(data.get("options"))
