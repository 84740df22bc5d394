from __future__ import annotations

DEFAULT_FINISH_CODE = "90"  # SPECIAL 1 POWDER COATING

# Checked in order against the upper-cased label; first substring hit wins.
FINISH_CODES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("SPECIAL 1",), "90"),
    (("SPECIAL 2",), "91"),
    (("SPECIAL 3",), "92"),
    (("SPECIAL 4",), "93"),
    (("SPECIAL 5",), "94"),
    (("SPECIAL 6",), "95"),
    (("SPECIAL 7",), "96"),
    (("STANDARD",), "9"),
    (("MILL FINISH", "COR_MILL"), "8"),
    (("WHITE POWDER",), "4"),
    (("SILVER ANODISED",), "1"),
    (("BLACK ANODISED",), "10"),
    (("PVC",), "0"),
)

KNOWN_CODES = frozenset(code for _, code in FINISH_CODES)


def map_finish(label: str | None, default: str = DEFAULT_FINISH_CODE) -> str:
    """Portal code for a human-readable finish label. Never returns empty."""
    text = (label or "").strip().upper()
    if not text:
        return default
    if text in KNOWN_CODES:
        return text
    for needles, code in FINISH_CODES:
        if any(n in text for n in needles):
            return code
    return default
