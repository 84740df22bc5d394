from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Credential:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, password='********')"


@dataclass(frozen=True)
class HeaderConfig:
    """Quotation-level settings applied once before any line item is entered."""

    microns: str = "15"
    language: str = "ENGLISH"
    client_code: str = "991238"
    cif: str = "CORTIZO"
    finish1: str = "90"
    shade1: str = "P1019M"
    finish2: str = "90"
    shade2: str = "P1019M"
    price_with_break: str = "7.56"
    price_without_break: str = "5.16"
    discount_pvc: str = "15"
    discount_aluminium: str = "10"
    discount_accessories: str = "10"


@dataclass(frozen=True)
class LineItem:
    id: int
    reference: str
    quantity: int
    description: str = ""
    finish1: str = ""
    shade1: str = ""
    finish2: str = ""
    shade2: str = ""
    selected: bool = True


@dataclass(frozen=True)
class RunOptions:
    generate_report: bool = False
    create_proforma: bool = False


@dataclass(frozen=True)
class UnfilledItem:
    row_number: str
    reference: str
    quantity: int
    description: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "reference": self.reference,
            "quantity": self.quantity,
            "description": self.description,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
            "level": self.level.value,
            "message": self.message,
        }
        if self.details:
            out["details"] = self.details
        return out


STOPPED_BY_USER = "Automation stopped by user"


@dataclass
class RunResult:
    """Accumulates the outcome of one run; treat as read-only once returned."""

    total_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    unfilled_profiles: list[UnfilledItem] = field(default_factory=list)
    unfilled_accessories: list[UnfilledItem] = field(default_factory=list)
    extracted_total: Decimal = Decimal("0")
    screenshot_ref: str | None = None
    trace_ref: str | None = None
    log_ref: str | None = None
    logs: list[LogEntry] = field(default_factory=list)
    stage: str = "init"
    error: str | None = None
    stopped: bool = False
    reconciled: bool = False

    @property
    def success(self) -> bool:
        if self.stopped or self.error:
            return False
        return not self.unfilled_profiles and not self.unfilled_accessories

    def finalize_counts(self) -> None:
        self.failed_items = len(self.unfilled_profiles) + len(self.unfilled_accessories)
        self.successful_items = self.total_items - self.failed_items

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ok": self.success,
            "stage": self.stage,
            "stopped": self.stopped,
            "total_items": self.total_items,
            "successful_items": self.successful_items,
            "failed_items": self.failed_items,
            "unfilled_profiles": [u.to_dict() for u in self.unfilled_profiles],
            "unfilled_accessories": [u.to_dict() for u in self.unfilled_accessories],
            "extracted_total": str(self.extracted_total),
            "logs": [e.to_dict() for e in self.logs],
        }
        if self.error:
            payload["error"] = self.error
        if self.screenshot_ref:
            payload["screenshot"] = self.screenshot_ref
        if self.trace_ref:
            payload["trace"] = self.trace_ref
        if self.log_ref:
            payload["log_file"] = self.log_ref
        return payload


def row_number(index: int) -> str:
    """Portal row ids are 1-based and zero-padded to four digits."""
    return f"{index + 1:04d}"


def selected(items: list[LineItem] | None) -> list[LineItem]:
    return [it for it in (items or []) if it.selected]
