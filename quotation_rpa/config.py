from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")


def _to_int(value: str, default: int) -> int:
    try:
        iv = int((value or "").strip())
        return iv if iv >= 0 else default
    except Exception:
        return default


def _to_bool(value: str, default: bool) -> bool:
    raw = (value or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Timings:
    """Upper bounds (ms) for every wait in a run.

    All waits poll the live form and return early, so these are ceilings rather
    than fixed sleeps.
    """

    login_wait_ms: int = 2000
    navigation_settle_ms: int = 2000
    valuation_settle_ms: int = 1000
    finish_settle_ms: int = 500
    reference_settle_ms: int = 350
    row_finish_settle_ms: int = 250
    calc_wait_ms: int = 500
    calc_retry_wait_ms: int = 800
    acc_reference_wait_ms: int = 1500
    acc_reference_retry_wait_ms: int = 2000
    acc_calc_wait_ms: int = 2000
    acc_retry1_wait_ms: int = 2500
    acc_retry2_wait_ms: int = 3000
    acc_retry3_wait_ms: int = 4000
    row_add_pause_ms: int = 200
    grid_stabilize_ms: int = 1000
    reconcile_settle_ms: int = 10000
    action_delay_ms: int = 2000
    poll_interval_ms: int = 100

    @classmethod
    def instant(cls) -> "Timings":
        return cls(**{name: 0 for name in cls.__dataclass_fields__})

    def scaled(self, factor: float) -> "Timings":
        values = {name: int(getattr(self, name) * factor) for name in self.__dataclass_fields__}
        values["poll_interval_ms"] = self.poll_interval_ms
        return replace(self, **values)


@dataclass(frozen=True)
class Settings:
    base_url: str = "https://cortizocenter.com"
    login_path: str = "/Login.aspx"
    username: str = ""
    password: str = ""
    headless: bool = True
    slow_mo_ms: int = 0
    timeout_ms: int = 30000
    viewport_width: int = 1920
    viewport_height: int = 1080
    trace: bool = True
    artifacts_dir: Path = ROOT / "artifacts"
    log_dir: Path = ROOT / "logs"
    keep_open_seconds: int = 0
    timings: Timings = field(default_factory=Timings)

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.login_path}"


def load_settings() -> Settings:
    headless = _to_bool(os.getenv("CORTIZO_HEADLESS", "1"), True)
    scale_pct = _to_int(os.getenv("CORTIZO_TIMING_SCALE_PCT", "100"), 100)
    timings = Timings()
    if scale_pct != 100:
        timings = timings.scaled(scale_pct / 100.0)
    return Settings(
        base_url=_env("CORTIZO_BASE_URL", "https://cortizocenter.com") or "https://cortizocenter.com",
        login_path=_env("CORTIZO_LOGIN_PATH", "/Login.aspx") or "/Login.aspx",
        username=_env("CORTIZO_USERNAME"),
        password=_env("CORTIZO_PASSWORD"),
        headless=headless,
        slow_mo_ms=_to_int(os.getenv("CORTIZO_SLOW_MO_MS", "0" if headless else "100"), 0),
        timeout_ms=_to_int(os.getenv("CORTIZO_TIMEOUT_MS", "30000"), 30000),
        trace=_to_bool(os.getenv("CORTIZO_TRACE", "1"), True),
        artifacts_dir=Path(_env("CORTIZO_ARTIFACTS_DIR") or str(ROOT / "artifacts")),
        log_dir=Path(_env("CORTIZO_LOG_DIR") or str(ROOT / "logs")),
        keep_open_seconds=_to_int(os.getenv("CORTIZO_KEEP_OPEN_SECONDS", "0"), 0),
        timings=timings,
    )


LOG_FORMAT = "[%(asctime)s] [%(levelname)-7s] %(message)s"


def configure_logging(log_dir: Path, *, level: int = logging.INFO) -> Path:
    """Send the package logger to stderr and to a fresh per-run log file."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"automation-{datetime.now():%Y%m%d-%H%M%S}.log"

    pkg_logger = logging.getLogger("quotation_rpa")
    pkg_logger.setLevel(level)
    for handler in list(pkg_logger.handlers):
        if getattr(handler, "_quotation_rpa", False):
            pkg_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    file_handler._quotation_rpa = True  # type: ignore[attr-defined]
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console._quotation_rpa = True  # type: ignore[attr-defined]

    pkg_logger.addHandler(file_handler)
    pkg_logger.addHandler(console)
    return log_path
