from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from .config import Timings
from .events import RunEmitter
from .models import RunResult


class StageError(RuntimeError):
    def __init__(self, stage: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.details = details or {}


class LoginFailure(StageError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__("login", message, details)


class RunCancelled(Exception):
    def __init__(self, checkpoint: str) -> None:
        super().__init__(f"cancelled at {checkpoint}")
        self.checkpoint = checkpoint


class CancellationToken:
    """Cooperative stop signal shared between the caller and one run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    def cancel(self, reason: str = "stop requested") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class RunContext:
    """Everything a run needs, owned by the caller and passed down every step."""

    emitter: RunEmitter
    timings: Timings = field(default_factory=Timings)
    cancel: CancellationToken = field(default_factory=CancellationToken)
    session: Any = None
    # Rows per grid that reached SetReference.
    progress: dict[str, int] = field(default_factory=lambda: {"profile": 0, "accessory": 0})

    @property
    def result(self) -> RunResult:
        return self.emitter.result

    def checkpoint(self, name: str) -> None:
        if self.cancel.cancelled:
            raise RunCancelled(name)
