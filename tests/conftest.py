import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from quotation_rpa.config import Timings
from quotation_rpa.context import RunContext
from quotation_rpa.events import RunEmitter
from quotation_rpa.models import LineItem


def make_ctx() -> RunContext:
    return RunContext(emitter=RunEmitter(), timings=Timings.instant())


def item(reference: str, quantity: int = 1, **kw) -> LineItem:
    return LineItem(id=kw.pop("id", 0), reference=reference, quantity=quantity, **kw)


def messages(ctx: RunContext, level: str | None = None) -> list[str]:
    return [e.message for e in ctx.result.logs if level is None or e.level.value == level]


@pytest.fixture
def ctx() -> RunContext:
    return make_ctx()


@pytest.fixture(autouse=True)
def _drop_run_log_handlers():
    yield
    pkg_logger = logging.getLogger("quotation_rpa")
    for handler in list(pkg_logger.handlers):
        if getattr(handler, "_quotation_rpa", False):
            pkg_logger.removeHandler(handler)
            handler.close()
