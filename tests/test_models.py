"""Result model, emitter and run context."""

import asyncio
from decimal import Decimal

import pytest

from conftest import item, make_ctx
from quotation_rpa.context import RunCancelled
from quotation_rpa.events import RunEmitter
from quotation_rpa.models import LogLevel, RunResult, UnfilledItem, row_number, selected


def _unfilled(row="0001"):
    return UnfilledItem(row_number=row, reference="R", quantity=1, description="", reason="x")


class TestRunResult:

    def test_success_only_when_lists_empty(self):
        result = RunResult(total_items=2)
        assert result.success
        result.unfilled_accessories.append(_unfilled())
        assert not result.success

    def test_stopped_or_errored_is_not_success(self):
        assert not RunResult(stopped=True).success
        assert not RunResult(error="boom").success

    def test_finalize_counts(self):
        result = RunResult(total_items=5)
        result.unfilled_profiles.extend([_unfilled("0001"), _unfilled("0002")])
        result.finalize_counts()
        assert (result.successful_items, result.failed_items) == (3, 2)

    def test_payload(self):
        result = RunResult(total_items=1, extracted_total=Decimal("12.50"), screenshot_ref="s.png")
        payload = result.to_payload()
        assert payload["ok"] is True
        assert payload["extracted_total"] == "12.50"
        assert payload["screenshot"] == "s.png"
        assert "error" not in payload and "trace" not in payload

    def test_row_number(self):
        assert row_number(0) == "0001"
        assert row_number(41) == "0042"

    def test_selected(self):
        items = [item("A"), item("B", selected=False), item("C")]
        assert [i.reference for i in selected(items)] == ["A", "C"]
        assert selected(None) == []


class TestRunEmitter:

    def test_entries_recorded_in_order(self):
        emitter = RunEmitter()
        emitter.info("one")
        emitter.success("two", "details")
        emitter.error("three")
        logs = emitter.result.logs
        assert [e.message for e in logs] == ["one", "two", "three"]
        assert [e.level for e in logs] == [LogLevel.INFO, LogLevel.SUCCESS, LogLevel.ERROR]
        assert logs[1].to_dict()["details"] == "details"
        assert logs[0].timestamp <= logs[2].timestamp

    def test_detail_not_recorded_but_published(self):
        seen = []
        emitter = RunEmitter(listeners=[seen.append])
        emitter.detail("[ROW 0001] trace")
        assert emitter.result.logs == []
        assert [e.message for e in seen] == ["[ROW 0001] trace"]

    def test_failing_listener_does_not_break_run(self):
        def broken(entry):
            raise RuntimeError("socket closed")

        seen = []
        emitter = RunEmitter(listeners=[broken, seen.append])
        emitter.warning("still delivered")
        assert [e.message for e in seen] == ["still delivered"]
        assert len(emitter.result.logs) == 1

    def test_written_to_logger(self, caplog):
        emitter = RunEmitter()
        with caplog.at_level("INFO", logger="quotation_rpa"):
            emitter.success("done")
            emitter.warning("careful", "row 2")
        assert "OK: done" in caplog.text
        assert "careful\n    Details: row 2" in caplog.text


class TestRunContext:

    def test_checkpoint(self):
        ctx = make_ctx()
        ctx.checkpoint("start")
        ctx.cancel.cancel("user")
        assert ctx.cancel.reason == "user"
        with pytest.raises(RunCancelled) as exc:
            ctx.checkpoint("profile 0003")
        assert exc.value.checkpoint == "profile 0003"

    def test_wait_returns_once_cancelled(self):
        ctx = make_ctx()

        async def scenario():
            asyncio.get_running_loop().call_later(0.01, ctx.cancel.cancel)
            await asyncio.wait_for(ctx.cancel.wait(), timeout=1)

        asyncio.run(scenario())
        assert ctx.cancel.cancelled

    def test_result_is_emitter_result(self):
        ctx = make_ctx()
        assert ctx.result is ctx.emitter.result
