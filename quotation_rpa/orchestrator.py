from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import Settings, configure_logging, load_settings
from .context import RunCancelled, RunContext, StageError
from .events import LogListener, RunEmitter
from .form_adapter import FormAdapter
from .inputs import load_run_input
from .models import STOPPED_BY_USER, Credential, HeaderConfig, LineItem, RunOptions, RunResult, selected
from .step1_session import PortalSession, log_page_state
from .step2_navigate import navigate_to_entry_screen
from .step3_header import apply_header, capture_row_defaults
from .step4_profiles import fill_profiles
from .step5_accessories import fill_accessories
from .step6_reconcile import log_unfilled_summary, mark_all_unfilled, reconcile, settle
from .step7_totals import extract_total, run_portal_actions

logger = logging.getLogger(__name__)


async def _close_books(
    form: Optional[FormAdapter],
    profiles: List[LineItem],
    accessories: List[LineItem],
    ctx: RunContext,
    reason: str,
) -> None:
    """Classify every selected item after an early exit.

    Attempted rows are read back without mutating the form; the rest are
    recorded as not attempted.
    """
    if ctx.result.reconciled:
        return
    if form is None:
        mark_all_unfilled(profiles, accessories, ctx, reason)
        return
    try:
        await reconcile(form, profiles, accessories, ctx, attempted=dict(ctx.progress), not_attempted_reason=reason)
    except Exception as e:
        logger.warning("read-back after early exit failed: %s", e)
        mark_all_unfilled(profiles, accessories, ctx, reason)


async def _collect_artifacts(session, ctx: RunContext, name: str) -> None:
    if session is None:
        return
    result = ctx.result
    try:
        result.screenshot_ref = await session.screenshot(name)
    except Exception as e:
        logger.warning("screenshot failed: %s", e)
    if result.screenshot_ref:
        ctx.emitter.info("Screenshot saved", result.screenshot_ref)
    try:
        result.trace_ref = await session.stop_trace()
    except Exception as e:
        logger.warning("trace not saved: %s", e)
    if result.trace_ref:
        ctx.emitter.detail(f"[ARTIFACTS] Trace saved: {result.trace_ref}")


async def run_quotation(
    ctx: RunContext,
    credential: Credential,
    header: HeaderConfig,
    profiles: List[LineItem],
    accessories: List[LineItem],
    options: RunOptions = RunOptions(),
    *,
    timeout_ms: int = 30000,
) -> RunResult:
    """Run one quotation end to end against ``ctx.session``.

    Always returns the RunResult, also on cancellation or fatal failure. The
    session is left open for inspection; closing it is the caller's job.
    """
    result = ctx.result
    em = ctx.emitter
    session = ctx.session
    sel_profiles = selected(profiles)
    sel_accessories = selected(accessories)
    result.total_items = len(sel_profiles) + len(sel_accessories)
    form: Optional[FormAdapter] = None
    artifact = "quotation"

    em.info(
        "Starting portal automation...",
        f"profiles={len(sel_profiles)}, accessories={len(sel_accessories)}, log_file={result.log_ref or '-'}",
    )
    try:
        if session is None:
            raise StageError("session", "No portal session attached to the run context")

        result.stage = "login"
        ctx.checkpoint("login")
        await session.start(credential, em)

        result.stage = "navigate"
        ctx.checkpoint("navigate")
        await navigate_to_entry_screen(session.page, ctx, timeout_ms=timeout_ms)
        await log_page_state(session.page, em, "After navigation")
        form = session.form

        result.stage = "header"
        ctx.checkpoint("header")
        await apply_header(form, header, ctx)
        defaults = await capture_row_defaults(form, header)
        em.detail(f"[HEADER] Row defaults: {defaults}")

        result.stage = "profiles"
        ctx.checkpoint("profiles")
        await fill_profiles(form, sel_profiles, defaults, ctx)

        result.stage = "accessories"
        ctx.checkpoint("accessories")
        await fill_accessories(form, sel_accessories, ctx)

        result.stage = "reconcile"
        ctx.checkpoint("reconcile")
        await settle(form, sel_profiles, sel_accessories, ctx)
        await reconcile(form, sel_profiles, sel_accessories, ctx)
        log_unfilled_summary(len(sel_accessories), ctx)

        result.stage = "actions"
        await run_portal_actions(form, options, ctx)

        result.stage = "total"
        result.extracted_total = await extract_total(form, ctx)

        result.stage = "done"
        if result.success:
            em.success("Automation completed successfully!")
        else:
            em.warning(f"Automation completed: {result.failed_items} of {result.total_items} items need manual review")
    except RunCancelled as e:
        artifact = "stopped"
        result.stopped = True
        result.error = STOPPED_BY_USER
        em.warning(STOPPED_BY_USER, f"stage={result.stage}, checkpoint={e.checkpoint}")
        await _close_books(form, sel_profiles, sel_accessories, ctx, "not attempted: stopped by user")
    except StageError as e:
        artifact = "error"
        result.stage = e.stage
        result.error = str(e)
        em.error(f"Automation failed at {e.stage}: {e}", json.dumps(e.details, ensure_ascii=False, default=str) if e.details else None)
        await _close_books(form, sel_profiles, sel_accessories, ctx, f"not attempted: run aborted: {e}")
    except Exception as e:
        artifact = "error"
        result.error = f"{type(e).__name__}: {e}"
        em.error(f"Automation failed at {result.stage}: {result.error}")
        logger.exception("run aborted")
        await _close_books(form, sel_profiles, sel_accessories, ctx, f"not attempted: run aborted: {result.error}")
    finally:
        await _collect_artifacts(session, ctx, artifact)

    em.info(
        f"Run finished: {result.successful_items}/{result.total_items} confirmed, "
        f"{len(result.unfilled_profiles)} profiles and {len(result.unfilled_accessories)} accessories unfilled"
    )
    return result


class AutomationRunner:
    """Owns the long-lived portal session across runs.

    Each ``run`` starts a fresh session (closing the previous one). The session
    is kept open after the run until ``close`` is called.
    """

    def __init__(self, settings: Settings | None = None, session_factory: Callable[[Settings], object] | None = None) -> None:
        self.settings = settings or load_settings()
        self._session_factory = session_factory or PortalSession
        self.session = None
        self.current: RunContext | None = None

    def new_context(self, listeners: List[LogListener] | None = None, log_ref: str | None = None) -> RunContext:
        emitter = RunEmitter(RunResult(log_ref=log_ref), listeners)
        return RunContext(emitter=emitter, timings=self.settings.timings)

    async def run(
        self,
        credential: Credential,
        header: HeaderConfig,
        profiles: List[LineItem],
        accessories: List[LineItem],
        options: RunOptions = RunOptions(),
        *,
        ctx: RunContext | None = None,
    ) -> RunResult:
        if self.session is not None:
            await self.close()
        ctx = ctx or self.new_context()
        self.session = self._session_factory(self.settings)
        ctx.session = self.session
        self.current = ctx
        return await run_quotation(
            ctx, credential, header, profiles, accessories, options, timeout_ms=self.settings.timeout_ms
        )

    def stop(self, reason: str = "stop requested") -> None:
        if self.current is not None:
            self.current.cancel.cancel(reason)

    async def close(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            await session.close()


async def _run(args: argparse.Namespace, settings: Settings, log_path: Path) -> Tuple[bool, dict]:
    header, profiles, accessories, options = load_run_input(args.items)
    if args.generate_report or args.create_proforma:
        options = RunOptions(
            generate_report=options.generate_report or args.generate_report,
            create_proforma=options.create_proforma or args.create_proforma,
        )
    if not settings.username or not settings.password:
        raise StageError("config", "CORTIZO_USERNAME / CORTIZO_PASSWORD are not set")

    runner = AutomationRunner(settings)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, runner.stop, "signal")

    ctx = runner.new_context(log_ref=str(log_path))
    try:
        result = await runner.run(
            Credential(settings.username, settings.password), header, profiles, accessories, options, ctx=ctx
        )
        keep_open = settings.keep_open_seconds if args.keep_open is None else args.keep_open
        if keep_open > 0:
            logger.info("Keeping the browser open for %ss for manual inspection", keep_open)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(ctx.cancel.wait(), timeout=keep_open)
    finally:
        await runner.close()
    return result.success, result.to_payload()


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="quotation-rpa", description="Enter a quotation's line items into the portal.")
    parser.add_argument("items", type=Path, help="JSON file with profiles, accessories and optional header/options")
    parser.add_argument("--keep-open", type=int, default=None, metavar="SECONDS", help="keep the session open after the run")
    parser.add_argument("--generate-report", action="store_true")
    parser.add_argument("--create-proforma", action="store_true")
    args = parser.parse_args(argv)

    settings = load_settings()
    log_path = configure_logging(settings.log_dir)
    try:
        ok, payload = asyncio.run(_run(args, settings, log_path))
    except StageError as e:
        payload = {"ok": False, "stage": e.stage, "error": str(e), "log_file": str(log_path)}
        ok = False
    except Exception as e:
        logger.exception("run could not start")
        payload = {"ok": False, "stage": "init", "error": f"{type(e).__name__}: {e}", "log_file": str(log_path)}
        ok = False

    print(json.dumps(payload, ensure_ascii=False))
    return 0 if ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
