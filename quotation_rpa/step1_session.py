from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from playwright.async_api import TimeoutError as PWTimeoutError
from playwright.async_api import async_playwright

from .config import Settings
from .context import LoginFailure, StageError
from .events import RunEmitter
from .form_adapter import PortalFormAdapter
from .locators import LOGIN_MARKERS, LOGIN_PASSWORD, LOGIN_SUBMIT, LOGIN_USERNAME, PAGE_LANDMARKS, any_present, resolve_first
from .models import Credential
from .waits import pause

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    CLOSED = "closed"


def _stamp() -> str:
    return f"{datetime.now():%Y%m%d-%H%M%S}"


async def submit_credentials(page, credential: Credential, emitter: RunEmitter) -> None:
    """Fill the first username/password pair found and click the first submit control."""
    user_input, user_sel = await resolve_first(page, LOGIN_USERNAME)
    pass_input, pass_sel = await resolve_first(page, LOGIN_PASSWORD)
    if user_input is None or pass_input is None:
        raise LoginFailure(
            "Login form inputs not found",
            {"username_found": user_input is not None, "password_found": pass_input is not None, "url": page.url},
        )

    emitter.detail(f"[LOGIN] Filling username via {user_sel}: {credential.username}")
    await user_input.fill(credential.username)
    emitter.detail(f"[LOGIN] Filling password via {pass_sel}: ********")
    await pass_input.fill(credential.password)

    for cand in LOGIN_SUBMIT:
        try:
            btn = cand.build(page).first
            if await btn.count() == 0:
                continue
            await btn.click()
            emitter.detail(f"[LOGIN] Clicked login button: {cand}")
            return
        except Exception as e:
            emitter.detail(f"[LOGIN] Selector '{cand}' failed: {e}")
            continue
    emitter.warning("Login button not found, pressing Enter in the password field")
    await pass_input.press("Enter")


async def confirm_login(page, login_path: str, timeout_ms: int, emitter: RunEmitter) -> bool:
    """Wait for the URL to leave the login path.

    On timeout the session is still treated as authenticated when no login
    markers are left on the page; the portal sometimes logs in without a URL
    change. Returns True when the redirect was observed.
    """
    marker = login_path.strip("/").lower()
    try:
        await page.wait_for_url(lambda url: marker not in url.lower(), timeout=timeout_ms)
        emitter.success("Login successful!")
        return True
    except PWTimeoutError:
        emitter.warning("Login redirect timeout - checking if already logged in...")

    if await any_present(page, LOGIN_MARKERS):
        raise LoginFailure("Still on login page after submitting credentials", {"url": page.url})
    emitter.warning("No login form on page, assuming the session is authenticated", f"url={page.url}")
    return False


async def log_page_state(page, emitter: RunEmitter, context: str) -> None:
    try:
        title = await page.title()
    except Exception:
        title = ""
    emitter.detail(f"[PAGE STATE - {context}] URL: {page.url} Title: {title}")
    for name, selector in PAGE_LANDMARKS:
        try:
            loc = page.locator(selector).first
            exists = await loc.count() > 0
            visible = exists and await loc.is_visible()
            state = "Found" + (" (Visible)" if visible else " (Hidden)") if exists else "Not Found"
        except Exception:
            state = "Check failed"
        emitter.detail(f"  {name}: {state}")


class PortalSession:
    """One browser session against the portal.

    The session outlives a run on purpose: after ``start`` it stays open until
    ``close`` is called so the filled form can be inspected by hand.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.state = SessionState.IDLE
        self._pw = None
        self.browser = None
        self.context = None
        self.page = None
        self._tracing = False

    @property
    def form(self) -> PortalFormAdapter:
        if self.page is None:
            raise StageError("session", "Session has no page; call start() first")
        return PortalFormAdapter(self.page, timeout_ms=self.settings.timeout_ms)

    async def launch(self) -> None:
        s = self.settings
        self._pw = await async_playwright().start()
        self.browser = await self._pw.chromium.launch(headless=s.headless, slow_mo=s.slow_mo_ms)
        self.context = await self.browser.new_context(
            viewport={"width": s.viewport_width, "height": s.viewport_height}
        )
        if s.trace:
            try:
                await self.context.tracing.start(screenshots=True, snapshots=True, sources=True)
                self._tracing = True
            except Exception as e:
                logger.warning("tracing not started: %s", e)
        self.page = await self.context.new_page()
        self.page.set_default_timeout(s.timeout_ms)

    async def start(self, credential: Credential, emitter: RunEmitter) -> "PortalSession":
        s = self.settings
        emitter.info("Initializing browser automation...")
        await self.launch()

        self.state = SessionState.AUTHENTICATING
        try:
            emitter.info("Navigating to portal login page...", f"Target URL: {s.login_url}")
            await self.page.goto(s.login_url, wait_until="networkidle", timeout=s.timeout_ms)
            await log_page_state(self.page, emitter, "After loading login page")

            emitter.info("Logging in...")
            await submit_credentials(self.page, credential, emitter)
            await pause(s.timings.login_wait_ms)
            await confirm_login(self.page, s.login_path, s.timeout_ms, emitter)
        except Exception:
            self.state = SessionState.FAILED
            raise
        self.state = SessionState.AUTHENTICATED
        await log_page_state(self.page, emitter, "After login")
        return self

    async def screenshot(self, name: str = "quotation") -> str | None:
        if self.page is None:
            return None
        self.settings.artifacts_dir.mkdir(parents=True, exist_ok=True)
        path = self.settings.artifacts_dir / f"{name}-screenshot-{_stamp()}.png"
        try:
            await self.page.screenshot(path=str(path), full_page=True)
        except Exception as e:
            logger.warning("screenshot failed: %s", e)
            return None
        return str(path)

    async def stop_trace(self) -> str | None:
        """Write the trace collected so far. Tracing stays off for the rest of the session."""
        if not self._tracing or self.context is None:
            return None
        self.settings.artifacts_dir.mkdir(parents=True, exist_ok=True)
        path = self.settings.artifacts_dir / f"trace-{_stamp()}.zip"
        try:
            await self.context.tracing.stop(path=str(path))
        except Exception as e:
            logger.warning("trace not saved: %s", e)
            return None
        finally:
            self._tracing = False
        return str(path)

    async def close(self) -> None:
        try:
            if self.page is not None:
                await self.page.close()
        except Exception:
            pass
        try:
            if self.context is not None:
                await self.context.close()
        except Exception:
            pass
        try:
            if self.browser is not None:
                await self.browser.close()
        except Exception:
            pass
        try:
            if self._pw is not None:
                await self._pw.stop()
        except Exception:
            pass
        self.page = self.context = self.browser = self._pw = None
        self.state = SessionState.CLOSED
