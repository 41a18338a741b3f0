#!/usr/bin/env python3
"""
Browser session for the PermitInfo portal.

A PermitSession owns exactly one Chromium instance, one context and every
page opened in it. It is created for a single incoming request and torn down
when that request is done:

    async with PermitSession(config, reporter) as session:
        await session.authenticate()
        ...
"""

from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

import portal_map
from portal_config import Config, Credentials
from portal_errors import AuthError, ResponseTimeout
from progress_channel import ProgressReporter
from response_gate import gated


class PermitSession:
    """
    One authenticated browser context scoped to a single request.

    The session can:
    1. Launch and tear down its browser (begin / end)
    2. Log in through the portal's login form
    3. Open extra pages in the same context
    4. Navigate and wait for network quiescence
    """

    def __init__(self, config: Config, reporter: ProgressReporter):
        self.config = config
        self.reporter = reporter
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.authenticated = False
        self._ended = False

    async def __aenter__(self):
        """Async context manager entry."""
        try:
            await self.begin()
        except Exception:
            await self.end()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.end()

    async def begin(self):
        """Launch the browser and open the session's main page."""
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(headless=self.config.headless)
        self.context = await self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=self.config.user_agent,
        )
        self.context.set_default_timeout(self.config.page_timeout_ms)
        self.page = await self.context.new_page()
        self.reporter.log("✓ Browser session started")

    async def end(self):
        """Release every browser resource. Safe to call more than once."""
        if self._ended:
            return
        self._ended = True
        try:
            if self.browser:
                await self.browser.close()
        finally:
            try:
                if self.playwright:
                    await self.playwright.stop()
            finally:
                self.browser = None
                self.context = None
                self.page = None
                self.playwright = None
                self.reporter.log("✓ Browser session closed")
                self.reporter.close()

    async def open_page(self) -> Page:
        """Open another page in this session's context."""
        return await self.context.new_page()

    async def settle(self, page: Optional[Page] = None, strict: bool = False):
        """
        Wait for network quiescence.

        Quiescence only means the page is probably stable. Unless `strict`,
        a timeout here is logged and ignored.
        """
        page = page or self.page
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.quiescence_timeout_ms)
        except PlaywrightTimeout:
            if strict:
                raise
            self.reporter.log("⚠ Network did not go idle, continuing")

    async def navigate(self, url: str, page: Optional[Page] = None):
        page = page or self.page
        await page.goto(url, wait_until="domcontentloaded")
        await self.settle(page)

    async def authenticate(self, credentials: Optional[Credentials] = None):
        """
        Log in through the portal's login form.

        Completion is signalled by the login POST to index.aspx, not by the
        click returning. Raises AuthError when the form never shows up or
        the confirmation never arrives.
        """
        creds = credentials or self.config.credentials()
        page = self.page

        self.reporter.log(f"🔐 Logging in to {self.config.base_url}")
        try:
            await page.goto(self.config.base_url, wait_until="domcontentloaded")
        except PlaywrightTimeout:
            raise AuthError(f"Login page did not load: {self.config.base_url}") from None

        try:
            await page.click(portal_map.LOGIN_LINK, timeout=self.config.login_field_timeout_ms)
            await page.wait_for_selector(
                portal_map.USERNAME_FIELD,
                state="visible",
                timeout=self.config.login_field_timeout_ms,
            )
        except PlaywrightTimeout:
            raise AuthError("Login form did not appear") from None

        await page.fill(portal_map.USERNAME_FIELD, creds.username)
        await page.fill(portal_map.PASSWORD_FIELD, creds.password)

        try:
            await gated(
                page,
                portal_map.is_login_confirmation,
                lambda: page.click(portal_map.LOGIN_BUTTON),
                self.config.page_timeout_ms,
                "login confirmation",
            )
        except (ResponseTimeout, PlaywrightTimeout) as e:
            raise AuthError(f"Login was not confirmed: {e}") from None

        await self.settle()
        self.authenticated = True
        self.reporter.log("  ✓ Logged in")
