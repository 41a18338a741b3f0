"""
Gate a browser action on a matching network response.

The listener is attached before the action runs, so a response that arrives
while the click is still resolving cannot be missed. The first response the
predicate accepts resolves the gate; predicates may be plain functions or
coroutines (body inspection needs `await response.text()`).

    async with ResponseGate(page, is_login_confirmation, 10000, "login") as gate:
        await page.click(LOGIN_BUTTON)
        response = await gate.wait()
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError

from portal_errors import ResponseTimeout


class ResponseGate:
    """One-shot observer for the first response matching `predicate`."""

    def __init__(self, page, predicate: Callable, timeout_ms: float, label: str = "response"):
        self.page = page
        self.predicate = predicate
        self.timeout_ms = timeout_ms
        self.label = label
        self._matched: Optional[asyncio.Future] = None

    async def __aenter__(self):
        self._matched = asyncio.get_running_loop().create_future()
        self.page.on("response", self._on_response)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.page.remove_listener("response", self._on_response)

    @property
    def resolved(self) -> bool:
        return self._matched is not None and self._matched.done()

    async def _on_response(self, response):
        if self._matched is None or self._matched.done():
            return
        try:
            matched = self.predicate(response)
            if inspect.isawaitable(matched):
                matched = await matched
        except (PlaywrightError, UnicodeDecodeError) as e:
            # Bodies of redirects, aborted requests and binary assets are unreadable
            print(f"  ⚠ Skipping unreadable response {response.url}: {e}")
            return
        if matched and not self._matched.done():
            self._matched.set_result(response)

    async def wait(self):
        """Block until the gate resolves; raise ResponseTimeout past the bound."""
        try:
            return await asyncio.wait_for(self._matched, timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise ResponseTimeout(self.label, self.timeout_ms) from None


async def gated(
    page,
    predicate: Callable,
    action: Callable[[], Awaitable],
    timeout_ms: float,
    label: str = "response",
):
    """Run `action` and return the first response accepted by `predicate`."""
    async with ResponseGate(page, predicate, timeout_ms, label) as gate:
        await action()
        return await gate.wait()
