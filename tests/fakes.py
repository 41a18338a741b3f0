"""
In-process stand-ins for the Playwright objects the portal code touches.

A FakePortal maps URLs to document builders. Each builder receives the page
it is rendered on, so click handlers can emit network responses on that page
or load another document, the way the real portal's postbacks do.
"""

import asyncio
import inspect
from typing import Callable, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout

import portal_map
from permit_session import PermitSession

BASE_URL = "https://portal.test"
DASHBOARD_URL = f"{BASE_URL}/index.aspx"
SNAPSHOT_BYTES = b"\x89PNG-fake-snapshot"


class FakeRequest:
    def __init__(self, method: str = "GET"):
        self.method = method


class FakeResponse:
    def __init__(self, url: str, status: int = 200, method: str = "GET", body=""):
        self.url = url
        self.status = status
        self.request = FakeRequest(method)
        self._body = body

    async def text(self) -> str:
        if isinstance(self._body, Exception):
            raise self._body
        if isinstance(self._body, bytes):
            return self._body.decode()
        return self._body


class FakeElement:
    def __init__(self, text: str = "", attrs: Optional[dict] = None, children: Optional[dict] = None,
                 on_click: Optional[Callable] = None):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.on_click = on_click
        self.clicks = 0

    def _find_all(self, selector: str) -> list:
        found = self.children.get(selector)
        if found is None:
            return []
        return list(found) if isinstance(found, list) else [found]

    async def query_selector(self, selector: str):
        found = self._find_all(selector)
        return found[0] if found else None

    async def query_selector_all(self, selector: str) -> list:
        return self._find_all(selector)

    async def wait_for_selector(self, selector: str, state=None, timeout=None):
        element = await self.query_selector(selector)
        if element is None:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return element

    async def inner_text(self) -> str:
        return self.text

    async def get_attribute(self, name: str):
        return self.attrs.get(name)

    async def click(self, **kwargs):
        self.clicks += 1
        if self.on_click is not None:
            result = self.on_click()
            if inspect.isawaitable(result):
                await result


class FakePage:
    def __init__(self, portal: "FakePortal"):
        self.portal = portal
        self.url = "about:blank"
        self.root = FakeElement()
        self.handlers: list = []
        self.closed = False

    def load(self, url: str):
        self.url = url
        self.root = self.portal.document_for(self, url)

    async def emit(self, response: FakeResponse):
        self.portal.log.append(("response", response.url, response.status))
        for handler in list(self.handlers):
            result = handler(response)
            if inspect.isawaitable(result):
                await result

    def on(self, event: str, handler):
        self.handlers.append(handler)

    def remove_listener(self, event: str, handler):
        self.handlers.remove(handler)

    async def goto(self, url: str, wait_until=None, timeout=None):
        self.portal.log.append(("goto", url))
        await asyncio.sleep(0)
        error = self.portal.goto_errors.get(url)
        if error is not None:
            raise error
        self.load(url)

    async def query_selector(self, selector: str):
        return await self.root.query_selector(selector)

    async def query_selector_all(self, selector: str) -> list:
        return await self.root.query_selector_all(selector)

    async def wait_for_selector(self, selector: str, state=None, timeout=None):
        return await self.root.wait_for_selector(selector, state=state, timeout=timeout)

    async def click(self, selector: str, timeout=None):
        element = await self.root.query_selector(selector)
        if element is None:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")
        self.portal.log.append(("click", selector))
        await element.click()

    async def fill(self, selector: str, value: str):
        element = await self.root.wait_for_selector(selector)
        self.portal.log.append(("fill", selector, value))
        element.attrs["value"] = value

    async def wait_for_load_state(self, state: str = "load", timeout=None):
        self.portal.log.append(("settle", self.url))
        await asyncio.sleep(0)
        if self.portal.idle_error is not None:
            raise self.portal.idle_error

    async def wait_for_url(self, predicate, wait_until=None, timeout=None):
        if not predicate(self.url):
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for navigation")

    async def screenshot(self, full_page: bool = False) -> bytes:
        self.portal.log.append(("screenshot", self.url))
        if self.portal.screenshot_error is not None:
            raise self.portal.screenshot_error
        return SNAPSHOT_BYTES

    async def close(self):
        if self.portal.close_error is not None:
            raise self.portal.close_error
        self.closed = True
        self.portal.open_pages -= 1
        self.portal.log.append(("close", self.url))


class FakeContext:
    def __init__(self, portal: "FakePortal"):
        self.portal = portal

    async def new_page(self) -> FakePage:
        return self.portal.new_page()


class FakePortal:
    """A scripted portal: URL -> document builder, plus a shared action log."""

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.routes: dict[str, Callable] = {}
        self.goto_errors: dict[str, Exception] = {}
        self.screenshot_error: Optional[Exception] = None
        self.idle_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.log: list = []
        self.pages: list[FakePage] = []
        self.open_pages = 0
        self.max_open_pages = 0

    def route(self, url: str, builder: Callable):
        self.routes[url] = builder

    def document_for(self, page: FakePage, url: str) -> FakeElement:
        builder = self.routes.get(url)
        return builder(page) if builder else FakeElement()

    def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        self.open_pages += 1
        self.max_open_pages = max(self.max_open_pages, self.open_pages)
        return page

    def actions(self, kind: str) -> list:
        return [entry for entry in self.log if entry[0] == kind]


# =============================================================================
# Document builders
# =============================================================================


def login_page(base_url: str = BASE_URL, show_form: bool = True, confirm: bool = True):
    """Landing page whose login button posts back to index.aspx and lands on the dashboard."""
    def build(page: FakePage) -> FakeElement:
        async def submit():
            if confirm:
                await page.emit(FakeResponse(f"{base_url}/index.aspx", 200, "POST", "<html>Welcome</html>"))
                page.load(f"{base_url}/index.aspx")

        children = {portal_map.LOGIN_LINK: FakeElement("Login")}
        if show_form:
            children[portal_map.USERNAME_FIELD] = FakeElement()
            children[portal_map.PASSWORD_FIELD] = FakeElement()
            children[portal_map.LOGIN_BUTTON] = FakeElement("Login", on_click=submit)
        return FakeElement(children=children)
    return build


def dashboard_row(permit_no: str, status: str, detail_href: Optional[str] = None,
                  vehicle: str = "", missing: tuple = ()) -> FakeElement:
    cells = {
        "permit_no": permit_no,
        "status": status,
        "description": f"Residential permit {permit_no}",
        "valid_from": "01/01/2026",
        "valid_to": "12/31/2026",
        "holder": "Jordan Smith",
        "vehicle": vehicle,
    }
    children = {
        portal_map.ROW_FIELDS[field]: FakeElement(value)
        for field, value in cells.items()
        if field not in missing
    }
    if detail_href:
        children[portal_map.DETAIL_LINK] = FakeElement("Details", attrs={"href": detail_href})
    return FakeElement(children=children)


def dashboard(rows: list[FakeElement]):
    def build(page: FakePage) -> FakeElement:
        return FakeElement(children={portal_map.DASHBOARD_ROW: rows})
    return build


def detail_page(plates: list[tuple[str, str]], selected: Optional[str] = None,
                base_url: str = BASE_URL, ack_deactivate: bool = True,
                confirm_activate: bool = True, redirect_on_update: bool = True):
    """Permit detail page with one toggle per plate and an Update Permit button."""
    def build(page: FakePage) -> FakeElement:
        postback = f"{base_url}/index.aspx"
        rows = []
        selected_toggle = None
        for plate, name in plates:
            async def toggle(plate=plate):
                page.portal.log.append(("toggle", plate))
                if plate == selected:
                    if ack_deactivate:
                        await page.emit(FakeResponse(postback, 200, "POST", "<span>updated</span>"))
                elif confirm_activate:
                    body = f'<span class="plate-toggle {portal_map.SELECTED_MARKER}">{plate}</span>'
                    await page.emit(FakeResponse(postback, 200, "POST", body))
                else:
                    await page.emit(FakeResponse(postback, 200, "POST", "<span>updated</span>"))

            toggle_element = FakeElement(on_click=toggle)
            rows.append(FakeElement(children={
                portal_map.PLATE_LABEL: FakeElement(plate),
                portal_map.PLATE_NAME: FakeElement(name),
                portal_map.PLATE_TOGGLE: toggle_element,
            }))
            if plate == selected:
                selected_toggle = toggle_element

        async def update():
            page.portal.log.append(("update", page.url))
            if redirect_on_update:
                page.load(f"{base_url}/index.aspx")

        children = {
            portal_map.PLATE_ROW: rows,
            portal_map.UPDATE_BUTTON: FakeElement("Update Permit", on_click=update),
        }
        if selected_toggle is not None:
            children[portal_map.SELECTED_TOGGLE] = selected_toggle
        return FakeElement(children=children)
    return build


# =============================================================================
# Sessions
# =============================================================================


class FakeBrowserSession(PermitSession):
    """PermitSession that renders pages from a FakePortal instead of Chromium."""

    def __init__(self, config, reporter, portal: FakePortal):
        super().__init__(config, reporter)
        self.portal = portal

    async def begin(self):
        self.context = FakeContext(self.portal)
        self.page = await self.context.new_page()
        self.reporter.log("✓ Browser session started")


def session_factory(portal: FakePortal):
    """Factory for create_app(); keeps every session it built on `.sessions`."""
    sessions = []

    def factory(config, reporter):
        session = FakeBrowserSession(config, reporter, portal)
        sessions.append(session)
        return session

    factory.sessions = sessions
    return factory
