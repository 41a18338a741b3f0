"""
Swap the active plate on a permit.

The workflow is a fixed sequence, each step gated on what the portal sends
back rather than on sleeps:

    authenticate -> open detail page -> deactivate -> activate -> confirm

Deactivation waits for any 200 from the postback endpoint. Activation waits
for a response whose body carries the "selected" marker. Confirmation waits
for the browser to land back on the portal root. A reported success means
every expected response was observed; the portal is not re-read afterwards.
"""

from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

import portal_map
from portal_errors import AuthError, PortalError, ResponseTimeout, UpdateError
from response_gate import gated

STEPS = ("authenticate", "open detail page", "deactivate", "activate", "confirm")


class PlateUpdateWorkflow:
    """One plate swap against one permit detail page."""

    def __init__(self, session, detail_page_url: str, current_plate: str, plate_to_activate: str):
        self.session = session
        self.detail_page_url = detail_page_url
        self.current_plate = current_plate
        self.plate_to_activate = plate_to_activate
        self.completed_steps: list[str] = []
        self.deactivated: Optional[bool] = None

    @property
    def page(self):
        return self.session.page

    @property
    def timeout_ms(self) -> float:
        return self.session.config.page_timeout_ms

    def _log(self, message: str):
        self.session.reporter.log(message)

    async def run(self) -> str:
        """Run every step in order. Returns the URL the portal redirected to."""
        handlers = {
            "authenticate": self.authenticate,
            "open detail page": self.open_detail_page,
            "deactivate": self.deactivate,
            "activate": self.activate,
            "confirm": self.confirm,
        }
        for number, step in enumerate(STEPS, start=1):
            self._log(f"[{number}/{len(STEPS)}] {step.capitalize()}...")
            try:
                await handlers[step]()
            except UpdateError as e:
                raise await self._fail(step, e.reason, str(e)) from e
            except AuthError as e:
                raise await self._fail(step, "auth", str(e)) from e
            except (ResponseTimeout, PlaywrightTimeout) as e:
                raise await self._fail(step, "timeout", str(e)) from e
            except (PortalError, PlaywrightError) as e:
                raise await self._fail(step, "portal error", str(e)) from e
            self.completed_steps.append(step)

        self._log(f"✅ Plate {self.plate_to_activate} is now active")
        return self.page.url

    async def _fail(self, step: str, reason: str, message: str) -> UpdateError:
        self._log(f"✗ {step} failed: {message}")
        snapshot = await self.session.reporter.snapshot(self.page, f"Failure during {step}")
        return UpdateError(reason, message, step=step, snapshot=snapshot)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def authenticate(self):
        await self.session.authenticate()

    async def open_detail_page(self):
        await self.session.navigate(self.detail_page_url)

    async def deactivate(self):
        """Switch off the currently selected plate. No-op if none is selected."""
        toggle = await self.page.query_selector(portal_map.SELECTED_TOGGLE)
        if toggle is None:
            self.deactivated = False
            self._log("  → No plate is active, nothing to deactivate")
            return

        self._log(f"  → Deactivating {self.current_plate or 'current plate'}")
        await gated(
            self.page,
            portal_map.is_toggle_ack,
            toggle.click,
            self.timeout_ms,
            "deactivation acknowledgement",
        )
        await self.session.settle()
        self.deactivated = True
        self._log("  ✓ Deactivated")

    async def _find_toggle(self, plate: str):
        for row in await self.page.query_selector_all(portal_map.PLATE_ROW):
            label = await row.query_selector(portal_map.PLATE_LABEL)
            if label is None:
                continue
            if (await label.inner_text()).strip() == plate:
                return await row.query_selector(portal_map.PLATE_TOGGLE)
        return None

    async def activate(self):
        toggle = await self._find_toggle(self.plate_to_activate)
        if toggle is None:
            raise UpdateError(
                "plate not found",
                f"Plate {self.plate_to_activate} is not listed on the permit",
            )

        self._log(f"  → Activating {self.plate_to_activate}")
        await gated(
            self.page,
            portal_map.is_selection_confirmed,
            toggle.click,
            self.timeout_ms,
            "activation confirmation",
        )
        self._log("  ✓ Activation confirmed")

    async def confirm(self):
        base_url = self.session.config.base_url
        await self.page.click(portal_map.UPDATE_BUTTON)
        await self.page.wait_for_url(
            lambda url: portal_map.is_portal_root(url, base_url),
            wait_until="networkidle",
            timeout=self.timeout_ms,
        )
        self._log("  ✓ Permit updated")


async def update_plate(session, detail_page_url: str, current_plate: str, plate_to_activate: str) -> str:
    """Swap `current_plate` for `plate_to_activate`. Raises UpdateError on failure."""
    workflow = PlateUpdateWorkflow(session, detail_page_url, current_plate, plate_to_activate)
    return await workflow.run()
