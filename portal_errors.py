"""Errors raised while driving the PermitInfo portal."""

from typing import Optional


class PortalError(Exception):
    """Base class for every portal automation failure."""


class AuthError(PortalError):
    """Login field not found, or the login confirmation was never observed."""


class ScrapeFieldError(PortalError):
    """A single dashboard row could not be parsed. The row is dropped."""

    def __init__(self, field: str, message: str = "missing"):
        self.field = field
        super().__init__(f"{field}: {message}")


class EnrichmentError(PortalError):
    """Plates for one permit could not be fetched. The permit keeps no plates."""

    def __init__(self, permit_no: str, message: str):
        self.permit_no = permit_no
        super().__init__(f"Permit {permit_no}: {message}")


class ResponseTimeout(PortalError):
    """No network response matched a gate within its bound."""

    def __init__(self, label: str, timeout_ms: float):
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"Timed out after {timeout_ms:.0f}ms waiting for {label}")


class UpdateError(PortalError):
    """
    A step of the plate update failed.

    `reason` is a short machine-friendly tag ("timeout", "auth",
    "plate not found", ...). `snapshot` holds a PNG of the page at the time
    of failure when debug mode captured one.
    """

    def __init__(
        self,
        reason: str,
        message: str = "",
        step: Optional[str] = None,
        snapshot: Optional[bytes] = None,
    ):
        self.reason = reason
        self.step = step
        self.snapshot = snapshot
        detail = message or reason
        prefix = f"[{step}] " if step else ""
        super().__init__(f"{prefix}{detail}")
