"""
Page structure of the PermitInfo portal.

Selectors and network-response predicates for the login form, dashboard
grid, permit detail page and the "Update Permit" confirmation. All of these
are coupled to the portal's current ASP.NET markup.
"""

from urllib.parse import urlparse

# =============================================================================
# Login
# =============================================================================

# Postback target of the header "Login" link (__EVENTTARGET Menu1$LoginLink)
LOGIN_EVENT_TARGET = "Menu1$LoginLink"
LOGIN_LINK = "#Menu1_LoginLink"

USERNAME_FIELD_NAME = "ctl00$MainContent$txtUsername"
PASSWORD_FIELD_NAME = "ctl00$MainContent$txtPassword"
LOGIN_BUTTON_NAME = "ctl00$MainContent$btnLogin"

USERNAME_FIELD = f'[name="{USERNAME_FIELD_NAME}"]'
PASSWORD_FIELD = f'[name="{PASSWORD_FIELD_NAME}"]'
LOGIN_BUTTON = f'[name="{LOGIN_BUTTON_NAME}"]'

# Every form postback on the portal goes to this page
POSTBACK_PATH = "index.aspx"

# =============================================================================
# Dashboard
# =============================================================================

DASHBOARD_ROW = "#MainContent_gvPermits tr.permit-row"

# Cell selectors, relative to a dashboard row
ROW_FIELDS = {
    "permit_no": "td.permit-no",
    "status": "td.permit-status",
    "description": "td.permit-description",
    "valid_from": "td.permit-valid-from",
    "valid_to": "td.permit-valid-to",
    "holder": "td.permit-holder",
    "vehicle": "td.permit-vehicle",
}
REQUIRED_ROW_FIELDS = ("permit_no", "status")

DETAIL_LINK = "a.permit-details"

# =============================================================================
# Permit detail page
# =============================================================================

PLATE_ROW = ".plate-row"
PLATE_LABEL = ".plate-number"
PLATE_NAME = ".plate-name"
PLATE_TOGGLE = ".plate-toggle"

# Class on the active plate's toggle, and the text the portal echoes back
# once a toggle has been switched on
SELECTED_MARKER = "selected"
SELECTED_TOGGLE = f"{PLATE_TOGGLE}.{SELECTED_MARKER}"

UPDATE_BUTTON = 'input[type="submit"][value="Update Permit"]'


# =============================================================================
# Response predicates
# =============================================================================


def is_postback(url: str) -> bool:
    return POSTBACK_PATH in url.lower()


def is_login_confirmation(response) -> bool:
    """The POST to index.aspx that completes a login."""
    return is_postback(response.url) and response.request.method == "POST"


def is_toggle_ack(response) -> bool:
    """Any 200 from the postback endpoint. The body is not inspected."""
    return is_postback(response.url) and response.status == 200


async def is_selection_confirmed(response) -> bool:
    """A 200 from the postback endpoint whose body carries the selected marker."""
    if not is_toggle_ack(response):
        return False
    body = await response.text()
    return SELECTED_MARKER in body


def is_portal_root(url: str, base_url: str) -> bool:
    """True for the portal's landing page (`/` or `/index.aspx`) on the same host."""
    target = urlparse(url)
    base = urlparse(base_url)
    if target.netloc.lower() != base.netloc.lower():
        return False
    base_path = base.path.strip("/")
    path = target.path.strip("/")
    if base_path and path.startswith(base_path):
        path = path[len(base_path):].strip("/")
    return path in ("", POSTBACK_PATH)
