#!/usr/bin/env python3
"""
HTTP-only login probe.

Replays the portal's ASP.NET login postback without a browser: GET
index.aspx for the session cookie and hidden form state, then POST the
login form and report where the portal sends us. Useful to check
credentials and reachability before launching Chromium.

Usage:
    python portal_probe.py
"""

import asyncio
import sys
from typing import Optional

import httpx
from bs4 import BeautifulSoup

import portal_map
from models import LoginProbeResult
from portal_config import Config
from portal_errors import AuthError

HIDDEN_FIELDS = ("__VIEWSTATE", "__VIEWSTATEGENERATOR", "__EVENTVALIDATION")


def extract_form_state(page_html: str) -> dict[str, str]:
    """Pull ASP.NET hidden fields (__VIEWSTATE etc.) out of a page."""
    soup = BeautifulSoup(page_html, "html.parser")
    state = {}
    for name in HIDDEN_FIELDS:
        field = soup.find("input", {"name": name}) or soup.find("input", {"id": name})
        if field is not None:
            state[name] = field.get("value", "")
    return state


def build_login_payload(form_state: dict[str, str], username: str, password: str) -> dict[str, str]:
    return {
        "__EVENTTARGET": portal_map.LOGIN_EVENT_TARGET,
        "__EVENTARGUMENT": "",
        **form_state,
        portal_map.USERNAME_FIELD_NAME: username,
        portal_map.PASSWORD_FIELD_NAME: password,
        portal_map.LOGIN_BUTTON_NAME: "Login",
    }


async def probe_login(config: Config, client: Optional[httpx.AsyncClient] = None) -> LoginProbeResult:
    """
    Post the login form and return the portal's answer.

    Raises AuthError when the login page carries no __VIEWSTATE.
    """
    creds = config.credentials()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=config.page_timeout_ms / 1000,
            follow_redirects=False,
        )

    try:
        initial = await client.get(config.login_url)
        initial.raise_for_status()

        form_state = extract_form_state(initial.text)
        if "__VIEWSTATE" not in form_state:
            raise AuthError("Login page has no __VIEWSTATE field")

        response = await client.post(
            config.login_url,
            data=build_login_payload(form_state, creds.username, creds.password),
            headers={"Referer": config.login_url},
            follow_redirects=False,
        )
    finally:
        if owns_client:
            await client.aclose()

    if not (200 <= response.status_code < 400):
        raise AuthError(f"Login postback failed with HTTP {response.status_code}")

    print(f"  → Login response status: {response.status_code}")
    return LoginProbeResult(
        status=response.status_code,
        location=response.headers.get("location"),
        redirected=response.is_redirect,
        cookies=sorted(client.cookies.keys()),
    )


async def main():
    result = await probe_login(Config.from_env())
    print(result.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
