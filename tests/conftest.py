import pytest

from fakes import BASE_URL, DASHBOARD_URL, FakePortal, FakeBrowserSession, dashboard, login_page
from portal_config import Config
from progress_channel import ChannelRegistry, ProgressReporter


@pytest.fixture()
def config():
    return Config(
        base_url=BASE_URL,
        username="user",
        password="pass",
        page_timeout_ms=200,
        login_field_timeout_ms=100,
        detail_link_timeout_ms=50,
        quiescence_timeout_ms=100,
        enrichment_concurrency=2,
    )


@pytest.fixture()
def registry():
    return ChannelRegistry()


@pytest.fixture()
def reporter(registry):
    return ProgressReporter(registry, "test-session")


@pytest.fixture()
def portal():
    portal = FakePortal()
    portal.route(BASE_URL, login_page())
    portal.route(DASHBOARD_URL, dashboard([]))
    return portal


@pytest.fixture()
def session(config, reporter, portal):
    """Not yet begun; tests call `await session.begin()` inside their own event loop."""
    return FakeBrowserSession(config, reporter, portal)
