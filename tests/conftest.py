"""Shared test fixtures for the creatorscope test suite.

No real browser is involved: nodriver tabs, the browser and its
connection are replaced by small stand-ins that record what was sent and
let tests fire CDP events by hand.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections import defaultdict
from types import SimpleNamespace
from typing import Any, Callable

import nodriver.cdp.network as network
import nodriver.cdp.target as target
import pytest

from creatorscope.config import CrawlerSettings, Delays

CARD_URL = "https://ads.tiktok.com/creative_radar_api/CreativeOne/MatchPack/MGetCreatorsCard?aid=1"
OTHER_URL = "https://ads.tiktok.com/api/v2/i18n/login/status"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_CONTENT_LABELS = [
    {"labelID": "101", "labelName": "Beauty"},
    {"labelID": "102", "labelName": "Fashion"},
]
MOCK_AGE = [
    {"ageInterval": "18-24", "ratio": 0.55},
    {"ageInterval": "25-34", "ratio": 0.30},
]
MOCK_REGION = [{"country": "VN", "ratio": 0.9}]
MOCK_GENDER = [
    {"gender": "female", "ratio": 0.7},
    {"gender": "male", "ratio": 0.3},
]
MOCK_FOLLOWERS = [
    {"count": 120000, "date": "2025-09-01"},
    {"count": 125000, "date": "2025-09-08"},
]
MOCK_VIDEOS = [
    {"itemID": "v1", "title": "GRWM", "views": "53000", "heart": 4200},
]


def card_body(
    *,
    content_labels=None,
    age=None,
    region=None,
    gender=None,
    followers=None,
    videos=None,
) -> dict[str, Any]:
    """One creator-card API body; sections left as None come back as null."""
    return {
        "baseResp": {"StatusCode": 0, "StatusMessage": ""},
        "creators": [
            {
                "aioCreatorID": "7300000000000000001",
                "contentLabels": content_labels,
                "statisticData": {
                    "followerDistriData": {"age": age, "region": region, "gender": gender},
                    "followerCountHistory": {"followerCount": followers},
                    "videoPerformance": {"recentVideos": videos},
                },
            }
        ],
    }


def full_card_body() -> dict[str, Any]:
    return card_body(
        content_labels=MOCK_CONTENT_LABELS,
        age=MOCK_AGE,
        region=MOCK_REGION,
        gender=MOCK_GENDER,
        followers=MOCK_FOLLOWERS,
        videos=MOCK_VIDEOS,
    )


# ============================================================================
# nodriver stand-ins
# ============================================================================

class FakeElement:
    def __init__(self, tab: FakeTab, selector: str):
        self.tab = tab
        self.selector = selector

    async def click(self):
        self.tab.actions.append(("click", self.selector))
        callback = self.tab.on_click.get(self.selector)
        if callback is not None:
            result = callback()
            if inspect.isawaitable(result):
                await result

    async def send_keys(self, text):
        self.tab.actions.append(("type", self.selector, text))
        self.tab.values[self.selector] = self.tab.values.get(self.selector, "") + text

    async def clear_input(self):
        self.tab.actions.append(("clear", self.selector))
        self.tab.values[self.selector] = ""

    async def apply(self, js_function):
        return self.tab.texts.get(self.selector, "")


class FakeTab:
    """Just enough of ``nodriver.Tab`` for PageContext.

    ``elements`` are the selectors present (and visible) on the page,
    ``texts`` their innerText, ``bodies`` maps request ids to the result of
    ``Network.getResponseBody`` as ``(result_or_exception, delay)``.
    """

    def __init__(
        self,
        target_id: str = "search-tab",
        *,
        elements=(),
        texts: dict[str, str] | None = None,
        on_click: dict[str, Callable] | None = None,
        bodies: dict[str, tuple[Any, float]] | None = None,
    ):
        self.target = SimpleNamespace(target_id=target_id, type_="page")
        self.texts = dict(texts or {})
        self.elements = set(elements) | set(self.texts)
        self.on_click = dict(on_click or {})
        self.on_reload: Callable | None = None
        self.bodies = dict(bodies or {})
        self.values: dict[str, str] = {}
        self.handlers: dict[type, list] = defaultdict(list)
        self.actions: list[tuple] = []
        self.sent: list[str] = []
        self.closed = False

    def add_handler(self, event_type, handler):
        self.handlers[event_type].append(handler)

    def emit(self, event_type, event):
        for handler in list(self.handlers.get(event_type, [])):
            handler(event)

    def emit_response(self, request_id: str, url: str = CARD_URL, status: int = 200):
        self.emit(
            network.ResponseReceived,
            SimpleNamespace(request_id=request_id, response=SimpleNamespace(url=url, status=status)),
        )

    async def send(self, cmd):
        # nodriver CDP commands are generators; the arguments sit in the unstarted frame.
        name = getattr(getattr(cmd, "gi_code", None), "co_name", "")
        self.sent.append(name)
        if name == "get_response_body":
            request_id = cmd.gi_frame.f_locals.get("request_id")
            result, delay = self.bodies.get(str(request_id), (None, 0))
            if delay:
                await asyncio.sleep(delay)
            if isinstance(result, BaseException):
                raise result
            return result
        if name == "navigate":
            self.actions.append(("navigate", cmd.gi_frame.f_locals.get("url")))
        if name == "reload":
            self.actions.append(("reload",))
            if self.on_reload is not None:
                self.on_reload()
        return None

    async def query_selector(self, selector):
        return FakeElement(self, selector) if selector in self.elements else None

    async def xpath(self, selector, timeout=0):
        return [FakeElement(self, selector)] if selector in self.elements else []

    async def evaluate(self, expression, return_by_value=True):
        return any(json.dumps(selector) in expression for selector in self.elements)

    async def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self):
        self.handlers: dict[type, list] = defaultdict(list)
        self.sent: list[str] = []

    def add_handler(self, event_type, handler):
        self.handlers[event_type].append(handler)

    def emit(self, event_type, event):
        for handler in list(self.handlers.get(event_type, [])):
            handler(event)

    async def send(self, cmd):
        self.sent.append(getattr(getattr(cmd, "gi_code", None), "co_name", ""))
        return None


class FakeBrowser:
    """Stand-in for ``nodriver.Browser`` holding a list of FakeTabs."""

    def __init__(self, *tabs: FakeTab):
        self.targets: list[Any] = list(tabs)
        self.connection = FakeConnection()
        self.stopped = False
        self.update_calls = 0

    async def get(self, url="about:blank", new_tab=False):
        tab = self.targets[0]
        if url != "about:blank":
            tab.actions.append(("get", url))
        return tab

    async def update_targets(self):
        self.update_calls += 1

    def spawn(self, tab: FakeTab, type_: str = "page"):
        """Register ``tab`` and fire Target.targetCreated for it."""
        self.targets.append(tab)
        self.emit_target_created(tab.target.target_id, type_)

    def emit_target_created(self, target_id: str, type_: str = "page"):
        event = SimpleNamespace(target_info=SimpleNamespace(target_id=target_id, type_=type_))
        self.connection.emit(target.TargetCreated, event)

    def stop(self):
        self.stopped = True


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fast_settings(tmp_path):
    """Settings with no fixed pauses and short timeouts."""
    return CrawlerSettings(
        _env_file=None,
        profile_dir=tmp_path / "profile",
        delays=Delays(
            after_search_tab_click=0,
            after_type=0,
            after_search=0,
            tab_settle=0,
            after_reload=0,
        ),
        action_timeout=0.5,
        tab_spawn_timeout=0.5,
        subject_timeout=5.0,
    )


@pytest.fixture
def make_tab():
    """Factory fixture for FakeTab."""
    return FakeTab


@pytest.fixture
def make_browser():
    """Factory fixture for FakeBrowser."""
    return FakeBrowser


@pytest.fixture
def card_factory():
    """Factory fixture for creator-card API bodies."""
    return card_body


@pytest.fixture
def full_card():
    return full_card_body()


@pytest.fixture
def session_factory(fast_settings):
    """Build a BrowserSession already bound to a FakeBrowser."""
    from creatorscope.browser.session import BrowserSession

    def _create(browser: FakeBrowser, settings: CrawlerSettings | None = None):
        session = BrowserSession(settings or fast_settings)
        session.browser = browser
        return session

    return _create


# ============================================================================
# CLI Testing Fixtures
# ============================================================================

@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
