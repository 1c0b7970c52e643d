"""Tests for BrowserSession lifecycle and target handling."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from creatorscope.browser import session as session_module
from creatorscope.browser.session import BrowserSession
from creatorscope.errors import AttachFailure, LaunchFailure


class TestStart:
    @pytest.mark.asyncio
    async def test_launch_failure_is_wrapped(self, fast_settings, monkeypatch):
        async def failing_start(config=None, **kwargs):
            raise RuntimeError("chrome not found")

        monkeypatch.setattr(BrowserSession, "_build_config", lambda self: SimpleNamespace())
        monkeypatch.setattr(session_module.uc, "start", failing_start)

        session = BrowserSession(fast_settings)
        with pytest.raises(LaunchFailure, match="chrome not found"):
            await session.start()

        assert session.started is False
        # Closing after a failed start is harmless.
        await session.close()

    @pytest.mark.asyncio
    async def test_start_uses_profile_dir(self, fast_settings, make_browser, make_tab, monkeypatch):
        browser = make_browser(make_tab())
        seen = {}

        async def fake_start(config=None, **kwargs):
            seen["config"] = config
            return browser

        monkeypatch.setattr(BrowserSession, "_build_config", lambda self: "config")
        monkeypatch.setattr(session_module.uc, "start", fake_start)

        async with BrowserSession(fast_settings) as session:
            assert session.browser is browser
            assert fast_settings.profile_dir.is_dir()
            # Starting again reuses the running browser.
            await session.start()

        assert seen["config"] == "config"
        assert browser.stopped is True

    @pytest.mark.asyncio
    async def test_launch_returns_started_session(self, fast_settings, make_browser, make_tab, monkeypatch):
        browser = make_browser(make_tab())

        async def fake_start(config=None, **kwargs):
            return browser

        monkeypatch.setattr(BrowserSession, "_build_config", lambda self: "config")
        monkeypatch.setattr(session_module.uc, "start", fake_start)

        session = await BrowserSession.launch(fast_settings)

        assert session.started is True
        assert session.browser is browser
        await session.close()


class TestClose:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, session_factory, make_browser, make_tab):
        browser = make_browser(make_tab())
        session = session_factory(browser)

        await session.close()
        await session.close()

        assert browser.stopped is True
        assert session.started is False

    @pytest.mark.asyncio
    async def test_async_stop_is_awaited(self, session_factory, make_browser, make_tab):
        browser = make_browser(make_tab())
        stopped = []

        async def stop():
            stopped.append(True)

        browser.stop = stop
        session = session_factory(browser)

        await session.close()

        assert stopped == [True]

    @pytest.mark.asyncio
    async def test_stop_errors_are_logged_not_raised(self, session_factory, make_browser, make_tab):
        browser = make_browser(make_tab())

        def stop():
            raise RuntimeError("process already exited")

        browser.stop = stop
        session = session_factory(browser)

        await session.close()

        assert session.started is False


class TestPages:
    @pytest.mark.asyncio
    async def test_new_page_applies_emulation(self, session_factory, make_browser, make_tab):
        tab = make_tab("search-tab")
        session = session_factory(make_browser(tab))

        page = await session.new_page()

        assert page.tab is tab
        assert page.session is session
        assert session.pages == [page]
        assert tab.sent[:4] == [
            "set_device_metrics_override",
            "set_timezone_override",
            "set_locale_override",
            "set_extra_http_headers",
        ]

    @pytest.mark.asyncio
    async def test_new_page_without_browser(self, fast_settings):
        with pytest.raises(AttachFailure):
            await BrowserSession(fast_settings).new_page()

    @pytest.mark.asyncio
    async def test_attach_finds_tab_after_target_refresh(self, session_factory, make_browser, make_tab):
        browser = make_browser(make_tab("search-tab"))
        child = make_tab("child-1")
        session = session_factory(browser)

        async def update_targets():
            browser.update_calls += 1
            browser.targets.append(child)

        browser.update_targets = update_targets

        page = await session.attach("child-1", timeout=1)

        assert page.tab is child
        assert browser.update_calls == 1

    @pytest.mark.asyncio
    async def test_attach_skips_non_tab_targets(self, session_factory, make_browser, make_tab):
        worker = SimpleNamespace(target=SimpleNamespace(target_id="sw-1", type_="service_worker"))
        browser = make_browser(make_tab("search-tab"))
        browser.targets.append(worker)
        session = session_factory(browser)

        with pytest.raises(AttachFailure):
            await session.attach("sw-1", timeout=0.1)

    @pytest.mark.asyncio
    async def test_failed_attach_closes_the_tab(self, session_factory, make_browser, make_tab):
        child = make_tab("child-1")

        async def crashing_send(cmd):
            raise RuntimeError("Target crashed")

        child.send = crashing_send
        session = session_factory(make_browser(make_tab("search-tab"), child))

        with pytest.raises(AttachFailure, match="Target crashed"):
            await session.attach("child-1", timeout=0.1)

        assert child.closed is True
        assert session.pages == []

    @pytest.mark.asyncio
    async def test_detached_pages_are_forgotten(self, session_factory, make_browser, make_tab):
        child = make_tab("child-1")
        session = session_factory(make_browser(make_tab("search-tab"), child))
        search = await session.new_page()
        page = await session.attach("child-1", timeout=0.1)
        assert session.pages == [search, page]

        await page.detach()

        assert session.pages == [search]
        assert child.closed is True

    def test_known_target_ids(self, session_factory, make_browser, make_tab):
        session = session_factory(make_browser(make_tab("a"), make_tab("b")))

        assert session.known_target_ids() == ["a", "b"]


def test_browser_args_carry_user_agent(fast_settings):
    args = fast_settings.browser_args

    assert "--disable-blink-features=AutomationControlled" in args
    assert f"--user-agent={fast_settings.user_agent}" in args
    assert not any(arg.startswith("--lang") for arg in args)
