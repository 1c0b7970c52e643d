"""Browser process lifecycle on top of nodriver."""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path

import nodriver as uc

from ..config import CrawlerSettings
from ..errors import AttachFailure, LaunchFailure
from .page import PageContext, discard_handler

logger = logging.getLogger(__name__)

ATTACH_POLL_INTERVAL = 0.25


class BrowserSession:
    """One remote-controlled Chrome process with a persistent profile.

    Usage:
        async with BrowserSession(settings) as session:
            page = await session.new_page()
            await page.navigate("https://example.com/")
    """

    def __init__(self, settings: CrawlerSettings | None = None):
        self.settings = settings or CrawlerSettings()
        self.profile_dir = Path(self.settings.profile_dir)
        self.browser = None
        self.pages: list[PageContext] = []

    @classmethod
    async def launch(cls, settings: CrawlerSettings | None = None) -> BrowserSession:
        session = cls(settings)
        await session.start()
        return session

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    @property
    def started(self) -> bool:
        return self.browser is not None

    def _build_config(self) -> uc.Config:
        config = uc.Config()
        config.sandbox = False  # Adds --no-sandbox when False.
        config.user_data_dir = str(self.profile_dir.resolve())
        config.headless = self.settings.headless
        config.lang = self.settings.locale
        for arg in self.settings.browser_args:
            config.add_argument(arg)
        return config

    async def start(self) -> BrowserSession:
        """Launch Chrome. Failures raise LaunchFailure and are not retried here."""
        if self.browser is not None:
            return self

        self.profile_dir.mkdir(parents=True, exist_ok=True)
        try:
            config = self._build_config()
            self.browser = await uc.start(config=config)
        except Exception as exc:
            raise LaunchFailure(f"Failed to start browser with profile {self.profile_dir}: {exc}") from exc

        logger.info("Browser started with profile: %s", self.profile_dir)
        return self

    def _require_browser(self):
        if self.browser is None:
            raise AttachFailure("Browser session is not started")
        return self.browser

    async def _wrap_tab(self, tab) -> PageContext:
        page = PageContext(tab, self, action_timeout=self.settings.action_timeout)
        await page.apply_emulation(
            width=self.settings.viewport_width,
            height=self.settings.viewport_height,
            timezone=self.settings.timezone,
            locale=self.settings.locale,
            accept_language=self.settings.accept_language,
        )
        self.pages.append(page)
        return page

    async def new_page(self, url: str = "about:blank", *, new_tab: bool = False) -> PageContext:
        """Open (or reuse) a tab and return it with emulation applied."""
        browser = self._require_browser()
        try:
            tab = await browser.get(url, new_tab=new_tab)
            return await self._wrap_tab(tab)
        except Exception as exc:
            raise AttachFailure(f"Failed to open page {url}: {exc}") from exc

    def _find_tab(self, target_id: str):
        for tab in getattr(self.browser, "targets", None) or []:
            target = getattr(tab, "target", None)
            if target is not None and str(getattr(target, "target_id", "")) == str(target_id):
                # Service workers and iframes show up here too; only tabs can be driven.
                if hasattr(tab, "query_selector"):
                    return tab
        return None

    def known_target_ids(self) -> list[str]:
        ids = []
        for tab in getattr(self.browser, "targets", None) or []:
            target_id = getattr(getattr(tab, "target", None), "target_id", None)
            if target_id:
                ids.append(str(target_id))
        return ids

    async def attach(self, target_id: str, *, timeout: float | None = None) -> PageContext:
        """Bind a PageContext to an existing target of this browser."""
        browser = self._require_browser()
        timeout = self.settings.tab_spawn_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        tab = self._find_tab(target_id)
        while tab is None:
            if loop.time() >= deadline:
                raise AttachFailure(f"Target {target_id} never became attachable")
            try:
                await browser.update_targets()
            except Exception as exc:
                raise AttachFailure(f"Failed to list targets: {exc}") from exc
            tab = self._find_tab(target_id)
            if tab is None:
                await asyncio.sleep(ATTACH_POLL_INTERVAL)

        try:
            page = await self._wrap_tab(tab)
        except asyncio.CancelledError:
            await self._discard_tab(tab)
            raise
        except Exception as exc:
            await self._discard_tab(tab)
            raise AttachFailure(f"Failed to attach to target {target_id}: {exc}") from exc
        logger.info("Attached to target %s", target_id)
        return page

    async def _discard_tab(self, tab) -> None:
        """Close a tab that could not be attached."""
        try:
            await tab.close()
        except Exception as exc:
            logger.warning("Failed to close unattached tab: %s", exc)

    def forget(self, page: PageContext) -> None:
        """Stop tracking a page whose tab was closed."""
        if page in self.pages:
            self.pages.remove(page)

    def add_target_handler(self, event_type: type, handler) -> None:
        self._require_browser().connection.add_handler(event_type, handler)

    def remove_target_handler(self, event_type: type, handler) -> None:
        if self.browser is None:
            return
        discard_handler(self.browser.connection, event_type, handler)

    async def close(self) -> None:
        """Stop the browser. Safe after a failed start and safe to call twice."""
        browser, self.browser = self.browser, None
        self.pages.clear()
        if browser is None:
            return
        try:
            # Browser.stop() is sync in some nodriver releases and async in others.
            result = browser.stop()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("Error while stopping browser", exc_info=True)
        else:
            logger.info("Browser stopped")
