"""A single browser tab under automation."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import nodriver.cdp.emulation as emulation
import nodriver.cdp.network as network
import nodriver.cdp.page as page_cdp

from ..errors import ElementNotFound

if TYPE_CHECKING:
    from .session import BrowserSession

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.25

_VISIBLE_JS = """
(() => {
  const sel = %s;
  const el = %s
    ? document.evaluate(sel, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue
    : document.querySelector(sel);
  if (!el || !el.isConnected) return false;
  const style = window.getComputedStyle(el);
  if (style.display === 'none' || style.visibility === 'hidden') return false;
  const rect = el.getBoundingClientRect();
  return rect.width > 0 && rect.height > 0;
})()
"""


def is_xpath(selector: str) -> bool:
    return selector.lstrip().startswith(("/", "("))


def discard_handler(connection, event_type: type, handler) -> None:
    """Remove a CDP event handler previously registered with ``add_handler``."""
    handlers = getattr(connection, "handlers", None)
    if not handlers:
        return
    callbacks = handlers.get(event_type)
    if not callbacks:
        return
    if handler in callbacks:
        callbacks.remove(handler)
    if not callbacks:
        handlers.pop(event_type, None)


class PageContext:
    """One nodriver tab plus the helpers the sequencer needs.

    The session reference is not owning: closing the session invalidates the
    page, but detaching the page leaves the session running.
    """

    def __init__(
        self,
        tab,
        session: BrowserSession | None = None,
        *,
        action_timeout: float = 30.0,
    ):
        self.tab = tab
        self.session = session
        self.action_timeout = action_timeout
        self.detached = False

    def __repr__(self) -> str:
        return f"<PageContext target_id={self.target_id!r} detached={self.detached}>"

    @property
    def target_id(self) -> str | None:
        target = getattr(self.tab, "target", None)
        target_id = getattr(target, "target_id", None)
        return str(target_id) if target_id else None

    async def send(self, cmd) -> Any:
        return await self.tab.send(cmd)

    def add_handler(self, event_type: type, handler) -> None:
        self.tab.add_handler(event_type, handler)

    def remove_handler(self, event_type: type, handler) -> None:
        discard_handler(self.tab, event_type, handler)

    async def apply_emulation(
        self,
        *,
        width: int,
        height: int,
        timezone: str | None = None,
        locale: str | None = None,
        accept_language: str | None = None,
    ) -> None:
        """Make the tab look like a desktop browser in the configured region."""
        await self.send(
            emulation.set_device_metrics_override(
                width=width,
                height=height,
                device_scale_factor=1,
                mobile=False,
            )
        )
        if timezone:
            await self.send(emulation.set_timezone_override(timezone_id=timezone))
        if locale:
            await self.send(emulation.set_locale_override(locale=locale))
        if accept_language:
            await self.send(
                network.set_extra_http_headers(
                    headers=network.Headers({"Accept-Language": accept_language})
                )
            )

    async def navigate(self, url: str) -> None:
        """Start loading ``url``; does not wait for the load to finish."""
        logger.info("Navigating to %s", url)
        await self.send(page_cdp.navigate(url=url))

    async def reload(self) -> None:
        logger.info("Reloading %s", self.target_id)
        await self.send(page_cdp.reload())

    async def query(self, selector: str):
        """Return the first element matching ``selector`` or None, without waiting."""
        if is_xpath(selector):
            found = await self.tab.xpath(selector, timeout=0)
            return found[0] if found else None
        return await self.tab.query_selector(selector)

    async def require(self, selector: str):
        element = await self.query(selector)
        if element is None:
            raise ElementNotFound(selector)
        return element

    async def is_visible(self, selector: str) -> bool:
        value = await self.evaluate(_VISIBLE_JS % (json.dumps(selector), json.dumps(is_xpath(selector))))
        return value is True

    async def wait_visible(self, selector: str, timeout: float | None = None) -> None:
        """Poll until ``selector`` is rendered visible or ``timeout`` elapses."""
        timeout = self.action_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if await self.is_visible(selector):
                return
            if loop.time() >= deadline:
                raise asyncio.TimeoutError(f"{selector} not visible after {timeout:.1f}s")
            await asyncio.sleep(POLL_INTERVAL)

    async def click(self, selector: str) -> None:
        element = await self.require(selector)
        await element.click()

    async def type_text(self, selector: str, text: str) -> None:
        element = await self.require(selector)
        await element.send_keys(text)

    async def clear_field(self, selector: str) -> None:
        element = await self.require(selector)
        await element.clear_input()

    async def read_text(self, selector: str) -> str:
        """Rendered text of the element (``innerText``)."""
        element = await self.require(selector)
        value = await element.apply("(el) => el.innerText")
        if isinstance(value, str):
            return value
        return getattr(element, "text_all", "") or ""

    async def evaluate(self, expression: str) -> Any:
        value = await self.tab.evaluate(expression, return_by_value=True)
        return self._unwrap_eval_value(value)

    @staticmethod
    def _unwrap_eval_value(value: Any) -> Any:
        """Best-effort normalization of nodriver's evaluate return values.

        nodriver returns primitives as Python values, but represents:
        - Arrays as lists of {"type": ..., "value": ...} items
        - Objects as lists of [key, {"type": ..., "value": ...}] pairs
        """
        if isinstance(value, dict):
            if value.get("type") in {"null", "undefined"} and "value" not in value:
                return None
            if "type" in value and "value" in value and len(value) <= 4:
                return PageContext._unwrap_eval_value(value.get("value"))
            return {k: PageContext._unwrap_eval_value(v) for k, v in value.items()}

        if isinstance(value, list):
            if value and all(
                isinstance(item, (list, tuple))
                and len(item) == 2
                and isinstance(item[0], str)
                for item in value
            ):
                return {item[0]: PageContext._unwrap_eval_value(item[1]) for item in value}
            return [PageContext._unwrap_eval_value(item) for item in value]

        return value

    async def detach(self) -> None:
        """Close the tab's target. Safe to call twice."""
        if self.detached:
            return
        self.detached = True
        if self.session is not None:
            self.session.forget(self)
        await self.tab.close()
        logger.info("Detached tab %s", self.target_id)
