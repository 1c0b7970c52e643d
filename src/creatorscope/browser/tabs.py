"""Resolve which new tab a click opened.

The new tab's target id is only known once Chrome emits
``Target.targetCreated``, which can race the click itself, so the listener
has to be installed before the click is issued:

    async with TabSpawnCorrelator(session) as spawn:
        await run_steps(page, [Click(".creator-name")])
        child = await spawn.wait_for_page()

Only the first new ``page`` target is kept. Any further page targets created
while listening (pop-ups, redirect tabs) do not fit the one-slot queue; they
are recorded in ``dropped`` and logged, never attached.
"""

from __future__ import annotations

import asyncio
import logging

import nodriver.cdp.target as target

from ..errors import NoNewTabDetected
from .page import PageContext
from .session import BrowserSession

logger = logging.getLogger(__name__)


class TabSpawnCorrelator:
    def __init__(self, session: BrowserSession, *, timeout: float | None = None):
        self.session = session
        self.timeout = session.settings.tab_spawn_timeout if timeout is None else timeout
        self.dropped: list[str] = []
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._known: set[str] = set()
        self._listening = False

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *args):
        self.stop()

    def start(self) -> None:
        if self._listening:
            return
        self._known = set(self.session.known_target_ids())
        self.session.add_target_handler(target.TargetCreated, self._on_target_created)
        self._listening = True

    def stop(self) -> None:
        if not self._listening:
            return
        self.session.remove_target_handler(target.TargetCreated, self._on_target_created)
        self._listening = False

    def _on_target_created(self, event: target.TargetCreated) -> None:
        info = event.target_info
        if getattr(info, "type_", None) != "page":
            return
        target_id = str(info.target_id)
        if target_id in self._known:
            return
        self._known.add(target_id)
        try:
            self._queue.put_nowait(target_id)
        except asyncio.QueueFull:
            self.dropped.append(target_id)
            logger.debug("Ignoring extra page target %s (first new tab already chosen)", target_id)

    async def wait_for_target(self) -> str:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise NoNewTabDetected(f"No new tab opened within {self.timeout:.1f}s") from exc

    async def wait_for_page(self) -> PageContext:
        """Wait for the spawned tab and attach to it in the same session."""
        target_id = await self.wait_for_target()
        logger.info("Captured new target ID: %s", target_id)
        return await self.session.attach(target_id)
