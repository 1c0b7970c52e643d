"""Capture creator-card API responses from a tab via Chrome DevTools Protocol."""

from __future__ import annotations

import asyncio
import base64
import logging
from enum import Enum

import nodriver.cdp.network as network

from ..browser.page import PageContext
from ..errors import CaptureStateError
from .models import CapturedResponse, CreatorCardResponse

logger = logging.getLogger(__name__)

# How long cancelled fetches get to unwind once a drain deadline has passed.
CANCEL_GRACE = 1.0


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    DRAINING = "draining"
    CLOSED = "closed"


class ResponseCaptureAggregator:
    """Collect decoded responses whose URL contains ``url_pattern``.

    The ``Network.responseReceived`` handler runs inside nodriver's event
    listener, so it must not await anything: it only filters the URL and
    schedules a task that fetches and decodes the body. Those tasks append
    to one list under a lock. ``drain`` waits for them (bounded), and only
    then may the tab be closed.

    Usage:
        capture = ResponseCaptureAggregator(page, "MGetCreatorsCard")
        await capture.start()
        # ... tab loads / reloads ...
        captures = await capture.drain(timeout=30)
        await capture.close()
    """

    def __init__(self, page: PageContext, url_pattern: str):
        self.page = page
        self.url_pattern = url_pattern
        self.state = CaptureState.IDLE
        self.discarded = 0
        self.abandoned = 0
        self._captures: list[CapturedResponse] = []
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._sealed = False

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    @property
    def captures(self) -> tuple[CapturedResponse, ...]:
        return tuple(self._captures)

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def _require(self, *states: CaptureState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise CaptureStateError(f"capture is {self.state.value}, expected {allowed}")

    async def start(self) -> None:
        """Enable network events on the tab and install the response handler."""
        self._require(CaptureState.IDLE)
        self.page.add_handler(network.ResponseReceived, self._on_response)
        try:
            await self.page.send(network.enable())
        except Exception:
            self.page.remove_handler(network.ResponseReceived, self._on_response)
            raise
        self.state = CaptureState.LISTENING
        logger.info("Listening for %s on tab %s", self.url_pattern, self.page.target_id)

    def _matches(self, url: str) -> bool:
        return isinstance(url, str) and bool(url) and self.url_pattern in url

    def _on_response(self, event: network.ResponseReceived) -> None:
        """Schedule a body fetch for a matching response and return at once."""
        if self.state is not CaptureState.LISTENING:
            return
        response = event.response
        url = response.url
        if not self._matches(url):
            return

        status = int(response.status or 0)
        logger.info("[NEW TAB RESPONSE] %s (status %s): %s", url, status, event.request_id)
        task = asyncio.get_running_loop().create_task(
            self._capture(event.request_id, url, status),
            name=f"capture-{event.request_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_body(self, request_id) -> str | None:
        body_result = await self.page.send(network.get_response_body(request_id))
        if not body_result:
            return None

        # nodriver CDP wrappers have changed return types across versions:
        # - tuple[str, bool] (current): (body, base64Encoded)
        # - dict/object with {"body": ..., "base64Encoded": ...} (older)
        body: str | None = None
        base64_encoded = False
        if isinstance(body_result, tuple) and len(body_result) == 2:
            body = body_result[0] if isinstance(body_result[0], str) else None
            base64_encoded = bool(body_result[1])
        elif isinstance(body_result, dict):
            body = body_result.get("body")
            base64_encoded = bool(
                body_result.get("base64Encoded", body_result.get("base64_encoded", False))
            )
        else:
            body = getattr(body_result, "body", None)
            base64_encoded = bool(
                getattr(
                    body_result,
                    "base64_encoded",
                    getattr(body_result, "base64Encoded", False),
                )
            )

        if not isinstance(body, str):
            return None
        if base64_encoded:
            return base64.b64decode(body).decode("utf-8", errors="replace")
        return body

    async def _capture(self, request_id, url: str, status: int) -> None:
        try:
            body = await self._fetch_body(request_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Body can be gone already: evicted by the browser, or the tab detached.
            self.discarded += 1
            logger.warning("Error getting response body for %s: %s", url, exc)
            return

        if body is None:
            self.discarded += 1
            logger.warning("Empty response body for %s", url)
            return

        try:
            payload = CreatorCardResponse.model_validate_json(body)
        except ValueError as exc:
            self.discarded += 1
            logger.warning("Error decoding response for %s: %s", url, exc)
            return

        capture = CapturedResponse(
            url=url,
            status=status,
            request_id=str(request_id),
            body=body,
            payload=payload,
        )
        async with self._lock:
            if self._sealed:
                return
            self._captures.append(capture)
        logger.info("[NEW TAB RESPONSE] Captured and decoded %s (status %s)", url, status)

    async def drain(self, timeout: float | None) -> list[CapturedResponse]:
        """Stop listening and wait for in-flight fetches, at most ``timeout`` seconds.

        Fetches still running at the deadline are cancelled and their results
        dropped. Returns the captures gathered up to that point.
        """
        if self.state is CaptureState.LISTENING:
            self.page.remove_handler(network.ResponseReceived, self._on_response)
            self.state = CaptureState.DRAINING
        self._require(CaptureState.DRAINING)

        still_pending: set[asyncio.Task] = set()
        in_flight = {task for task in self._tasks if not task.done()}
        if in_flight:
            logger.info("Waiting for %d pending response fetches", len(in_flight))
            _, still_pending = await asyncio.wait(in_flight, timeout=timeout)

        async with self._lock:
            self._sealed = True
            snapshot = list(self._captures)

        if still_pending:
            self.abandoned += len(still_pending)
            logger.warning(
                "Drain deadline reached; abandoning %d pending response fetches",
                len(still_pending),
            )
            for task in still_pending:
                task.cancel()
            await asyncio.wait(still_pending, timeout=CANCEL_GRACE)

        return snapshot

    async def close(self) -> None:
        """Close the tab. Any fetch still in flight is abandoned first."""
        if self.state is CaptureState.CLOSED:
            return
        if self.state is CaptureState.IDLE:
            self.state = CaptureState.DRAINING
        if not self._sealed:
            await self.drain(timeout=0)

        self.state = CaptureState.CLOSED
        try:
            await self.page.detach()
        except Exception as exc:
            logger.warning("Failed to detach/close tab: %s", exc)
        logger.info("Tab closed. Total captured responses: %d", len(self._captures))
