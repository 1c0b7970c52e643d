"""Ordered page actions.

A sequence is a list of steps run one after another against one tab. The
first step that raises stops the sequence with a StepFailure carrying its
index; nothing is rolled back and nothing is retried.

Usage:
    result = await run_steps(page, [
        Navigate("https://example.com/"),
        WaitVisible("input[name=q]"),
        TypeText("input[name=q]", "alice"),
        Click("button[type=submit]"),
        ReadText(".result .name", key="name"),
    ])
    print(result.values["name"])
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..errors import StepFailure
from .page import PageContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """Base class for a single action in a sequence."""

    description: str = field(default="", kw_only=True, compare=False)

    @property
    def label(self) -> str:
        return self.description or repr(self)

    def budget(self, timeout: float) -> float:
        """Upper bound on how long this step may run."""
        return timeout

    async def execute(self, page: PageContext, timeout: float) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Navigate(Step):
    url: str

    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.navigate(self.url)


@dataclass(frozen=True)
class WaitVisible(Step):
    selector: str

    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.wait_visible(self.selector, timeout)


@dataclass(frozen=True)
class Click(Step):
    selector: str

    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.click(self.selector)


@dataclass(frozen=True)
class TypeText(Step):
    selector: str
    text: str

    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.type_text(self.selector, self.text)


@dataclass(frozen=True)
class ClearField(Step):
    selector: str

    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.clear_field(self.selector)


@dataclass(frozen=True)
class ReadText(Step):
    selector: str
    key: str = "text"

    async def execute(self, page: PageContext, timeout: float) -> str:
        return await page.read_text(self.selector)


@dataclass(frozen=True)
class Evaluate(Step):
    expression: str
    key: str = "result"

    async def execute(self, page: PageContext, timeout: float) -> Any:
        return await page.evaluate(self.expression)


@dataclass(frozen=True)
class Sleep(Step):
    """Fixed delay. Only for places where the page exposes nothing to wait on."""

    seconds: float

    def budget(self, timeout: float) -> float:
        return self.seconds + timeout

    async def execute(self, page: PageContext, timeout: float) -> None:
        await asyncio.sleep(self.seconds)


@dataclass(frozen=True)
class Reload(Step):
    async def execute(self, page: PageContext, timeout: float) -> None:
        await page.reload()


@dataclass
class SequenceResult:
    """Values produced by ReadText/Evaluate steps, keyed by step key."""

    values: dict[str, Any] = field(default_factory=dict)
    steps_completed: int = 0


async def run_steps(
    page: PageContext,
    steps: Sequence[Step],
    timeout: float | None = None,
) -> SequenceResult:
    """Run ``steps`` in order; raise StepFailure at the first one that fails.

    ``timeout`` bounds each step (defaults to the page's action timeout).
    """
    timeout = page.action_timeout if timeout is None else timeout
    result = SequenceResult()

    for index, step in enumerate(steps):
        logger.debug("Step %d: %s", index, step.label)
        try:
            value = await asyncio.wait_for(step.execute(page, timeout), timeout=step.budget(timeout))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise StepFailure(index, step, exc) from exc

        key = getattr(step, "key", None)
        if key:
            result.values[key] = value
        result.steps_completed += 1

    return result


def names_match(expected: str, found: str | None) -> bool:
    """Compare a requested display name with the one the page shows.

    Whitespace around either side is ignored; case is not.
    """
    if not isinstance(found, str):
        return False
    return found.strip() == expected.strip()
