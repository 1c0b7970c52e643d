"""Exception hierarchy for the crawler.

LaunchFailure is the only error that ends a whole run. Everything else is
scoped to one subject and is caught by the batch loop.
"""

from __future__ import annotations

from typing import Any


class CreatorScopeError(Exception):
    """Base error for creatorscope."""


class LaunchFailure(CreatorScopeError):
    """The browser could not be started or connected to."""


class AttachFailure(CreatorScopeError):
    """A tab could not be opened or attached to."""


class ElementNotFound(CreatorScopeError):
    """An element required by an interaction step is not on the page."""

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"Element not found: {selector}")


class StepFailure(CreatorScopeError):
    """A scripted step failed; the sequence stopped at ``index``."""

    def __init__(self, index: int, step: Any, cause: BaseException):
        self.index = index
        self.step = step
        self.cause = cause
        super().__init__(f"step {index} ({step!r}) failed: {cause!r}")


class NoNewTabDetected(CreatorScopeError):
    """A click expected to open a tab produced no page target in time."""


class SubjectTimeout(CreatorScopeError):
    """A subject was not processed within its deadline."""


class CaptureStateError(CreatorScopeError):
    """Aggregator method called in the wrong lifecycle state."""
