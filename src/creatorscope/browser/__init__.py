"""Browser session, tabs and scripted page actions (nodriver)."""

from .page import PageContext
from .sequencer import (
    Click,
    ClearField,
    Evaluate,
    Navigate,
    ReadText,
    Reload,
    SequenceResult,
    Sleep,
    Step,
    TypeText,
    WaitVisible,
    names_match,
    run_steps,
)
from .session import BrowserSession
from .tabs import TabSpawnCorrelator

__all__ = [
    "BrowserSession",
    "Click",
    "ClearField",
    "Evaluate",
    "Navigate",
    "PageContext",
    "ReadText",
    "Reload",
    "SequenceResult",
    "Sleep",
    "Step",
    "TabSpawnCorrelator",
    "TypeText",
    "WaitVisible",
    "names_match",
    "run_steps",
]
