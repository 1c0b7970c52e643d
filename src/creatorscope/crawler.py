"""Per-creator capture pipeline and the batch loop around it."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Protocol

from .browser.page import PageContext
from .browser.sequencer import (
    Click,
    ClearField,
    Navigate,
    ReadText,
    Reload,
    Sleep,
    Step,
    TypeText,
    WaitVisible,
    names_match,
    run_steps,
)
from .browser.session import BrowserSession
from .browser.tabs import TabSpawnCorrelator
from .capture.aggregator import ResponseCaptureAggregator
from .capture.merge import merge_captures
from .capture.models import CapturedResponse, CreatorProfile
from .config import CrawlerSettings
from .errors import CreatorScopeError, StepFailure, SubjectTimeout
from .records import profile_to_record

logger = logging.getLogger(__name__)

# Part of the subject deadline kept back for closing the creator tab.
TEARDOWN_RESERVE = 2.0


class SubjectStatus(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    EMPTY = "empty"
    NO_MATCH = "no_match"
    ERROR = "error"


@dataclass
class Subject:
    """A creator to look up: external id plus the display name searched for."""

    id: str
    name: str


@dataclass
class SubjectOutcome:
    subject: Subject
    status: SubjectStatus
    profile: CreatorProfile | None = None
    is_full: bool = False
    captures: int = 0
    found_name: str | None = None
    error: str | None = None

    def to_record(self) -> dict[str, Any] | None:
        if self.profile is None:
            return None
        return profile_to_record(
            self.profile,
            self.is_full,
            subject_id=self.subject.id,
            username=self.subject.name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.subject.id,
            "name": self.subject.name,
            "status": self.status.value,
            "is_full": self.is_full,
            "captures": self.captures,
            "found_name": self.found_name,
            "error": self.error,
            "missing_sections": self.profile.missing_sections() if self.profile else None,
        }


@dataclass
class BatchSummary:
    outcomes: list[SubjectOutcome] = field(default_factory=list)

    def count(self, status: SubjectStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def errors(self) -> int:
        return self.count(SubjectStatus.ERROR)

    def counts(self) -> dict[str, int]:
        counts = {"processed": self.processed}
        counts.update({status.value: self.count(status) for status in SubjectStatus})
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.counts(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


class SubjectSource(Protocol):
    def iter_subjects(self) -> Iterable[Subject]: ...


class ProfileSink(Protocol):
    async def save(self, outcome: SubjectOutcome) -> None: ...


class JsonLinesSink:
    """Append one persistence record per saved creator to a JSON-lines file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def save(self, outcome: SubjectOutcome) -> None:
        record = outcome.to_record()
        if record is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")


def load_subjects(path: str | Path) -> list[Subject]:
    """Read ``[{"id": ..., "username": ...}, ...]`` (``name`` also accepted)."""
    with open(path, encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path}: expected a JSON list of subjects")

    subjects = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        name = row.get("username") or row.get("name")
        if not isinstance(name, str) or not name.strip():
            logger.warning("Skipping subject without a name: %r", row)
            continue
        subjects.append(Subject(id=str(row.get("id", "")), name=name.strip()))
    return subjects


class JsonSubjectSource:
    """Subjects exported from the profile store as a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def iter_subjects(self) -> Iterable[Subject]:
        return iter(load_subjects(self.path))


class CreatorCrawler:
    """Search a creator, open their detail tab and capture its API responses.

    One subject runs to completion, creator tab closed, before the next
    begins. Only the browser launch is fatal; every other failure is turned
    into an ``error`` outcome for that subject.

    Usage:
        async with BrowserSession(settings) as session:
            crawler = CreatorCrawler(session)
            summary = await crawler.run_batch([Subject("1001", "fayemabini")])
    """

    def __init__(
        self,
        session: BrowserSession,
        settings: CrawlerSettings | None = None,
        *,
        sink: ProfileSink | None = None,
    ):
        self.session = session
        self.settings = settings or session.settings
        self.sink = sink
        self.page: PageContext | None = None
        self._search_ready = False

    # =========================================================================
    # Step sequences
    # =========================================================================

    def landing_steps(self) -> list[Step]:
        return [
            Navigate(self.settings.target_page_url, description="open creator search"),
            WaitVisible(self.settings.selectors.search_tab, description="wait for search page"),
        ]

    def search_steps(self, name: str) -> list[Step]:
        sel = self.settings.selectors
        delays = self.settings.delays
        return [
            WaitVisible(sel.search_tab),
            Click(sel.search_tab, description="open name search"),
            Sleep(delays.after_search_tab_click),
            WaitVisible(sel.search_input),
            Click(sel.search_input),
            ClearField(sel.search_input),
            TypeText(sel.search_input, name, description=f"type {name!r}"),
            Sleep(delays.after_type),
            Click(sel.search_button, description="submit search"),
            Sleep(delays.after_search),
            WaitVisible(sel.results_body, description="wait for results"),
        ]

    def tab_load_steps(self) -> list[Step]:
        delays = self.settings.delays
        return [
            WaitVisible("body"),
            Sleep(delays.tab_settle),
            # Calls made before the listener was attached are lost; reloading replays them.
            Reload(description="reload creator tab"),
            WaitVisible("body"),
            Sleep(delays.after_reload),
        ]

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def prepare(self) -> PageContext:
        """Open the search tab and land on the creator search page."""
        if self.page is None:
            self.page = await self.session.new_page()
        await run_steps(self.page, self.landing_steps())
        self._search_ready = True
        logger.info("Search page ready: %s", self.settings.target_page_url)
        return self.page

    async def _find_creator(self, subject: Subject) -> tuple[bool, str | None]:
        sel = self.settings.selectors
        await run_steps(self.page, self.search_steps(subject.name))
        logger.info("Search results visible for %s. Checking content...", subject.name)

        result = await run_steps(self.page, [ReadText(sel.results_body, key="results")])
        results_text = result.values.get("results") or ""
        if sel.no_results_text and sel.no_results_text in results_text:
            return False, None

        result = await run_steps(self.page, [ReadText(sel.creator_name, key="creator_name")])
        found = result.values.get("creator_name")
        return names_match(subject.name, found), found

    async def _capture_creator_tab(self, deadline: float) -> list[CapturedResponse]:
        loop = asyncio.get_running_loop()

        def remaining() -> float:
            return max(0.0, deadline - loop.time() - TEARDOWN_RESERVE)

        async with TabSpawnCorrelator(self.session) as spawn:
            await run_steps(
                self.page,
                [Click(self.settings.selectors.creator_name, description="open creator tab")],
            )
            child = await spawn.wait_for_page()

        capture = ResponseCaptureAggregator(child, self.settings.url_pattern)
        try:
            await capture.start()
            try:
                await asyncio.wait_for(run_steps(child, self.tab_load_steps()), timeout=remaining())
            except (StepFailure, asyncio.TimeoutError) as exc:
                logger.warning("Creator tab load did not finish cleanly: %s", exc)
            return await capture.drain(timeout=remaining())
        finally:
            await capture.close()

    async def _process(self, subject: Subject, deadline: float) -> SubjectOutcome:
        if not self._search_ready:
            await self.prepare()

        matched, found = await self._find_creator(subject)
        if not matched:
            logger.info(
                "No results found or name mismatch: expected %r, found %r",
                subject.name,
                found,
            )
            return SubjectOutcome(subject, SubjectStatus.NO_MATCH, found_name=found)
        logger.info("Found matching creator: %s. Proceeding to click.", found)

        captures = await self._capture_creator_tab(deadline)
        profile, is_full = merge_captures(captures)
        if is_full:
            status = SubjectStatus.FULL
        elif profile.is_empty:
            status = SubjectStatus.EMPTY
        else:
            status = SubjectStatus.PARTIAL
        return SubjectOutcome(
            subject,
            status,
            profile=profile,
            is_full=is_full,
            captures=len(captures),
            found_name=found,
        )

    async def process_subject(self, subject: Subject) -> SubjectOutcome:
        """Run the whole pipeline for one subject within ``subject_timeout``."""
        timeout = self.settings.subject_timeout
        logger.info("Processing subject: id=%s name=%s", subject.id, subject.name)
        deadline = asyncio.get_running_loop().time() + timeout
        try:
            return await asyncio.wait_for(self._process(subject, deadline), timeout=timeout)
        except asyncio.TimeoutError:
            self._search_ready = False
            error = SubjectTimeout(f"{subject.name} not processed within {timeout:.0f}s")
            logger.error("Error processing subject %s: %s", subject.name, error)
            return SubjectOutcome(subject, SubjectStatus.ERROR, error=str(error))
        except CreatorScopeError as exc:
            self._search_ready = False
            logger.error("Error processing subject %s: %s", subject.name, exc)
            return SubjectOutcome(subject, SubjectStatus.ERROR, error=str(exc))

    async def run_batch(self, subjects: Iterable[Subject]) -> BatchSummary:
        """Process subjects one by one; a failing subject never stops the batch."""
        summary = BatchSummary()
        for subject in subjects:
            try:
                outcome = await self.process_subject(subject)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._search_ready = False
                logger.exception("Unexpected error processing subject %s", subject.name)
                outcome = SubjectOutcome(subject, SubjectStatus.ERROR, error=str(exc))

            if self.sink is not None and outcome.status in (SubjectStatus.FULL, SubjectStatus.PARTIAL):
                try:
                    await self.sink.save(outcome)
                except Exception as exc:
                    logger.exception("Failed to save profile for %s", subject.name)
                    outcome.status = SubjectStatus.ERROR
                    outcome.error = f"save failed: {exc}"

            logger.info(
                "Processed %s: %s (%d captures)",
                subject.name,
                outcome.status.value,
                outcome.captures,
            )
            summary.outcomes.append(outcome)

        logger.info("Batch finished: %s", summary.counts())
        return summary
