"""creatorscope CLI - Main entry point."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .browser.session import BrowserSession
from .capture.merge import merge_captures
from .capture.models import PROFILE_SECTIONS, CapturedResponse, CreatorCardResponse
from .config import CrawlerSettings
from .crawler import BatchSummary, CreatorCrawler, JsonLinesSink, JsonSubjectSource, SubjectStatus
from .errors import LaunchFailure

app = typer.Typer(
    name="creatorscope",
    help="creatorscope: capture creator profiles from the creator marketplace dashboard",
    no_args_is_help=True,
)
console = Console()

_STATUS_STYLES = {
    SubjectStatus.FULL: "green",
    SubjectStatus.PARTIAL: "yellow",
    SubjectStatus.EMPTY: "dim",
    SubjectStatus.NO_MATCH: "magenta",
    SubjectStatus.ERROR: "red",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _output_result(result: dict[str, Any]) -> None:
    console.print_json(json.dumps(result, default=str))


def _print_summary(summary: BatchSummary) -> None:
    table = Table(title=f"Creators ({summary.processed})")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Captures", justify="right")
    table.add_column("Detail")

    for outcome in summary.outcomes:
        style = _STATUS_STYLES.get(outcome.status, "white")
        if outcome.error:
            detail = outcome.error
        elif outcome.status is SubjectStatus.NO_MATCH:
            detail = f"found {outcome.found_name!r}" if outcome.found_name else "no results"
        elif outcome.profile is not None and not outcome.is_full:
            detail = "missing: " + ", ".join(outcome.profile.missing_sections())
        else:
            detail = ""
        table.add_row(
            outcome.subject.id,
            outcome.subject.name,
            f"[{style}]{outcome.status.value}[/{style}]",
            str(outcome.captures),
            detail,
        )

    console.print(table)
    counts = summary.counts()
    console.print(
        f"processed={counts['processed']} full={counts['full']} partial={counts['partial']} "
        f"empty={counts['empty']} no_match={counts['no_match']} error={counts['error']}"
    )


@app.command("crawl")
def crawl(
    subjects_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help='JSON list of subjects: [{"id": "...", "username": "..."}]',
    ),
    profile_dir: Optional[Path] = typer.Option(
        None,
        "--profile-dir", "-p",
        help="Chrome user data dir holding the logged-in session",
    ),
    headless: Optional[bool] = typer.Option(
        None,
        "--headless/--headed",
        help="Run Chrome without a window",
    ),
    url_pattern: Optional[str] = typer.Option(
        None,
        "--url-pattern",
        help="Substring selecting the API responses to capture",
    ),
    subject_timeout: Optional[float] = typer.Option(
        None,
        "--subject-timeout",
        help="Seconds allowed per creator",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Append captured profiles to this JSON-lines file",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Search each creator, open their detail tab and capture the profile API calls."""
    _configure_logging(verbose)

    subjects = list(JsonSubjectSource(subjects_file).iter_subjects())
    if not subjects:
        console.print("[yellow]No subjects to crawl[/yellow]")
        raise typer.Exit(0)

    overrides = {
        "profile_dir": profile_dir,
        "headless": headless,
        "url_pattern": url_pattern,
        "subject_timeout": subject_timeout,
    }
    settings = CrawlerSettings(**{k: v for k, v in overrides.items() if v is not None})
    sink = JsonLinesSink(output) if output else None

    if not json_output:
        console.print(
            Panel(
                f"[bold cyan]Crawling {len(subjects)} creator(s)[/bold cyan]\n\n"
                f"Profile: {settings.profile_dir}\n"
                f"Capture pattern: {settings.url_pattern}\n"
                f"Per-creator timeout: {settings.subject_timeout:.0f}s",
                title="creatorscope",
            )
        )

    async def _crawl() -> BatchSummary:
        async with BrowserSession(settings) as session:
            crawler = CreatorCrawler(session, sink=sink)
            return await crawler.run_batch(subjects)

    try:
        summary = asyncio.run(_crawl())
    except LaunchFailure as e:
        console.print(f"[red]Browser launch failed: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Crawl interrupted[/yellow]")
        raise typer.Exit(130)

    if json_output:
        _output_result(summary.to_dict())
    else:
        _print_summary(summary)


@app.command("merge")
def merge(
    captures_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="JSON list of saved creator-card API response bodies, in arrival order",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Merge saved API responses offline and report which sections are filled."""
    try:
        bodies = json.loads(captures_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(bodies, list):
        console.print("[red]Expected a JSON list of response bodies[/red]")
        raise typer.Exit(1)

    captures = []
    for index, body in enumerate(bodies):
        try:
            payload = CreatorCardResponse.model_validate(body)
        except ValidationError as e:
            console.print(f"[yellow]Skipping response {index}: {e.error_count()} validation error(s)[/yellow]")
            continue
        captures.append(CapturedResponse(url=f"{captures_file.name}#{index}", status=200, payload=payload))

    profile, is_full = merge_captures(captures)

    if json_output:
        _output_result({
            "is_full": is_full,
            "missing_sections": profile.missing_sections(),
            "profile": profile.model_dump(by_alias=True, exclude_none=True),
        })
        return

    table = Table(title=f"Merged profile ({len(captures)} responses)")
    table.add_column("Section")
    table.add_column("Items", justify="right")
    for name in PROFILE_SECTIONS:
        items = getattr(profile, name)
        table.add_row(name, str(len(items)) if items else "[dim]0[/dim]")
    console.print(table)
    console.print("[green]Full profile[/green]" if is_full else "[yellow]Partial profile[/yellow]")


if __name__ == "__main__":
    app()
