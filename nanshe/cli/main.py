"""
Typer CLI for the nanshe learning client.

Commands:
    nanshe capsule DOMAIN AREA CAPSULE_ID   - Show a capsule's levels and lessons
    nanshe atoms MOLECULE_ID                - List the atoms of a lesson
    nanshe journal                          - List journal entries
    nanshe journal --add "..."              - Write a journal entry
    nanshe srs                              - Run an interactive review session
    nanshe version                          - Show version information

Usage:
    nanshe --log-level DEBUG capsule programming python 42
    nanshe srs --summary
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from config import get_settings
from nanshe import __version__
from nanshe.capsules.api import CapsulesApi
from nanshe.capsules.models import AtomsResponse, Capsule
from nanshe.core.cache import QueryCache
from nanshe.core.events import ActivityBeacon
from nanshe.core.http import ApiClient, ApiError
from nanshe.core.logs import configure_logging
from nanshe.journal.api import JournalApi
from nanshe.journal.models import JournalList
from nanshe.srs.api import RATINGS, SrsApi
from nanshe.srs.session import ReviewState, SrsReviewFlow

T = TypeVar("T")

BEACON_GRACE_SECONDS = 2.0

app = typer.Typer(
    help="nanshe: learning capsules, journal and spaced-repetition reviews",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLES = {
    "completed": "green",
    "in_progress": "yellow",
    "failed": "red",
    "not_started": "dim",
}


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """nanshe learning client."""
    configure_logging(level=log_level.upper() if log_level else None, log_file=log_file)


def _run(action: Callable[[ApiClient], Awaitable[T]]) -> T:
    """Run an async action with a configured client, turning API errors into exit code 1."""

    async def runner() -> T:
        async with ApiClient.from_settings() as client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except ApiError as e:
        logger.debug(f"API error: status={e.status_code} detail={e.detail}")
        rprint(f"[red]✗[/red] {e.message}")
        raise typer.Exit(code=1)


def _status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


# ========================================
# Capsules
# ========================================


def _render_capsule(capsule: Capsule) -> None:
    header = (
        f"[bold]{capsule.title}[/bold]  ({capsule.domain}/{capsule.area})\n"
        f"XP {capsule.xp_current:g}/{capsule.xp_target:g}  "
        f"{capsule.progress_percentage:.0f}%  {_status(capsule.progress_status)}"
    )
    if capsule.is_locked:
        header += "  [red]locked[/red]"
    console.print(Panel(header, title=f"Capsule {capsule.id}"))

    table = Table(show_header=True)
    table.add_column("Level", style="cyan")
    table.add_column("Lesson")
    table.add_column("Molecule ID", style="dim")
    table.add_column("Atoms", justify="right")
    table.add_column("Status")

    for granule in capsule.granules:
        for molecule in granule.molecules:
            title = molecule.title + (" [red](locked)[/red]" if molecule.is_locked else "")
            table.add_row(
                granule.title or f"#{granule.order:g}",
                title,
                str(molecule.id),
                str(molecule.atom_count),
                _status(molecule.progress_status),
            )
    console.print(table)


@app.command("capsule")
def capsule_command(
    domain: str = typer.Argument(..., help="Capsule domain slug"),
    area: str = typer.Argument(..., help="Capsule area slug"),
    capsule_id: str = typer.Argument(..., help="Capsule id"),
):
    """Show a capsule's levels and lessons."""
    capsule = _run(lambda client: CapsulesApi(client).fetch_capsule_detail(domain, area, capsule_id))
    _render_capsule(capsule)


@app.command("atoms")
def atoms_command(molecule_id: str = typer.Argument(..., help="Molecule id")):
    """List the atoms of a lesson."""
    response: AtomsResponse = _run(lambda client: CapsulesApi(client).fetch_molecule_atoms(molecule_id))

    if response.is_pending:
        rprint("[yellow]⏳[/yellow] This lesson is still being generated, try again shortly.")
        return

    table = Table(title=f"Molecule {molecule_id}", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("XP", justify="right")
    table.add_column("Status")
    for atom in response.atoms:
        flags = " [magenta]bonus[/magenta]" if atom.is_bonus else ""
        flags += " [red]locked[/red]" if atom.is_locked else ""
        table.add_row(
            f"{atom.order:g}",
            atom.content_type,
            (atom.title or str(atom.id)) + flags,
            f"{atom.reward_xp:g}",
            _status(atom.progress_status),
        )
    console.print(table)


# ========================================
# Journal
# ========================================


@app.command("journal")
def journal_command(
    add: str | None = typer.Option(None, "--add", help="Content of a new entry"),
    title: str | None = typer.Option(None, "--title", help="Title of the new entry"),
    capsule_id: str | None = typer.Option(None, "--capsule", help="Attach the new entry to a capsule"),
):
    """List journal entries, or write one with --add."""
    if add:
        payload: dict[str, Any] = {"content": add, "title": title, "capsule_id": capsule_id}
        payload = {key: value for key, value in payload.items() if value is not None}
        entry = _run(lambda client: JournalApi(client).create_entry(payload))
        rprint(f"[green]✓[/green] Saved entry {entry.id if entry else ''}")
        return

    journal: JournalList = _run(lambda client: JournalApi(client).fetch_entries())
    if not journal.items:
        rprint("[dim]The journal is empty.[/dim]")
        return

    table = Table(title=f"Journal ({journal.total} entries)", show_header=True)
    table.add_column("Date", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Summary")
    table.add_column("Tags", style="magenta")
    for entry in journal.items:
        table.add_row(
            (entry.created_at or "")[:10],
            ("📌 " if entry.is_pinned else "") + entry.title,
            entry.summary,
            ", ".join(entry.tags),
        )
    console.print(table)


# ========================================
# SRS
# ========================================


async def _review_loop(client: ApiClient) -> int:
    settings = get_settings()
    flow = SrsReviewFlow(SrsApi(client, QueryCache()))
    beacon = ActivityBeacon(client, settings.activity_end_path)
    reviewed = 0

    await flow.start()
    while flow.state not in (ReviewState.COMPLETED, ReviewState.ERROR):
        item = flow.item
        console.print(Panel(str(item.prompt), title=f"Card {item.id}  ({flow.remaining:g} left)"))
        if item.hint:
            rprint(f"[dim]Hint: {item.hint}[/dim]")
        Prompt.ask("Press Enter to reveal", default="", show_default=False)
        flow.reveal()
        console.print(Panel(str(item.answer), title="Answer", border_style="green"))

        rating = Prompt.ask("Rating", choices=list(RATINGS), default="good")
        await flow.rate(rating)
        if flow.error:
            rprint(f"[red]✗[/red] {flow.error}")
            if Prompt.ask("Retry?", choices=["y", "n"], default="y") == "n":
                break
            continue
        reviewed += 1

    if flow.state == ReviewState.ERROR:
        rprint(f"[red]✗[/red] Could not start a session: {flow.error}")
    task = beacon.send({"activity": "srs_review", "session_id": flow.session_id, "reviewed": reviewed})
    if task is not None:
        # Short grace period before the client closes; the beacon may still be lost.
        await asyncio.wait({task}, timeout=BEACON_GRACE_SECONDS)
    return reviewed


@app.command("srs")
def srs_command(summary: bool = typer.Option(False, "--summary", help="Only show the review summary")):
    """Run an interactive spaced-repetition review session."""
    if summary:
        stats = _run(lambda client: SrsApi(client).fetch_summary())
        table = Table(title="Reviews", show_header=True)
        table.add_column("Due", justify="right", style="yellow")
        table.add_column("Overdue", justify="right", style="red")
        table.add_column("New", justify="right", style="cyan")
        table.add_column("Upcoming", justify="right")
        table.add_column("Total", justify="right", style="bold")
        table.add_row(
            f"{stats.due_count:g}",
            f"{stats.overdue_count:g}",
            f"{stats.new_count:g}",
            f"{stats.upcoming_count:g}",
            f"{stats.total_count:g}",
        )
        console.print(table)
        if stats.next_review_at:
            rprint(f"Next review: {stats.next_review_at}")
        return

    reviewed = _run(_review_loop)
    rprint(f"\n[bold green]✓ Session over[/bold green] ({reviewed} cards reviewed)")


@app.command("version")
def version_command():
    """Show version information."""
    rprint(f"[bold]nanshe[/bold] v{__version__}")
    rprint(f"  API: {get_settings().api_base_url}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
