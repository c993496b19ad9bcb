"""Sync command: run one cycle and report what was admitted."""

from __future__ import annotations

import click
from rich.panel import Panel
from rich.table import Table

from ..models import EntryReport, VerificationOutcome
from ..sentinel import report_incomplete
from ._common import console, game_dir_option, open_locator


def _entry_status(entry: EntryReport) -> str:
    if entry.fetch_error:
        return "[bold red]DOWNLOAD FAILED[/]"
    if entry.outcome is VerificationOutcome.VALID:
        return "[bold green]ADMITTED[/]"
    if entry.outcome is None:
        return "[dim]UNKNOWN[/]"
    return f"[bold yellow]{entry.outcome.value.upper()}[/]"


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command."""

    @main.command("sync")
    @game_dir_option
    def sync(game_dir):
        """Fetch the mod list, download mods, verify their signatures."""
        with open_locator(game_dir) as locator:
            outcome = locator.outcome()

            table = Table(title="Synced mods")
            table.add_column("Name", style="cyan")
            table.add_column("Status")
            table.add_column("Detail", style="dim")
            for entry in outcome.entries:
                table.add_row(entry.name, _entry_status(entry), entry.fetch_error or "")
            console.print(table)
            console.print(
                f"  [bold]{len(outcome.admitted)}[/] of {len(outcome.entries)} mod(s) admitted"
            )

            if outcome.manifest_stale and not outcome.manifest_failed:
                console.print("  [yellow]Using the locally cached mod list; mods may be outdated.[/]")
            report_incomplete(
                outcome,
                lambda key, message: console.print(
                    Panel(message, title=f"[bold yellow]{key}[/]", border_style="yellow")
                ),
            )
