"""Trust store commands: keys, verify."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.table import Table

from ..models import VerificationOutcome
from ._common import console, game_dir_option, load_trust_store


def register_keys_commands(main: click.Group) -> None:
    """Register the keys and verify commands."""

    @main.command("keys")
    @game_dir_option
    def keys(game_dir):
        """List every public key in the merged key ring."""
        store = load_trust_store(game_dir)
        table = Table(title="Trusted keys")
        table.add_column("Key ID", style="cyan")
        table.add_column("Algorithm")
        table.add_column("Fingerprint", style="dim")
        table.add_column("Created")
        table.add_column("Expires")
        table.add_column("Status")
        for info in store.describe():
            status = "[bold red]REVOKED[/]" if info.revoked else "[green]active[/]"
            table.add_row(
                info.key_id if info.primary else f"  sub {info.key_id}",
                info.algorithm,
                info.fingerprint.upper(),
                info.created.date().isoformat(),
                info.expires.date().isoformat() if info.expires else "never",
                status,
            )
        console.print(table)

    @main.command("verify")
    @click.argument("artifact", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @game_dir_option
    def verify(artifact, game_dir):
        """Check one cached mod against its .sig file."""
        outcome = load_trust_store(game_dir).check_file(artifact)
        console.print(f"  {outcome.value.upper()} {artifact.name}")
        if outcome is not VerificationOutcome.VALID:
            sys.exit(1)
