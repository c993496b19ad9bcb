"""Shared helpers for the CLI command modules."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from ..config import load_config
from ..errors import RemoteSyncError
from ..host import GAME_DIR, PROGRESS_MESSAGE, HostEnvironment
from ..keyserver import KeyServerClient, detect_srv_resolver
from ..keystore import TrustStore
from ..locator import RemoteSyncLocator

console = Console()

game_dir_option = click.option(
    "--game-dir",
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
    help="Game directory holding remote_sync config, key ring and caches.",
)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def open_locator(game_dir: Path) -> RemoteSyncLocator:
    """Build the locator for ``game_dir`` or exit with a readable error."""
    host = HostEnvironment({
        GAME_DIR: game_dir.expanduser(),
        PROGRESS_MESSAGE: lambda message: console.print(f"  [dim]{message}[/]"),
    })
    try:
        return RemoteSyncLocator(host)
    except (OSError, RemoteSyncError) as exc:
        console.print(f"[bold red]Cannot start RemoteSync:[/] {exc}")
        sys.exit(1)


def load_trust_store(game_dir: Path) -> TrustStore:
    """Load config and key ring for ``game_dir`` without starting a sync."""
    game_dir = game_dir.expanduser()
    try:
        config = load_config(game_dir)
        client = KeyServerClient(
            timeout=config.timeout_seconds,
            srv_resolver=detect_srv_resolver(config.resolve_srv),
        )
        return TrustStore.load(
            game_dir / config.key_ring_path, config.key_servers, config.key_ids, client=client,
        )
    except (OSError, RemoteSyncError) as exc:
        console.print(f"[bold red]Cannot load key ring:[/] {exc}")
        sys.exit(1)
