"""
Host adapter: wires config, trust store and orchestrator together.

The host constructs one ``RemoteSyncLocator`` at startup (which starts
the sync immediately), asks ``scan_candidates()`` when it needs the
admitted artifacts, and calls ``close()`` from its shutdown sequence.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import load_config
from .fetch import ConditionalFetcher
from .host import HostEnvironment
from .keyserver import KeyServerClient, detect_srv_resolver
from .keystore import TrustStore
from .models import SyncConfig, SyncOutcome
from .orchestrator import SyncOrchestrator

logger = logging.getLogger("remotesync.locator")


class RemoteSyncLocator:
    """Supplies verified, synchronized artifacts to the host loader.

    Args:
        host: Host environment (game directory, progress sink, directories).
        config: Settings; loaded from the game directory if omitted.
        fetcher: Conditional fetcher override.
        key_client: Key server client override.

    Raises:
        OSError: The local key ring file is missing or unreadable.
        PGPError: The local key ring file is malformed.
        ConfigError: The config file is invalid.
    """

    NAME = "Remote Synced"

    def __init__(
        self,
        host: HostEnvironment,
        config: Optional[SyncConfig] = None,
        fetcher: Optional[ConditionalFetcher] = None,
        key_client: Optional[KeyServerClient] = None,
    ):
        self.host = host
        game_dir = host.game_dir
        self.config = config or load_config(game_dir)
        self.key_ring_path = game_dir / self.config.key_ring_path

        if key_client is None:
            key_client = KeyServerClient(
                timeout=self.config.timeout_seconds,
                srv_resolver=detect_srv_resolver(self.config.resolve_srv),
            )
        self.trust_store = TrustStore.load(
            self.key_ring_path, self.config.key_servers, self.config.key_ids, client=key_client,
        )
        self.trust_store.debug_dump()

        self.orchestrator = SyncOrchestrator(
            self.config,
            self.trust_store,
            mod_dir=host.directory(self.config.mod_dir),
            manifest_cache=game_dir / self.config.local_mod_list,
            fetcher=fetcher,
            progress=host.progress,
            key_ring_path=self.key_ring_path,
        )

    def name(self) -> str:
        return self.NAME

    def scan_candidates(self) -> list[Path]:
        """Admitted artifact paths; blocks until the sync has settled."""
        return self.orchestrator.candidates()

    def outcome(self) -> SyncOutcome:
        return self.orchestrator.join()

    def is_valid(self, artifact: Path) -> bool:
        return self.orchestrator.is_valid(artifact)

    def close(self) -> None:
        self.orchestrator.close()

    def __enter__(self) -> RemoteSyncLocator:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
