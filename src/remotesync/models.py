"""
Pydantic models for remotesync configuration, verification results and
sync outcomes.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncConfig(BaseModel):
    """Settings for one game directory.

    Accepts both snake_case and the camelCase keys used by older
    ``remote_sync`` config files (``modList``, ``keyRingPath`` ...).
    Relative paths resolve against the game directory.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mod_list: Optional[str] = None
    mod_dir: str = "synced_mods"
    local_mod_list: str = "mod_list.json"
    key_ring_path: str = "pub_key.asc"
    key_servers: list[str] = Field(default_factory=list)
    key_ids: list[str] = Field(default_factory=list)
    timeout: int = Field(default=15000, gt=0)  # milliseconds
    prefer_local_cache: bool = False
    resolve_srv: bool = True
    max_workers: int = Field(default=8, ge=1)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0


class VerificationOutcome(str, Enum):
    """Result of checking one artifact against its detached signature.

    Only VALID admits an artifact.
    """

    VALID = "valid"
    SIGNATURE_INVALID = "signature_invalid"
    KEY_NOT_FOUND = "key_not_found"  # also unsupported key/hash algorithm
    KEY_REVOKED = "key_revoked"
    KEY_EXPIRED = "key_expired"
    IO_FAILURE = "io_failure"


class SyncPhase(str, Enum):
    """Where the sync pipeline currently is."""

    IDLE = "idle"
    MANIFEST_FETCHING = "manifest_fetching"
    MANIFEST_PARSED = "manifest_parsed"
    ARTIFACTS_IN_FLIGHT = "artifacts_in_flight"
    SETTLED = "settled"


class EntryReport(BaseModel):
    """What happened to one manifest entry."""

    name: str
    path: Path
    outcome: Optional[VerificationOutcome] = None
    fetch_error: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.outcome is VerificationOutcome.VALID


class SyncOutcome(BaseModel):
    """Terminal value of one sync cycle.

    ``manifest_failed`` replaces a process-wide "sync incomplete" flag:
    the host reads it from here and raises its own warning.
    """

    admitted: list[Path] = Field(default_factory=list)
    entries: list[EntryReport] = Field(default_factory=list)
    manifest_failed: bool = False
    manifest_stale: bool = False
    error: Optional[str] = None

    @property
    def incomplete(self) -> bool:
        return self.manifest_failed or self.error is not None
