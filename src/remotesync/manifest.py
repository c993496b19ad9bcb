"""The remotely published mod list: a JSON array of ``{name, file, sig}``."""

from __future__ import annotations

import json
import logging
from pathlib import PurePosixPath, PureWindowsPath

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import SIGNATURE_SUFFIX
from .errors import ManifestError

logger = logging.getLogger("remotesync.manifest")


class ManifestEntry(BaseModel):
    """One artifact to cache.

    Attributes:
        name: Cache file name. The signature is cached as ``<name>.sig``.
        artifact_location: URL of the artifact itself (``file`` in JSON).
        signature_location: URL of its detached signature (``sig`` in JSON).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    artifact_location: str = Field(alias="file")
    signature_location: str = Field(alias="sig")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if (
            not value
            or value in (".", "..")
            or PurePosixPath(value).name != value
            or PureWindowsPath(value).name != value
        ):
            raise ValueError(f"entry name must be a plain file name, got {value!r}")
        return value

    @property
    def signature_name(self) -> str:
        return self.name + SIGNATURE_SUFFIX


def parse_manifest(data: bytes) -> list[ManifestEntry]:
    """Decode manifest bytes into entries, in manifest order.

    Entries repeating an earlier name are dropped with a warning so that
    every cache path belongs to exactly one entry.

    Raises:
        ManifestError: Not UTF-8 JSON, not an array, or an invalid entry.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ManifestError(f"mod list is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ManifestError("mod list must be a JSON array")

    entries: list[ManifestEntry] = []
    seen: set[str] = set()
    for index, raw in enumerate(payload):
        try:
            entry = ManifestEntry.model_validate(raw)
        except ValidationError as exc:
            raise ManifestError(f"invalid mod list entry #{index}: {exc}") from exc
        if entry.name in seen:
            logger.warning("Duplicate mod list entry %s ignored", entry.name)
            continue
        seen.add(entry.name)
        entries.append(entry)
    return entries
