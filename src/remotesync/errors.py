"""Exception types raised across the remotesync package."""

from __future__ import annotations


class RemoteSyncError(Exception):
    """Base class for every error raised by remotesync."""


class ConfigError(RemoteSyncError):
    """The configuration file exists but cannot be read or validated."""


class FetchError(RemoteSyncError):
    """A remote resource could not be obtained and no local copy exists."""

    def __init__(self, message: str, source: str = "", destination: str = ""):
        super().__init__(message)
        self.source = source
        self.destination = destination


class NetworkFailure(FetchError):
    """Connect, DNS or timeout failure."""


class HttpStatusFailure(FetchError):
    """The remote answered with a 4xx or 5xx status."""

    def __init__(self, message: str, status: int, source: str = "", destination: str = ""):
        super().__init__(message, source=source, destination=destination)
        self.status = status


class ManifestError(RemoteSyncError):
    """The manifest is not a JSON array of well-formed entries."""


class PGPError(RemoteSyncError):
    """Base class for OpenPGP decoding problems."""


class ParseError(PGPError):
    """Malformed armor, packet framing or packet body."""


class UnsupportedAlgorithm(PGPError):
    """Valid structure, but an algorithm this verifier does not implement."""
