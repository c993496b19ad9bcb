"""Fake remote hosts (on disk or in memory) for sync tests."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from pgp_factory import TestKey, detached_signature


def publish(remote_dir: Path, name: str, payload: bytes, key: TestKey) -> dict:
    """Write ``name`` and its detached signature into ``remote_dir``.

    Returns:
        dict: The mod list entry for it, with file:// URLs.
    """
    artifact = remote_dir / name
    artifact.write_bytes(payload)
    signature = remote_dir / f"{name}.sig"
    signature.write_bytes(detached_signature(key, payload))
    return {"name": name, "file": artifact.as_uri(), "sig": signature.as_uri()}


def write_mod_list(remote_dir: Path, entries: list[dict]) -> str:
    """Write a mod list into ``remote_dir`` and return its URL."""
    path = remote_dir / "mods.json"
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path.as_uri()


class RemoteResponse:
    """Streaming response stand-in returned by ``HttpRemote``."""

    def __init__(self, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


class HttpRemote:
    """In-memory HTTP server usable as a requests session.

    Answers 304 to conditional requests unless the URL was republished
    since, and 404 for unknown URLs.
    """

    BASE = "https://mods.example.org/"

    def __init__(self):
        self.headers: dict[str, str] = {}
        self.files: dict[str, bytes] = {}
        self.fresh: set[str] = set()
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def put(self, name: str, payload: bytes) -> str:
        url = self.BASE + name
        self.files[url] = payload
        self.fresh.add(url)
        return url

    def publish(self, name: str, payload: bytes, key: TestKey) -> dict:
        return {
            "name": name,
            "file": self.put(name, payload),
            "sig": self.put(f"{name}.sig", detached_signature(key, payload)),
        }

    def publish_mod_list(self, entries: list[dict]) -> str:
        return self.put("mods.json", json.dumps(entries).encode("utf-8"))

    def get(self, url, headers=None, timeout=None, stream=False):
        headers = dict(headers or {})
        with self._lock:
            self.calls.append((url, headers))
            if url not in self.files:
                return RemoteResponse(404)
            if "If-Modified-Since" in headers and url not in self.fresh:
                return RemoteResponse(304)
            self.fresh.discard(url)
            return RemoteResponse(200, self.files[url])

    def urls_requested(self) -> list[str]:
        return [url for url, _ in self.calls]
