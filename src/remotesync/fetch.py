"""
Conditional fetching of remote resources into a local cache.

Every call answers one question: is the cached copy good enough, or do
we download again? Network trouble never escapes this module as long as
a cached copy exists to fall back to.
"""

from __future__ import annotations

import logging
from email.utils import formatdate
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import unquote, urlsplit

import requests

from . import __version__
from .errors import FetchError, HttpStatusFailure, NetworkFailure

logger = logging.getLogger("remotesync.fetch")

CHUNK_SIZE = 64 * 1024
USER_AGENT = f"remotesync/{__version__}"


class ConditionalFetcher:
    """Decides fetch-vs-reuse per resource and performs the transfer.

    Safe to call concurrently for different local paths. Two concurrent
    calls for the same path are not supported.

    Args:
        session: HTTP session to use. A private one is created if omitted.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def fetch(
        self,
        remote: str,
        local: Path,
        timeout: float,
        prefer_local_cache: bool = False,
    ) -> BinaryIO:
        """Return readable content for ``remote``, cached at ``local``.

        Args:
            remote: http(s) or file URL of the resource.
            local: Cache location for the resource.
            timeout: Connection timeout in seconds.
            prefer_local_cache: Reuse an existing local copy without
                contacting the remote at all.

        Returns:
            BinaryIO: An open binary handle positioned at offset 0.
                The caller closes it.

        Raises:
            FetchError: The resource is unreachable and there is no
                local copy to fall back to.
            OSError: The local cache could not be written.
        """
        logger.debug("Trying to decide how to get %s", remote)
        cached = local.exists()
        if cached and prefer_local_cache:
            logger.debug("Prefer local copy at %s according to configuration", local)
            return local.open("rb")

        if urlsplit(remote).scheme == "file":
            return self._fetch_file(remote, local, cached)

        headers = {}
        if cached:
            headers["If-Modified-Since"] = formatdate(local.stat().st_mtime, usegmt=True)

        try:
            response = self._session.get(remote, headers=headers, timeout=timeout, stream=True)
        except requests.RequestException as exc:
            if cached:
                logger.debug("Failed to connect to %s, fall back to local copy at %s", remote, local)
                return local.open("rb")
            raise NetworkFailure(
                f"failed to connect to {remote}: {exc}", source=remote, destination=str(local),
            ) from exc

        with response:
            if response.status_code == 304 and cached:
                logger.debug("Remote %s has no updates, use local copy at %s", remote, local)
                return local.open("rb")
            if response.status_code >= 400:
                if cached:
                    logger.warning(
                        "Remote %s fails with status code %d, use local copy at %s",
                        remote, response.status_code, local,
                    )
                    return local.open("rb")
                raise HttpStatusFailure(
                    f"{remote} returned HTTP {response.status_code}",
                    status=response.status_code, source=remote, destination=str(local),
                )

            logger.debug("Fetching remote resource %s", remote)
            try:
                return _store(response.iter_content(chunk_size=CHUNK_SIZE), local)
            except requests.RequestException as exc:
                raise NetworkFailure(
                    f"transfer of {remote} interrupted: {exc}", source=remote, destination=str(local),
                ) from exc

    def _fetch_file(self, remote: str, local: Path, cached: bool) -> BinaryIO:
        source = Path(unquote(urlsplit(remote).path))
        try:
            handle = source.open("rb")
        except OSError as exc:
            if cached:
                logger.debug("Cannot open %s, fall back to local copy at %s", source, local)
                return local.open("rb")
            raise FetchError(f"cannot open {source}: {exc}", source=remote, destination=str(local)) from exc
        if source.resolve() == local.resolve():
            return handle
        with handle:
            logger.debug("Copying %s to %s", source, local)
            return _store(iter(lambda: handle.read(CHUNK_SIZE), b""), local)


def _store(chunks, local: Path) -> BinaryIO:
    """Write ``chunks`` into a freshly truncated ``local`` and rewind."""
    local.parent.mkdir(parents=True, exist_ok=True)
    output = local.open("w+b")
    try:
        for chunk in chunks:
            if chunk:
                output.write(chunk)
        output.flush()
        output.seek(0)
    except BaseException:
        output.close()
        raise
    return output

