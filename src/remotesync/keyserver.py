"""
Key retrieval over the HTTP Keyserver Protocol (HKP).

A partial client: it only knows ``op=get`` lookups by key id, see
https://tools.ietf.org/html/draft-shaw-openpgp-hkp-00. Keys fetched here
are a convenience for operators who pre-seed key ids they already
intend to trust; retrieval itself is not a trust decision.
"""

from __future__ import annotations

import importlib.util
import logging
from typing import Optional, Protocol
from urllib.parse import urlencode, urlsplit, urlunsplit

import requests

from .errors import PGPError
from .pgp import KeyRing, parse_key_rings

logger = logging.getLogger("remotesync.keyserver")

LOOKUP_PATH = "/pks/lookup"
DEFAULT_HKP_PORT = 80


class SrvResolver(Protocol):
    """Optional collaborator that maps a key server URL to its SRV target."""

    def resolve(self, server: str) -> str:
        """Return a more specific URL for ``server``, or ``server`` itself."""


class DnsSrvResolver:
    """Resolves ``_hkp._tcp.<host>`` SRV records with dnspython.

    Args:
        lifetime: Seconds to spend on one DNS query, retries included.
    """

    def __init__(self, lifetime: float = 5.0):
        self.lifetime = lifetime

    def resolve(self, server: str) -> str:
        import dns.exception
        import dns.resolver

        parts = urlsplit(server)
        if not parts.hostname:
            return server
        try:
            answer = dns.resolver.resolve(f"_hkp._tcp.{parts.hostname}", "SRV", lifetime=self.lifetime)
        except dns.exception.DNSException as exc:
            logger.debug("No SRV record for %s: %s", parts.hostname, exc)
            return server
        records = sorted(answer, key=lambda record: (record.priority, -record.weight))
        if not records:
            return server
        record = records[0]
        target = record.target.to_text(omit_final_dot=True)
        port = record.port or DEFAULT_HKP_PORT
        resolved = urlunsplit((parts.scheme, f"{target}:{port}", "/", "", ""))
        logger.debug("Key server %s resolved to %s via SRV", server, resolved)
        return resolved


def detect_srv_resolver(enabled: bool = True) -> Optional[SrvResolver]:
    """SRV capability of this runtime, computed once at startup.

    Args:
        enabled: Configuration switch; False disables SRV lookups outright.

    Returns:
        A resolver when dnspython is installed and lookups are enabled,
        otherwise None (servers are then used verbatim).
    """
    if not enabled:
        return None
    if importlib.util.find_spec("dns") is None:
        logger.debug("dnspython not installed, key server SRV lookups disabled")
        return None
    return DnsSrvResolver()


class KeyServerClient:
    """Fetches public key rings by key id from a list of HKP servers.

    Args:
        timeout: Per-request timeout in seconds.
        srv_resolver: Optional SRV lookup collaborator.
        session: HTTP session; a private one is created if omitted.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        srv_resolver: Optional[SrvResolver] = None,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.srv_resolver = srv_resolver
        self._session = session or requests.Session()

    def lookup_url(self, server: str, key_id: str) -> str:
        """Build the ``op=get`` lookup URL for ``key_id`` on ``server``."""
        if self.srv_resolver is not None:
            server = self.srv_resolver.resolve(server)
        parts = urlsplit(server)
        query = urlencode({"op": "get", "search": key_id})
        return urlunsplit((parts.scheme, parts.netloc, LOOKUP_PATH, query, ""))

    def retrieve(self, key_id: str, key_servers: list[str]) -> Optional[list[KeyRing]]:
        """Try each server in order; return the first parseable key material.

        Failures (DNS, connection, HTTP status, parse) are logged at DEBUG
        and the next server is tried.

        Returns:
            The key rings from the first server that produced any, or
            None when every server failed.
        """
        for server in key_servers:
            try:
                url = self.lookup_url(server, key_id)
                response = self._session.get(url, timeout=self.timeout)
                response.raise_for_status()
                rings = parse_key_rings(response.content)
            except (requests.RequestException, PGPError, ValueError) as exc:
                logger.debug("Key server %s could not supply key %s: %s", server, key_id, exc)
                continue
            if rings:
                logger.info("Retrieved key %s from %s", key_id, server)
                return rings
            logger.debug("Key server %s returned no key material for %s", server, key_id)
        return None
