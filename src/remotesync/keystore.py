"""
TrustStore -- the merged public key collection used for verification.

Built once at startup from the local key ring file plus any keys
retrieved by id from key servers, read-only while artifacts are being
verified, and written back to disk at shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Sequence

from . import SIGNATURE_SUFFIX
from .errors import PGPError
from .keyserver import KeyServerClient
from .models import VerificationOutcome
from .pgp import KeyRing, PublicKey, Signature, encode_key_rings, parse_key_rings, read_signatures
from .pgp.signature import BINARY_DOCUMENT

logger = logging.getLogger("remotesync.keystore")

BUFFER_SIZE = 1 << 12


@dataclass(frozen=True)
class KeyInfo:
    """Display summary of one public key in the store."""

    key_id: str
    algorithm: str
    fingerprint: str
    created: datetime
    expires: Optional[datetime]
    revoked: bool
    primary: bool


class TrustStore:
    """Key id -> key ring mapping with streaming signature verification.

    Later rings with the same primary key id replace earlier ones.

    Args:
        rings: Initial key rings.
    """

    def __init__(self, rings: Iterable[KeyRing] = ()):
        self._rings: dict[int, KeyRing] = {}
        self.merge(rings)

    @classmethod
    def load(
        cls,
        local_path: Path,
        key_servers: Sequence[str] = (),
        key_ids: Sequence[str] = (),
        client: Optional[KeyServerClient] = None,
    ) -> TrustStore:
        """Build the store from the local ring file and key servers.

        Args:
            local_path: Local key ring file (armored or binary).
            key_servers: HKP servers to query, in order.
            key_ids: Key ids to retrieve and merge.
            client: Key retrieval client; a default one is created when
                key ids and servers are configured.

        Raises:
            OSError: The local key ring file cannot be read.
            PGPError: The local key ring file is malformed.
        """
        store = cls(parse_key_rings(local_path.read_bytes()))
        logger.info("Loaded %d key ring(s) from %s", len(store), local_path)
        if key_ids and key_servers:
            client = client or KeyServerClient()
            for key_id in key_ids:
                rings = client.retrieve(key_id, list(key_servers))
                if rings:
                    store.merge(rings)
                else:
                    logger.warning("Key %s could not be retrieved from any key server", key_id)
        return store

    def __len__(self) -> int:
        return len(self._rings)

    def __contains__(self, key_id: int) -> bool:
        return self.find_key(key_id) is not None

    @property
    def rings(self) -> list[KeyRing]:
        return list(self._rings.values())

    def merge(self, rings: Iterable[KeyRing]) -> None:
        for ring in rings:
            self._rings[ring.key_id] = ring

    def find_key(self, key_id: int) -> Optional[tuple[KeyRing, PublicKey]]:
        """Locate a primary key or subkey by key id."""
        ring = self._rings.get(key_id)
        if ring is not None:
            return ring, ring.primary
        for ring in self._rings.values():
            key = ring.get_public_key(key_id)
            if key is not None:
                return ring, key
        return None

    def verify(self, content: BinaryIO, signatures: Sequence[Signature]) -> bool:
        """True only if ``signatures`` is non-empty and every one passes."""
        return self.check(content, signatures) is VerificationOutcome.VALID

    def check(
        self,
        content: BinaryIO,
        signatures: Sequence[Signature],
        now: Optional[datetime] = None,
    ) -> VerificationOutcome:
        """Verify ``content`` against every signature in ``signatures``.

        Stops at the first signature that does not pass and returns its
        outcome. An empty list never verifies.

        Args:
            content: Seekable binary handle; read from offset 0 for each
                signature.
            signatures: Parsed detached signatures.
            now: Reference time for expiry checks, defaults to now.
        """
        if not signatures:
            logger.warning("No signature to check, verification automatically fails")
            return VerificationOutcome.SIGNATURE_INVALID
        now = now or datetime.now(timezone.utc)
        buffer = memoryview(bytearray(BUFFER_SIZE))
        for signature in signatures:
            outcome = self._check_one(content, signature, buffer, now)
            if outcome is not VerificationOutcome.VALID:
                return outcome
        return VerificationOutcome.VALID

    def _check_one(
        self,
        content: BinaryIO,
        signature: Signature,
        buffer: memoryview,
        now: datetime,
    ) -> VerificationOutcome:
        found = self.find_key(signature.key_id) if signature.key_id is not None else None
        if found is None:
            logger.warning(
                "Cannot find key %s in current key ring, or the key/hash algorithm is unknown/unsupported",
                signature.key_id_hex,
            )
            return VerificationOutcome.KEY_NOT_FOUND
        ring, key = found
        made_on = signature.created.isoformat() if signature.created else "unknown date"

        if signature.signature_type != BINARY_DOCUMENT:
            logger.warning(
                "Signature by key %s is of type 0x%02x, not a binary document signature",
                signature.key_id_hex, signature.signature_type,
            )
            return VerificationOutcome.SIGNATURE_INVALID

        # Unusable key or hash algorithms fail before any content is read
        try:
            key.crypto_key()
            context = signature.new_hash()
        except PGPError as exc:
            logger.warning(
                "Cannot find key %s in current key ring, or the key/hash algorithm is unknown/unsupported: %s",
                signature.key_id_hex, exc,
            )
            return VerificationOutcome.KEY_NOT_FOUND

        try:
            content.seek(0)
            while True:
                count = content.readinto(buffer)
                if not count:
                    break
                context.update(buffer[:count])
            digest = signature.finalize(context)
            valid = digest[:2] == signature.left16 and key.verify_digest(signature, digest)
        except PGPError as exc:
            logger.warning(
                "Cannot find key %s in current key ring, or the key/hash algorithm is unknown/unsupported: %s",
                signature.key_id_hex, exc,
            )
            return VerificationOutcome.KEY_NOT_FOUND
        except OSError as exc:
            logger.warning("Failed to read file while checking signature: %s", exc)
            return VerificationOutcome.IO_FAILURE

        if not valid:
            logger.warning(
                "Signature verification failed (%s key %s, made on %s)",
                signature.name, signature.key_id_hex, made_on,
            )
            return VerificationOutcome.SIGNATURE_INVALID
        if ring.is_revoked(key):
            logger.warning(
                "Signature verified (%s key %s, made on %s) but the key-pair has been revoked",
                signature.name, signature.key_id_hex, made_on,
            )
            return VerificationOutcome.KEY_REVOKED
        if ring.has_expired(key, now):
            logger.warning(
                "Signature verified (%s key %s, made on %s) but the key-pair has expired",
                signature.name, signature.key_id_hex, made_on,
            )
            return VerificationOutcome.KEY_EXPIRED
        logger.debug(
            "Signature verified: %s key %s, made on %s",
            signature.name, signature.key_id_hex, made_on,
        )
        return VerificationOutcome.VALID

    def check_file(self, artifact: Path, signature_path: Optional[Path] = None) -> VerificationOutcome:
        """Verify a file on disk against its detached signature file.

        Args:
            artifact: The signed file.
            signature_path: Detached signature, defaults to ``<artifact>.sig``.

        Returns:
            IO_FAILURE when either file cannot be read, SIGNATURE_INVALID
            when the signature file holds no usable signature, otherwise
            the result of ``check``.
        """
        if signature_path is None:
            signature_path = artifact.with_name(artifact.name + SIGNATURE_SUFFIX)
        try:
            signatures = read_signatures(signature_path.read_bytes())
        except OSError as exc:
            logger.warning("Failed to read %s, verification automatically fails: %s", signature_path.name, exc)
            return VerificationOutcome.IO_FAILURE
        except PGPError as exc:
            logger.warning("Failed to read signature for %s, verification automatically fails: %s", artifact.name, exc)
            return VerificationOutcome.SIGNATURE_INVALID
        if not signatures:
            logger.warning(
                "Failed to load any signature for %s, check if you downloaded the wrong file", artifact.name,
            )
            return VerificationOutcome.SIGNATURE_INVALID
        try:
            with artifact.open("rb") as content:
                return self.check(content, signatures)
        except OSError as exc:
            logger.warning("Failed to read %s, verification automatically fails: %s", artifact.name, exc)
            return VerificationOutcome.IO_FAILURE

    def describe(self) -> list[KeyInfo]:
        """Summaries of every primary key and subkey in the store."""
        infos = []
        for ring in self._rings.values():
            for key in ring.public_keys():
                infos.append(KeyInfo(
                    key_id=key.key_id_hex,
                    algorithm=key.algorithm_name,
                    fingerprint=key.fingerprint.hex(),
                    created=key.created,
                    expires=ring.expires_at(key),
                    revoked=ring.is_revoked(key),
                    primary=key is ring.primary,
                ))
        return infos

    def debug_dump(self) -> None:
        for info in self.describe():
            logger.debug(
                "Public Key ID = %s, Algo = %s, Fingerprint = %s",
                info.key_id, info.algorithm, info.fingerprint,
            )

    def persist(self, path: Path) -> bool:
        """Write the merged rings back to ``path`` as an armored block.

        The block goes to a sibling ``.tmp`` file first and replaces
        ``path`` only once complete, so a failed write leaves the old
        ring intact.

        Failures are logged, never raised.

        Returns:
            bool: True if the file was written.
        """
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp_path.write_text(encode_key_rings(self._rings.values()), encoding="ascii")
            tmp_path.replace(path)
        except OSError as exc:
            logger.warning("Failed to save key store to %s: %s", path, exc)
            tmp_path.unlink(missing_ok=True)
            return False
        logger.debug("Saved %d key ring(s) to %s", len(self), path)
        return True
