"""
Public keys and transferable public key rings (RFC 4880 sections 5.5, 11.1).

Only what verification needs is decoded: key material for the signing
algorithms, creation time, self-signature expiry and revocation
signatures. Every packet of a ring is kept so the ring can be written
back out unchanged.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, encode_dss_signature

from .. import algorithms
from ..errors import ParseError, PGPError, UnsupportedAlgorithm
from . import armor
from .packets import (
    TAG_PUBLIC_KEY,
    TAG_PUBLIC_SUBKEY,
    TAG_SIGNATURE,
    TAG_TRUST,
    TAG_USER_ATTRIBUTE,
    TAG_USER_ID,
    Packet,
    read_bytes,
    read_mpi,
    read_mpi_bytes,
    read_packets,
    read_uint,
)
from .signature import (
    CERTIFICATION_TYPES,
    DIRECT_KEY,
    KEY_REVOCATION,
    SUBKEY_BINDING,
    SUBKEY_REVOCATION,
    Signature,
    format_key_id,
    hash_algorithm_for,
    parse_signature,
)

logger = logging.getLogger("remotesync.pgp.keys")

_ED25519_LEGACY_OID = bytes.fromhex("2b06010401da470f01")
_ECDSA_CURVES: dict[bytes, type[ec.EllipticCurve]] = {
    bytes.fromhex("2a8648ce3d030107"): ec.SECP256R1,
    bytes.fromhex("2b81040022"): ec.SECP384R1,
    bytes.fromhex("2b81040023"): ec.SECP521R1,
}
_RSA = (algorithms.RSA_GENERAL, algorithms.RSA_SIGN, algorithms.RSA_ENCRYPT)


@dataclass(frozen=True)
class PublicKey:
    """A version 4 public key or subkey packet."""

    algorithm: int
    created: datetime
    fingerprint: bytes
    body: bytes = field(repr=False)

    @property
    def key_id(self) -> int:
        return int.from_bytes(self.fingerprint[-8:], "big")

    @property
    def key_id_hex(self) -> str:
        return format_key_id(self.key_id)

    @property
    def algorithm_name(self) -> str:
        return algorithms.key_algorithm_name(self.algorithm)

    @classmethod
    def parse(cls, body: bytes) -> PublicKey:
        """Parse a public key or public subkey packet body.

        Raises:
            ParseError: Truncated packet.
            UnsupportedAlgorithm: Key versions other than 4.
        """
        version = read_uint(body, 0, 1)
        if version != 4:
            raise UnsupportedAlgorithm(f"unsupported public key version {version}")
        created = datetime.fromtimestamp(read_uint(body, 1, 4), timezone.utc)
        fingerprint = hashlib.sha1(b"\x99" + len(body).to_bytes(2, "big") + body).digest()
        return cls(
            algorithm=read_uint(body, 5, 1),
            created=created,
            fingerprint=fingerprint,
            body=body,
        )

    def crypto_key(self):
        """Decode the key material into a cryptography public key object.

        Raises:
            ParseError: Malformed key material.
            UnsupportedAlgorithm: Encryption-only algorithms or unknown curves.
        """
        body, offset = self.body, 6
        try:
            if self.algorithm in _RSA:
                n, offset = read_mpi(body, offset)
                e, _ = read_mpi(body, offset)
                return rsa.RSAPublicNumbers(e, n).public_key()
            if self.algorithm == algorithms.DSA:
                p, offset = read_mpi(body, offset)
                q, offset = read_mpi(body, offset)
                g, offset = read_mpi(body, offset)
                y, _ = read_mpi(body, offset)
                return dsa.DSAPublicNumbers(y, dsa.DSAParameterNumbers(p, q, g)).public_key()
            if self.algorithm == algorithms.ECDSA:
                oid, offset = _read_oid(body, offset)
                point, _ = read_mpi_bytes(body, offset)
                curve = _ECDSA_CURVES.get(oid)
                if curve is None:
                    raise UnsupportedAlgorithm(f"unsupported ECDSA curve OID {oid.hex()}")
                return ec.EllipticCurvePublicKey.from_encoded_point(curve(), point)
            if self.algorithm == algorithms.EDDSA:
                oid, offset = _read_oid(body, offset)
                point, _ = read_mpi_bytes(body, offset)
                if oid != _ED25519_LEGACY_OID:
                    raise UnsupportedAlgorithm(f"unsupported EdDSA curve OID {oid.hex()}")
                if len(point) != 33 or point[0] != 0x40:
                    raise ParseError("malformed Ed25519 public point")
                return ed25519.Ed25519PublicKey.from_public_bytes(point[1:])
            if self.algorithm == algorithms.ED25519:
                return ed25519.Ed25519PublicKey.from_public_bytes(read_bytes(body, offset, 32))
        except ValueError as exc:
            raise ParseError(f"invalid {self.algorithm_name} key material: {exc}") from exc
        raise UnsupportedAlgorithm(
            f"key {self.key_id_hex} uses {self.algorithm_name} ({self.algorithm}), which cannot sign"
        )

    def verify_digest(self, signature: Signature, digest: bytes) -> bool:
        """Check ``signature`` over an already computed ``digest``.

        Returns:
            bool: False when the signature does not match.

        Raises:
            PGPError: The key or hash algorithm is unsupported.
        """
        key = self.crypto_key()
        chosen = hash_algorithm_for(signature.hash_algorithm)
        values = signature.values
        try:
            if isinstance(key, rsa.RSAPublicKey):
                if signature.key_algorithm not in _RSA:
                    return False
                encoded = values[0].rjust((key.key_size + 7) // 8, b"\x00")
                key.verify(encoded, digest, padding.PKCS1v15(), Prehashed(chosen))
            elif isinstance(key, dsa.DSAPublicKey):
                if signature.key_algorithm != algorithms.DSA:
                    return False
                key.verify(_dss(values), digest, Prehashed(chosen))
            elif isinstance(key, ec.EllipticCurvePublicKey):
                if signature.key_algorithm != algorithms.ECDSA:
                    return False
                key.verify(_dss(values), digest, ec.ECDSA(Prehashed(chosen)))
            elif isinstance(key, ed25519.Ed25519PublicKey):
                if signature.key_algorithm == algorithms.ED25519:
                    raw = values[0]
                elif signature.key_algorithm == algorithms.EDDSA:
                    raw = values[0].rjust(32, b"\x00") + values[1].rjust(32, b"\x00")
                else:
                    return False
                key.verify(raw, digest)
            else:
                raise UnsupportedAlgorithm(f"no verifier for {type(key).__name__}")
        except InvalidSignature:
            return False
        return True


def _read_oid(body: bytes, offset: int) -> tuple[bytes, int]:
    length = read_uint(body, offset, 1)
    if length in (0, 0xFF):
        raise ParseError("reserved curve OID length")
    return read_bytes(body, offset + 1, length), offset + 1 + length


def _dss(values: tuple[bytes, ...]) -> bytes:
    if len(values) != 2:
        raise ParseError("DSA-style signature needs exactly two integers")
    r, s = (int.from_bytes(value, "big") for value in values)
    return encode_dss_signature(r, s)


@dataclass
class KeyRing:
    """A primary key with its user ids, subkeys and their signatures."""

    primary: PublicKey
    subkeys: list[PublicKey] = field(default_factory=list)
    signatures: dict[int, list[Signature]] = field(default_factory=dict)
    packets: list[Packet] = field(default_factory=list)

    @property
    def key_id(self) -> int:
        return self.primary.key_id

    @property
    def creation_time(self) -> datetime:
        return self.primary.created

    @property
    def validity_seconds(self) -> int:
        return self.key_validity_seconds(self.primary)

    @property
    def revoked(self) -> bool:
        return self.is_revoked(self.primary)

    def public_keys(self) -> list[PublicKey]:
        return [self.primary, *self.subkeys]

    def get_public_key(self, key_id: int) -> Optional[PublicKey]:
        """Primary key or subkey with this key id, if the ring holds one."""
        for key in self.public_keys():
            if key.key_id == key_id:
                return key
        return None

    def _self_signatures(self, key: PublicKey, types: Iterable[int]) -> list[Signature]:
        wanted = set(types)
        return [
            sig for sig in self.signatures.get(key.key_id, [])
            if sig.signature_type in wanted and sig.key_id in (None, self.primary.key_id)
        ]

    def key_validity_seconds(self, key: PublicKey) -> int:
        """Seconds from creation until ``key`` expires; 0 means never.

        Taken from the key expiration subpacket of the most recent
        self-certification (primary) or binding signature (subkey).
        """
        if key is self.primary:
            candidates = self._self_signatures(key, (*CERTIFICATION_TYPES, DIRECT_KEY))
        else:
            candidates = self._self_signatures(key, (SUBKEY_BINDING,))
        epoch = datetime.fromtimestamp(0, timezone.utc)
        for sig in sorted(candidates, key=lambda s: s.created or epoch, reverse=True):
            if sig.key_expiration_seconds is not None:
                return sig.key_expiration_seconds
        return 0

    def is_revoked(self, key: PublicKey) -> bool:
        """True if ``key`` (or, for a subkey, its primary) carries a revocation."""
        if self._self_signatures(self.primary, (KEY_REVOCATION,)):
            return True
        if key is not self.primary:
            return bool(self._self_signatures(key, (SUBKEY_REVOCATION,)))
        return False

    def expires_at(self, key: PublicKey) -> Optional[datetime]:
        seconds = self.key_validity_seconds(key)
        if seconds == 0:
            return None
        return key.created + timedelta(seconds=seconds)

    def has_expired(self, key: PublicKey, now: Optional[datetime] = None) -> bool:
        """True when ``now`` is past the expiry of ``key`` or of its primary."""
        now = now or datetime.now(timezone.utc)
        for candidate in {key.key_id: key, self.primary.key_id: self.primary}.values():
            expiry = self.expires_at(candidate)
            if expiry is not None and now > expiry:
                return True
        return False

    def encode(self) -> bytes:
        return b"".join(packet.encode() for packet in self.packets)


class _RingBuilder:
    def __init__(self, packet: Packet):
        self.ring = KeyRing(primary=PublicKey.parse(packet.body), packets=[packet])
        self._current: Optional[PublicKey] = self.ring.primary

    def add(self, packet: Packet) -> None:
        if packet.tag == TAG_TRUST:
            return
        if packet.tag in (TAG_USER_ID, TAG_USER_ATTRIBUTE):
            self._current = self.ring.primary
        elif packet.tag == TAG_PUBLIC_SUBKEY:
            try:
                subkey = PublicKey.parse(packet.body)
            except PGPError as exc:
                logger.debug("Unusable subkey in ring %s: %s", self.ring.primary.key_id_hex, exc)
                self._current = None
            else:
                self.ring.subkeys.append(subkey)
                self._current = subkey
        elif packet.tag == TAG_SIGNATURE:
            if self._current is not None:
                try:
                    sig = parse_signature(packet.body)
                except PGPError as exc:
                    logger.debug("Unusable signature in ring %s: %s", self.ring.primary.key_id_hex, exc)
                else:
                    self.ring.signatures.setdefault(self._current.key_id, []).append(sig)
        else:
            logger.warning(
                "Unexpected OpenPGP packet (tag %d) in key ring %s, ignored",
                packet.tag, self.ring.primary.key_id_hex,
            )
            return
        self.ring.packets.append(packet)


def parse_key_rings(data: bytes) -> list[KeyRing]:
    """Parse every transferable public key in ``data``.

    Accepts one or more armored blocks or binary packets, optionally
    wrapped in a compressed-data packet. Objects other than public key
    rings are logged and ignored, as are keys of unsupported versions.

    Raises:
        ParseError: The packet stream itself is malformed.
    """
    rings: list[KeyRing] = []
    builder: Optional[_RingBuilder] = None
    skipping = False
    for packet in read_packets(data):
        if packet.tag == TAG_PUBLIC_KEY:
            if builder is not None:
                rings.append(builder.ring)
            try:
                builder = _RingBuilder(packet)
                skipping = False
            except PGPError as exc:
                logger.warning("Skipping public key: %s", exc)
                builder, skipping = None, True
        elif builder is not None:
            builder.add(packet)
        elif not skipping:
            logger.warning("Invalid OpenPGP object (tag %d) found and ignored", packet.tag)
    if builder is not None:
        rings.append(builder.ring)
    return rings


def encode_key_rings(rings: Iterable[KeyRing]) -> str:
    """Armored public key block holding every ring in ``rings``."""
    return armor.armor(b"".join(ring.encode() for ring in rings), armor.PUBLIC_KEY_BLOCK)
