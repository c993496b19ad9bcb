"""Signature packets (RFC 4880 section 5.2) and the hashing they require."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional

from cryptography.hazmat.primitives import hashes

from .. import algorithms
from ..errors import ParseError, UnsupportedAlgorithm
from .packets import TAG_SIGNATURE, read_bytes, read_mpi_bytes, read_packets, read_uint

logger = logging.getLogger("remotesync.pgp.signature")

BINARY_DOCUMENT = 0x00
TEXT_DOCUMENT = 0x01
CERTIFICATION_TYPES = (0x10, 0x11, 0x12, 0x13)
SUBKEY_BINDING = 0x18
DIRECT_KEY = 0x1F
KEY_REVOCATION = 0x20
SUBKEY_REVOCATION = 0x28

SUBPACKET_CREATION_TIME = 2
SUBPACKET_KEY_EXPIRATION_TIME = 9
SUBPACKET_ISSUER = 16
SUBPACKET_ISSUER_FINGERPRINT = 33

_HASHES: dict[int, type[hashes.HashAlgorithm]] = {
    algorithms.SHA1: hashes.SHA1,
    algorithms.SHA224: hashes.SHA224,
    algorithms.SHA256: hashes.SHA256,
    algorithms.SHA384: hashes.SHA384,
    algorithms.SHA512: hashes.SHA512,
    algorithms.SHA3_256: hashes.SHA3_256,
    algorithms.SHA3_512: hashes.SHA3_512,
}


def hash_algorithm_for(algorithm: int) -> hashes.HashAlgorithm:
    """cryptography hash instance for an OpenPGP hash id.

    Raises:
        UnsupportedAlgorithm: MD5, RIPEMD160 and other legacy hashes.
    """
    try:
        return _HASHES[algorithm]()
    except KeyError:
        raise UnsupportedAlgorithm(
            f"unsupported hash algorithm {algorithms.hash_algorithm_name(algorithm)} ({algorithm})"
        ) from None


@dataclass(frozen=True)
class Signature:
    """A parsed version 3 or version 4 signature packet."""

    version: int
    signature_type: int
    key_algorithm: int
    hash_algorithm: int
    key_id: Optional[int]
    created: Optional[datetime]
    left16: bytes
    values: tuple[bytes, ...]
    trailer: bytes
    key_expiration_seconds: Optional[int] = None
    issuer_fingerprint: Optional[bytes] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        """Display name such as ``SHA256withRSA``."""
        return algorithms.signature_name(self.key_algorithm, self.hash_algorithm)

    @property
    def key_id_hex(self) -> str:
        return format_key_id(self.key_id)

    def new_hash(self) -> hashes.Hash:
        """Fresh hashing context for the content this signature covers."""
        return hashes.Hash(hash_algorithm_for(self.hash_algorithm))

    def finalize(self, context: hashes.Hash) -> bytes:
        """Append the signature trailer to ``context`` and return the digest."""
        context.update(self.trailer)
        return context.finalize()


def format_key_id(key_id: Optional[int]) -> str:
    """Key id as 16 upper-case hex digits, or ``<none>``."""
    if key_id is None:
        return "<none>"
    return f"{key_id:016X}"


def parse_signature(body: bytes) -> Signature:
    """Parse the body of a signature packet.

    Raises:
        ParseError: Truncated or inconsistent packet.
        UnsupportedAlgorithm: Signature versions other than 3 and 4.
    """
    if not body:
        raise ParseError("empty signature packet")
    version = body[0]
    if version in (2, 3):
        return _parse_v3(body)
    if version == 4:
        return _parse_v4(body)
    raise UnsupportedAlgorithm(f"unsupported signature version {version}")


def _parse_v3(body: bytes) -> Signature:
    if read_uint(body, 1, 1) != 5:
        raise ParseError("version 3 signature must hash exactly 5 octets")
    key_algorithm = read_uint(body, 15, 1)
    return Signature(
        version=body[0],
        signature_type=body[2],
        key_algorithm=key_algorithm,
        hash_algorithm=read_uint(body, 16, 1),
        key_id=read_uint(body, 7, 8),
        created=datetime.fromtimestamp(read_uint(body, 3, 4), timezone.utc),
        left16=read_bytes(body, 17, 2),
        values=_read_values(body, 19, key_algorithm),
        trailer=body[2:7],
    )


def _parse_v4(body: bytes) -> Signature:
    key_algorithm = read_uint(body, 2, 1)
    hashed_length = read_uint(body, 4, 2)
    hashed = read_bytes(body, 6, hashed_length)
    offset = 6 + hashed_length
    unhashed_length = read_uint(body, offset, 2)
    unhashed = read_bytes(body, offset + 2, unhashed_length)
    offset += 2 + unhashed_length
    left16 = read_bytes(body, offset, 2)
    values = _read_values(body, offset + 2, key_algorithm)

    created: Optional[datetime] = None
    key_expiration: Optional[int] = None
    key_id: Optional[int] = None
    fingerprint: Optional[bytes] = None
    for hashed_area, subpackets in ((True, hashed), (False, unhashed)):
        for kind, data in _iter_subpackets(subpackets):
            if kind == SUBPACKET_CREATION_TIME and hashed_area:
                created = datetime.fromtimestamp(read_uint(data, 0, 4), timezone.utc)
            elif kind == SUBPACKET_KEY_EXPIRATION_TIME and hashed_area:
                key_expiration = read_uint(data, 0, 4)
            elif kind == SUBPACKET_ISSUER and key_id is None:
                key_id = read_uint(data, 0, 8)
            elif kind == SUBPACKET_ISSUER_FINGERPRINT and fingerprint is None:
                fingerprint = data[1:]

    if key_id is None and fingerprint:
        # v4 key ids are the low 64 bits of the fingerprint
        key_id = int.from_bytes(fingerprint[-8:], "big")

    hashed_part = body[:6 + hashed_length]
    return Signature(
        version=4,
        signature_type=body[1],
        key_algorithm=key_algorithm,
        hash_algorithm=read_uint(body, 3, 1),
        key_id=key_id,
        created=created,
        left16=left16,
        values=values,
        trailer=hashed_part + b"\x04\xff" + len(hashed_part).to_bytes(4, "big"),
        key_expiration_seconds=key_expiration,
        issuer_fingerprint=fingerprint,
    )


def _iter_subpackets(data: bytes) -> Iterator[tuple[int, bytes]]:
    offset = 0
    while offset < len(data):
        first = data[offset]
        if first < 192:
            length = first
            offset += 1
        elif first < 255:
            length = ((first - 192) << 8) + read_uint(data, offset + 1, 1) + 192
            offset += 2
        else:
            length = read_uint(data, offset + 1, 4)
            offset += 5
        if length == 0:
            raise ParseError("zero-length signature subpacket")
        content = read_bytes(data, offset, length)
        offset += length
        # High bit is the "critical" flag
        yield content[0] & 0x7F, content[1:]


def _read_values(body: bytes, offset: int, key_algorithm: int) -> tuple[bytes, ...]:
    if key_algorithm in (algorithms.RSA_GENERAL, algorithms.RSA_SIGN, algorithms.RSA_ENCRYPT):
        count = 1
    elif key_algorithm in (algorithms.DSA, algorithms.ECDSA, algorithms.EDDSA):
        count = 2
    elif key_algorithm == algorithms.ED25519:
        return (read_bytes(body, offset, 64),)
    else:
        return (body[offset:],)
    values = []
    for _ in range(count):
        value, offset = read_mpi_bytes(body, offset)
        values.append(value)
    return tuple(values)


def read_signatures(data: bytes) -> list[Signature]:
    """Parse a detached signature file into its list of signatures.

    Accepts armored or binary input, optionally wrapped in a single
    compressed-data packet. Non-signature packets are ignored; signature
    packets of an unknown version are skipped.

    Raises:
        ParseError: The object stream itself is malformed.
    """
    signatures: list[Signature] = []
    for packet in read_packets(data):
        if packet.tag != TAG_SIGNATURE:
            logger.warning("Unexpected OpenPGP packet (tag %d) in signature data, ignored", packet.tag)
            continue
        try:
            signatures.append(parse_signature(packet.body))
        except UnsupportedAlgorithm as exc:
            logger.warning("Skipping signature: %s", exc)
    return signatures
