"""Build real OpenPGP keys and detached signatures for tests.

Keys come from ``cryptography``; packets are assembled by hand so the
tests do not depend on gpg being installed.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Optional, Sequence

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from remotesync import algorithms
from remotesync.pgp.armor import SIGNATURE, armor
from remotesync.pgp.packets import (
    TAG_PUBLIC_KEY,
    TAG_PUBLIC_SUBKEY,
    TAG_SIGNATURE,
    TAG_USER_ID,
    encode_packet,
)

CREATED = datetime(2020, 1, 1, tzinfo=timezone.utc)

_ED25519_OID = bytes.fromhex("2b06010401da470f01")
_P256_OID = bytes.fromhex("2a8648ce3d030107")
_HASHES = {
    algorithms.SHA1: ("sha1", hashes.SHA1),
    algorithms.SHA256: ("sha256", hashes.SHA256),
    algorithms.SHA512: ("sha512", hashes.SHA512),
}


def mpi(value: int) -> bytes:
    bits = value.bit_length()
    return bits.to_bytes(2, "big") + value.to_bytes((bits + 7) // 8, "big")


def subpacket(kind: int, data: bytes) -> bytes:
    return bytes([len(data) + 1, kind]) + data


class TestKey:
    """A private key plus its OpenPGP public key packet body."""

    __test__ = False

    def __init__(self, private, algorithm: int, created: datetime = CREATED):
        self.private = private
        self.algorithm = algorithm
        self.created = created
        self.body = self._public_body()

    @classmethod
    def rsa(cls, created: datetime = CREATED) -> TestKey:
        return cls(rsa.generate_private_key(public_exponent=65537, key_size=2048), algorithms.RSA_GENERAL, created)

    @classmethod
    def ed25519(cls, created: datetime = CREATED) -> TestKey:
        return cls(ed25519.Ed25519PrivateKey.generate(), algorithms.EDDSA, created)

    @classmethod
    def p256(cls, created: datetime = CREATED) -> TestKey:
        return cls(ec.generate_private_key(ec.SECP256R1()), algorithms.ECDSA, created)

    def _public_body(self) -> bytes:
        head = bytes([4]) + int(self.created.timestamp()).to_bytes(4, "big") + bytes([self.algorithm])
        public = self.private.public_key()
        if self.algorithm == algorithms.RSA_GENERAL:
            numbers = public.public_numbers()
            return head + mpi(numbers.n) + mpi(numbers.e)
        if self.algorithm == algorithms.EDDSA:
            raw = public.public_bytes(Encoding.Raw, PublicFormat.Raw)
            return head + bytes([len(_ED25519_OID)]) + _ED25519_OID + mpi(int.from_bytes(b"\x40" + raw, "big"))
        point = public.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
        return head + bytes([len(_P256_OID)]) + _P256_OID + mpi(int.from_bytes(point, "big"))

    @property
    def fingerprint(self) -> bytes:
        return hashlib.sha1(b"\x99" + len(self.body).to_bytes(2, "big") + self.body).digest()

    @property
    def key_id(self) -> int:
        return int.from_bytes(self.fingerprint[-8:], "big")

    @property
    def key_id_hex(self) -> str:
        return f"{self.key_id:016X}"

    def key_material(self) -> bytes:
        """The prefix hashed by key certifications and revocations."""
        return b"\x99" + len(self.body).to_bytes(2, "big") + self.body

    def signature_packet(
        self,
        data: bytes,
        signature_type: int = 0x00,
        hash_algorithm: int = algorithms.SHA256,
        hashed: Sequence[tuple[int, bytes]] = (),
        issuer: Optional[int] = None,
        issuer_fingerprint: bool = False,
        created: Optional[datetime] = None,
    ) -> bytes:
        """Signature packet over ``data`` made with this key."""
        when = created or datetime.now(timezone.utc)
        hashed_area = subpacket(2, int(when.timestamp()).to_bytes(4, "big"))
        for kind, payload in hashed:
            hashed_area += subpacket(kind, payload)
        if issuer_fingerprint:
            hashed_area += subpacket(33, b"\x04" + self.fingerprint)
        unhashed_area = b""
        if not issuer_fingerprint:
            unhashed_area = subpacket(16, (issuer if issuer is not None else self.key_id).to_bytes(8, "big"))

        head = bytes([4, signature_type, self.algorithm, hash_algorithm])
        head += len(hashed_area).to_bytes(2, "big") + hashed_area
        trailer = head + b"\x04\xff" + len(head).to_bytes(4, "big")
        hashlib_name, crypto_hash = _HASHES[hash_algorithm]
        digest = hashlib.new(hashlib_name, data + trailer).digest()

        if self.algorithm == algorithms.RSA_GENERAL:
            raw = self.private.sign(digest, padding.PKCS1v15(), Prehashed(crypto_hash()))
            values = mpi(int.from_bytes(raw, "big"))
        elif self.algorithm == algorithms.EDDSA:
            raw = self.private.sign(digest)
            values = mpi(int.from_bytes(raw[:32], "big")) + mpi(int.from_bytes(raw[32:], "big"))
        else:
            r, s = decode_dss_signature(self.private.sign(digest, ec.ECDSA(Prehashed(crypto_hash()))))
            values = mpi(r) + mpi(s)

        body = head + len(unhashed_area).to_bytes(2, "big") + unhashed_area + digest[:2] + values
        return encode_packet(TAG_SIGNATURE, body)


def key_ring(
    key: TestKey,
    user_id: str = "Test Signer <signer@example.org>",
    expires_in: Optional[int] = None,
    revoked: bool = False,
    subkeys: Sequence[TestKey] = (),
    subkey_expires_in: Optional[int] = None,
    revoked_subkeys: Sequence[TestKey] = (),
) -> bytes:
    """Binary transferable public key for ``key``."""
    packets = [encode_packet(TAG_PUBLIC_KEY, key.body)]
    if revoked:
        packets.append(key.signature_packet(key.key_material(), signature_type=0x20))

    uid = user_id.encode("utf-8")
    packets.append(encode_packet(TAG_USER_ID, uid))
    hashed = [(9, expires_in.to_bytes(4, "big"))] if expires_in else []
    certified = key.key_material() + b"\xb4" + len(uid).to_bytes(4, "big") + uid
    packets.append(key.signature_packet(certified, signature_type=0x13, hashed=hashed, created=key.created))

    for subkey in subkeys:
        packets.append(encode_packet(TAG_PUBLIC_SUBKEY, subkey.body))
        bound = key.key_material() + subkey.key_material()
        sub_hashed = [(9, subkey_expires_in.to_bytes(4, "big"))] if subkey_expires_in else []
        packets.append(key.signature_packet(bound, signature_type=0x18, hashed=sub_hashed, created=subkey.created))
        if subkey in revoked_subkeys:
            packets.append(key.signature_packet(bound, signature_type=0x28))
    return b"".join(packets)


def detached_signature(key: TestKey, data: bytes, **kwargs) -> bytes:
    """Binary detached signature over ``data``."""
    return key.signature_packet(data, **kwargs)


def armored_signature(key: TestKey, data: bytes, **kwargs) -> str:
    return armor(detached_signature(key, data, **kwargs), SIGNATURE)
