"""
Minimal OpenPGP support: enough to read public key rings and detached
signatures and to verify one against the other. No key generation, no
encryption, no web of trust.
"""

from .keys import KeyRing, PublicKey, encode_key_rings, parse_key_rings
from .signature import Signature, format_key_id, read_signatures

__all__ = [
    "KeyRing",
    "PublicKey",
    "Signature",
    "encode_key_rings",
    "format_key_id",
    "parse_key_rings",
    "read_signatures",
]
