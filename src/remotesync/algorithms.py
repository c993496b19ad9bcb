"""
Lookup tables for OpenPGP algorithm identifiers.

Numeric ids come from RFC 4880 section 9 (and RFC 9580 for the newer
ones). Names follow the spelling used in log output elsewhere.
"""

from __future__ import annotations

UNKNOWN = "UNKNOWN"

# Public-key algorithms
RSA_GENERAL = 1
RSA_ENCRYPT = 2
RSA_SIGN = 3
ELGAMAL_ENCRYPT = 16
DSA = 17
ECDH = 18
ECDSA = 19
ELGAMAL_GENERAL = 20
DIFFIE_HELLMAN = 21
EDDSA = 22
X25519 = 25
ED25519 = 27

# Hash algorithms
MD5 = 1
SHA1 = 2
RIPEMD160 = 3
DOUBLE_SHA = 4
MD2 = 5
TIGER_192 = 6
HAVAL_5_160 = 7
SHA256 = 8
SHA384 = 9
SHA512 = 10
SHA224 = 11
SHA3_256 = 12
SHA3_512 = 14

PUBLIC_KEY_ALGORITHMS: dict[int, str] = {
    RSA_GENERAL: "RSA",
    RSA_ENCRYPT: "RSA",
    RSA_SIGN: "RSA",
    DSA: "DSA",
    ECDH: "ECDH",
    ECDSA: "ECDSA",
    EDDSA: "EDDSA",
    ED25519: "EDDSA",
    X25519: "ECDH",
    ELGAMAL_GENERAL: "ELGAMAL",
    ELGAMAL_ENCRYPT: "ELGAMAL",
    DIFFIE_HELLMAN: "DIFFIE_HELLMAN",
}

HASH_ALGORITHMS: dict[int, str] = {
    MD2: "MD2",
    MD5: "MD5",
    SHA1: "SHA1",
    SHA224: "SHA224",
    SHA256: "SHA256",
    SHA384: "SHA384",
    SHA512: "SHA512",
    SHA3_256: "SHA3-256",
    SHA3_512: "SHA3-512",
    DOUBLE_SHA: "DOUBLE-SHA",
    RIPEMD160: "RIPEMD160",
    TIGER_192: "TIGER192",
    HAVAL_5_160: "HAVAL-5-160",
}


def key_algorithm_name(algorithm: int) -> str:
    """Human-readable name of a public-key algorithm id."""
    return PUBLIC_KEY_ALGORITHMS.get(algorithm, UNKNOWN)


def hash_algorithm_name(algorithm: int) -> str:
    """Human-readable name of a hash algorithm id."""
    return HASH_ALGORITHMS.get(algorithm, UNKNOWN)


def signature_name(key_algorithm: int, hash_algorithm: int) -> str:
    """Combined name such as ``SHA256withRSA``.

    Args:
        key_algorithm: Public-key algorithm id of the signature.
        hash_algorithm: Hash algorithm id of the signature.

    Returns:
        str: The display name, with UNKNOWN for unmapped ids.
    """
    hash_name = hash_algorithm_name(hash_algorithm).replace("-", "")
    return f"{hash_name}with{key_algorithm_name(key_algorithm)}"
