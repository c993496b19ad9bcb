"""ASCII armor (RFC 4880 section 6) decoding and encoding."""

from __future__ import annotations

import base64
import binascii
from typing import Iterable, Optional

from ..errors import ParseError

CRC24_INIT = 0xB704CE
CRC24_POLY = 0x1864CFB

PUBLIC_KEY_BLOCK = "PUBLIC KEY BLOCK"
SIGNATURE = "SIGNATURE"

UTF8_BOM = b"\xef\xbb\xbf"

_BEGIN = "-----BEGIN PGP "
_END = "-----END PGP "
_LINE_WIDTH = 64


def crc24(data: bytes) -> int:
    """CRC-24 checksum used by the armor tail line."""
    crc = CRC24_INIT
    for octet in data:
        crc ^= octet << 16
        for _ in range(8):
            crc <<= 1
            if crc & 0x1000000:
                crc ^= CRC24_POLY
    return crc & 0xFFFFFF


def is_binary(data: bytes) -> bool:
    """True when ``data`` starts with an OpenPGP packet tag octet."""
    return bool(data) and bool(data[0] & 0x80)


def decode(data: bytes) -> bytes:
    """Return the binary packet stream, de-armoring when needed.

    Mirrors how OpenPGP tools sniff their input: a first octet with the
    high bit set is a packet tag, anything else is treated as armor. A
    leading UTF-8 byte order mark (left by some editors) is skipped.

    Raises:
        ParseError: Armored input without a complete block.
    """
    if data.startswith(UTF8_BOM):
        data = data[len(UTF8_BOM):]
    if not data or is_binary(data):
        return data
    return dearmor(data)


def dearmor(data: bytes) -> bytes:
    """Decode every armored block in ``data`` and concatenate the payloads.

    Raises:
        ParseError: No block found, truncated block, bad base64 or a
            checksum mismatch.
    """
    lines = data.decode("latin-1").splitlines()
    payloads: list[bytes] = []
    index = 0
    while index < len(lines):
        line = lines[index].strip()
        index += 1
        if not (line.startswith(_BEGIN) and line.endswith("-----")):
            continue
        payload, index = _read_block(lines, index)
        payloads.append(payload)

    if not payloads:
        raise ParseError("no armored OpenPGP block found")
    return b"".join(payloads)


def _read_block(lines: list[str], index: int) -> tuple[bytes, int]:
    # Armor headers run up to the first blank line. Some producers omit
    # the blank line when there are no headers at all.
    while index < len(lines):
        line = lines[index].strip()
        if not line:
            index += 1
            break
        if ": " in line:
            index += 1
            continue
        break

    body: list[str] = []
    checksum: Optional[str] = None
    while index < len(lines):
        line = lines[index].strip()
        index += 1
        if line.startswith(_END):
            break
        if line.startswith("=") and len(line) == 5:
            checksum = line[1:]
            continue
        body.append(line)
    else:
        raise ParseError("armored block is missing its END line")

    try:
        payload = base64.b64decode("".join(body), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"invalid base64 in armored block: {exc}") from exc

    if checksum is not None:
        try:
            expected = int.from_bytes(base64.b64decode(checksum, validate=True), "big")
        except (binascii.Error, ValueError) as exc:
            raise ParseError(f"invalid armor checksum line: {exc}") from exc
        if crc24(payload) != expected:
            raise ParseError("armor checksum mismatch")
    return payload, index


def armor(
    data: bytes,
    kind: str = PUBLIC_KEY_BLOCK,
    headers: Iterable[tuple[str, str]] = (),
) -> str:
    """Wrap a binary packet stream in ASCII armor.

    Args:
        data: Binary packets.
        kind: Block type, e.g. ``PUBLIC KEY BLOCK`` or ``SIGNATURE``.
        headers: Optional ``(key, value)`` armor headers.

    Returns:
        str: The armored text, newline terminated.
    """
    lines = [f"{_BEGIN}{kind}-----"]
    lines.extend(f"{key}: {value}" for key, value in headers)
    lines.append("")
    encoded = base64.b64encode(data).decode("ascii")
    lines.extend(encoded[i:i + _LINE_WIDTH] for i in range(0, len(encoded), _LINE_WIDTH))
    lines.append("=" + base64.b64encode(crc24(data).to_bytes(3, "big")).decode("ascii"))
    lines.append(f"{_END}{kind}-----")
    return "\n".join(lines) + "\n"
