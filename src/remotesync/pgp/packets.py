"""OpenPGP packet framing (RFC 4880 section 4) and compressed-data unwrapping."""

from __future__ import annotations

import bz2
import zlib
from dataclasses import dataclass
from typing import Iterator

from ..errors import ParseError, UnsupportedAlgorithm
from . import armor

TAG_SIGNATURE = 2
TAG_SECRET_KEY = 5
TAG_PUBLIC_KEY = 6
TAG_SECRET_SUBKEY = 7
TAG_COMPRESSED_DATA = 8
TAG_MARKER = 10
TAG_TRUST = 12
TAG_USER_ID = 13
TAG_PUBLIC_SUBKEY = 14
TAG_USER_ATTRIBUTE = 17

COMPRESSION_NONE = 0
COMPRESSION_ZIP = 1
COMPRESSION_ZLIB = 2
COMPRESSION_BZIP2 = 3


@dataclass(frozen=True)
class Packet:
    """One packet: its tag and its fully reassembled body."""

    tag: int
    body: bytes

    def encode(self) -> bytes:
        """Re-frame this packet with a new-format header."""
        return encode_packet(self.tag, self.body)


def read_bytes(data: bytes, offset: int, length: int) -> bytes:
    """Slice ``length`` octets at ``offset`` or raise ParseError if short."""
    end = offset + length
    if length < 0 or end > len(data):
        raise ParseError(f"truncated data: need {length} octets at offset {offset}")
    return data[offset:end]


def read_uint(data: bytes, offset: int, width: int) -> int:
    """Big-endian unsigned integer of ``width`` octets."""
    return int.from_bytes(read_bytes(data, offset, width), "big")


def read_mpi_bytes(data: bytes, offset: int) -> tuple[bytes, int]:
    """Read a multiprecision integer, returning its magnitude octets and the next offset."""
    bits = read_uint(data, offset, 2)
    length = (bits + 7) // 8
    return read_bytes(data, offset + 2, length), offset + 2 + length


def read_mpi(data: bytes, offset: int) -> tuple[int, int]:
    """Read a multiprecision integer as a Python int."""
    raw, offset = read_mpi_bytes(data, offset)
    return int.from_bytes(raw, "big"), offset


def iter_packets(data: bytes) -> Iterator[Packet]:
    """Split a binary packet stream into packets.

    Handles both old-format and new-format headers, including partial
    body lengths (common inside compressed-data packets).

    Raises:
        ParseError: On a bad tag octet or a truncated packet.
    """
    offset = 0
    while offset < len(data):
        header = data[offset]
        if not header & 0x80:
            raise ParseError(f"invalid packet tag octet 0x{header:02x} at offset {offset}")
        offset += 1
        if header & 0x40:
            tag = header & 0x3F
            body, offset = _read_new_format_body(data, offset)
        else:
            tag = (header >> 2) & 0x0F
            body, offset = _read_old_format_body(data, offset, header & 0x03)
        yield Packet(tag, body)


def _read_new_format_body(data: bytes, offset: int) -> tuple[bytes, int]:
    parts: list[bytes] = []
    while True:
        first = read_uint(data, offset, 1)
        offset += 1
        if first < 192:
            length = first
        elif first < 224:
            length = ((first - 192) << 8) + read_uint(data, offset, 1) + 192
            offset += 1
        elif first == 255:
            length = read_uint(data, offset, 4)
            offset += 4
        else:
            # Partial body length, more parts follow
            length = 1 << (first & 0x1F)
            parts.append(read_bytes(data, offset, length))
            offset += length
            continue
        parts.append(read_bytes(data, offset, length))
        return b"".join(parts), offset + length


def _read_old_format_body(data: bytes, offset: int, length_type: int) -> tuple[bytes, int]:
    if length_type == 3:
        # Indeterminate length: the packet runs to the end of the stream
        return data[offset:], len(data)
    width = (1, 2, 4)[length_type]
    length = read_uint(data, offset, width)
    offset += width
    return read_bytes(data, offset, length), offset + length


def encode_packet(tag: int, body: bytes) -> bytes:
    """Frame ``body`` with a new-format header for ``tag``."""
    length = len(body)
    if length < 192:
        encoded = bytes([length])
    elif length < 8384:
        length -= 192
        encoded = bytes([(length >> 8) + 192, length & 0xFF])
    else:
        encoded = b"\xff" + length.to_bytes(4, "big")
    return bytes([0xC0 | tag]) + encoded + body


def decompress(body: bytes) -> bytes:
    """Inflate the body of a compressed-data packet.

    Raises:
        ParseError: Empty packet or corrupt compressed stream.
        UnsupportedAlgorithm: Unknown compression algorithm id.
    """
    if not body:
        raise ParseError("empty compressed data packet")
    algorithm, payload = body[0], body[1:]
    try:
        if algorithm == COMPRESSION_NONE:
            return payload
        if algorithm == COMPRESSION_ZIP:
            inflater = zlib.decompressobj(-15)
            return inflater.decompress(payload) + inflater.flush()
        if algorithm == COMPRESSION_ZLIB:
            inflater = zlib.decompressobj()
            return inflater.decompress(payload) + inflater.flush()
        if algorithm == COMPRESSION_BZIP2:
            return bz2.decompress(payload)
    except (zlib.error, OSError, ValueError) as exc:
        raise ParseError(f"corrupt compressed data packet: {exc}") from exc
    raise UnsupportedAlgorithm(f"unsupported compression algorithm {algorithm}")


def read_packets(data: bytes) -> list[Packet]:
    """Decode armor if present, split packets, and unwrap compression.

    The outer object may or may not be a compressed-data packet; when it
    is, its content is parsed in its place. Marker packets are dropped.

    Raises:
        ParseError: Malformed armor or packet stream.
        UnsupportedAlgorithm: Unknown compression algorithm.
    """
    packets = list(iter_packets(armor.decode(data)))
    if packets and packets[0].tag == TAG_COMPRESSED_DATA:
        packets = list(iter_packets(decompress(packets[0].body))) + packets[1:]
    return [packet for packet in packets if packet.tag != TAG_MARKER]
