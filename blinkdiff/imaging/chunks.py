"""Tagged PNG chunk reader and the stRT structure chunk.

A PNG file is an 8-byte signature followed by chunks of the form
    length (4 bytes, big-endian) | type (4 ASCII bytes) | data | CRC-32 (4 bytes)

The stRT chunk carries structured metadata next to the pixels:
    data type (4 ASCII bytes) | major (1 byte) | minor (1 byte) | JSON body

This module is independent of the comparison engine; it exists for callers
that embed comparison hints or reports in their screenshots.
"""

import json
import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
STRUCTURE_CHUNK = "stRT"


@dataclass(frozen=True)
class Chunk:
    """Raw PNG chunk (CRC not verified)."""

    type: str
    data: bytes


@dataclass(frozen=True)
class StructureChunk:
    """Decoded stRT chunk; content is None when the body is absent or not JSON."""

    data_type: str
    major: int
    minor: int
    content: Any = None


def read_chunks(png_bytes: bytes) -> List[Chunk]:
    """Split PNG bytes into chunks in file order, stopping after IEND.

    Raises
    ------
    ValueError
        If the signature is missing or a chunk is truncated
    """
    if not png_bytes.startswith(PNG_SIGNATURE):
        raise ValueError("Not a PNG file (bad signature)")

    chunks = []
    offset = len(PNG_SIGNATURE)
    while offset < len(png_bytes):
        if offset + 8 > len(png_bytes):
            raise ValueError(f"Truncated chunk header at offset {offset}")
        length, raw_type = struct.unpack(">I4s", png_bytes[offset:offset + 8])
        end = offset + 8 + length
        if end + 4 > len(png_bytes):
            raise ValueError(f"Truncated chunk {raw_type!r} at offset {offset}")
        chunk_type = raw_type.decode("ascii")
        chunks.append(Chunk(chunk_type, png_bytes[offset + 8:end]))
        offset = end + 4
        if chunk_type == "IEND":
            break
    return chunks


def parse_structure(data: bytes) -> Optional[StructureChunk]:
    """Decode an stRT chunk body; None if shorter than the 6-byte header."""
    if len(data) < 6:
        return None
    content = None
    if len(data) > 6:
        try:
            content = json.loads(data[6:].decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Ignoring undecodable structure body: {e}")
    return StructureChunk(
        data_type=data[:4].decode("ascii"),
        major=data[4],
        minor=data[5],
        content=content,
    )


def read_structure(png_bytes: bytes) -> Optional[StructureChunk]:
    """Return the first decodable stRT chunk, or None."""
    for chunk in read_chunks(png_bytes):
        if chunk.type == STRUCTURE_CHUNK:
            structure = parse_structure(chunk.data)
            if structure is not None:
                return structure
    return None


def encode_chunk(chunk_type: str, data: bytes) -> bytes:
    raw_type = chunk_type.encode("ascii")
    if len(raw_type) != 4:
        raise ValueError(f"Chunk type must be 4 ASCII characters, got {chunk_type!r}")
    crc = zlib.crc32(raw_type + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + raw_type + data + struct.pack(">I", crc)


def add_structure_chunk(
    png_bytes: bytes,
    data_type: str,
    content: Any,
    major: int = 1,
    minor: int = 0,
) -> bytes:
    """Insert an stRT chunk right before IEND.

    Raises
    ------
    ValueError
        If data_type is not 4 ASCII characters, a version byte is out of
        range, or the input is not a PNG with an IEND chunk
    """
    raw_type = data_type.encode("ascii")
    if len(raw_type) != 4:
        raise ValueError(f"data_type must be 4 ASCII characters, got {data_type!r}")
    if not (0 <= major <= 255 and 0 <= minor <= 255):
        raise ValueError(f"Version bytes must be in [0, 255], got {major}.{minor}")

    chunks = read_chunks(png_bytes)
    if not chunks or chunks[-1].type != "IEND":
        raise ValueError("PNG has no IEND chunk")

    body = raw_type + bytes([major, minor]) + json.dumps(content).encode("utf-8")
    out = [PNG_SIGNATURE]
    for chunk in chunks[:-1]:
        out.append(encode_chunk(chunk.type, chunk.data))
    out.append(encode_chunk(STRUCTURE_CHUNK, body))
    out.append(encode_chunk("IEND", b""))
    return b"".join(out)
