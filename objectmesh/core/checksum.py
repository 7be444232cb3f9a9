"""
CRC32C of a Multipart Download

Each part is checksummed as it lands; the per-part values are folded
together in part order so the whole object can be verified without
re-reading the assembled file. Values are rendered the way S3 reports
`ChecksumCRC32C`: base64 of the big-endian 32-bit digest.
"""

from __future__ import annotations

import base64
import struct
from typing import Iterable, Optional

import google_crc32c

# Zero padding is fed to the CRC in slices of at most this many bytes.
MAX_CRC32C_ZERO_ARRAY_SIZE = 4 * 1024 * 1024


def crc32c_of(data: bytes) -> int:
    return google_crc32c.value(data)


def combine_crc32c(crc_and_size_pairs: Iterable[tuple[int, int]]) -> int:
    """
    CRC32C of the concatenation of consecutive parts.

    Args:
        crc_and_size_pairs: (crc, length) per part, in byte order.

    Returns:
        The combined digest; 0 when there are no parts.
    """
    base_crc: Optional[int] = None
    zeroes = bytes(MAX_CRC32C_ZERO_ARRAY_SIZE)
    for part_crc, size in crc_and_size_pairs:
        if base_crc is None:
            base_crc = part_crc
            continue

        base_crc ^= 0xFFFFFFFF
        padded = 0
        while padded < size:
            step = min(size - padded, MAX_CRC32C_ZERO_ARRAY_SIZE)
            base_crc = google_crc32c.extend(base_crc, zeroes[:step])
            padded += step
        base_crc ^= 0xFFFFFFFF
        base_crc ^= part_crc

    return base_crc if base_crc is not None else 0


def encode_crc32c(crc: int) -> str:
    return base64.b64encode(struct.pack(">L", crc)).decode("ascii")
