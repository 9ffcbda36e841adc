"""
Helpers for derived header fields: lengths and Internet checksums.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from pktcraft.protocols.base import Header


def sum16(data: bytes, initial: int = 0) -> int:
    """
    Sum data as big-endian 16-bit words, without folding carries.

    Odd-length data is padded with a zero byte.
    """
    if len(data) % 2:
        data = bytes(data) + b'\x00'
    words = np.frombuffer(data, dtype='>u2')
    return initial + int(words.sum(dtype=np.uint64))


def reduce_checksum(total: int) -> int:
    """Fold carries of a 16-bit sum and return its ones' complement."""
    while total > 0xffff:
        total = (total & 0xffff) + (total >> 16)
    return ~total & 0xffff


def checksum16(data: bytes, initial: int = 0) -> int:
    """Internet checksum (RFC 1071) of data."""
    return reduce_checksum(sum16(data, initial))


def set_length(header: Header, field: str = 'length', header_in_size: bool = True) -> int:
    """
    Set header's length field to its serialized size.

    Args:
        header: Header with a body
        field: Length field name
        header_in_size: When False, only the body is counted

    Returns:
        The length written
    """
    length = header.size()
    if not header_in_size:
        length -= header.header_size()
    setattr(header, field, length)
    return length
