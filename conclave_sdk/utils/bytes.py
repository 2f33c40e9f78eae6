"""Hex <-> bytes conversion for wire payloads (keys, ciphertexts, task ids)."""

from __future__ import annotations

import re
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

_HEX_BODY = re.compile(r"^(?:[0-9a-fA-F]{2})*$")
WORD_SIZE = 32


def strip_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def from_hex(value: str) -> bytes:
    """Decode hex with or without a 0x prefix; odd length or stray characters raise ValueError."""
    if not isinstance(value, str):
        raise TypeError(f"expected a hex string, got {type(value).__name__}")
    body = strip_0x(value)
    if not _HEX_BODY.match(body):
        raise ValueError(f"not an even-length hex string: {value[:20]!r}")
    return bytes.fromhex(body)


def to_hex(data: BytesLike, prefix: bool = True) -> str:
    """Lowercase hex, 0x-prefixed unless ``prefix=False``."""
    body = bytes(data).hex()
    return "0x" + body if prefix else body


def ensure_bytes(data: Union[BytesLike, str]) -> bytes:
    """Bytes-like values are copied; strings are read as hex."""
    if isinstance(data, str):
        return from_hex(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"cannot convert {type(data).__name__} to bytes")


def int_to_word(n: int) -> bytes:
    """Unsigned int -> 32-byte big-endian word."""
    if not 0 <= n < 1 << (8 * WORD_SIZE):
        raise ValueError("value does not fit in a 32-byte word")
    return n.to_bytes(WORD_SIZE, "big")


__all__ = [
    "BytesLike",
    "WORD_SIZE",
    "strip_0x",
    "ensure_bytes",
    "to_hex",
    "from_hex",
    "int_to_word",
]
