"""
conclave_sdk.abi
================

Canonical argument encoding for task payloads.

Tasks name their target function by a signature string such as
``add(uint256,uint256)`` and pass positional arguments as ``(value, type)``
pairs. Arguments are serialized with the Ethereum-style head/tail layout so
that workers can decode them with any standard ABI decoder:

- static types (``uintN``, ``intN``, ``bool``, ``address``, ``bytesN``) occupy
  one 32-byte word in the head;
- dynamic types (``bytes``, ``string``) put a 32-byte offset in the head and a
  length-prefixed, zero-padded body in the tail.

The encoding is deterministic: equal inputs always produce equal bytes.

Supported types
---------------
uint8..uint256, int8..int256 (multiples of 8), ``uint``/``int`` aliases for
256 bits, bool, address (20 bytes, 0x-hex or bytes), bytes1..bytes32, bytes,
string.
"""

from __future__ import annotations

import re
from typing import Any, List, Sequence, Tuple

from .errors import EncodingError
from .utils.bytes import from_hex

__all__ = [
    "ArgSpec",
    "parse_signature",
    "normalize_type",
    "encode_args",
    "encode_function",
    "decode_output",
]

ArgSpec = Tuple[Any, str]

WORD = 32

_SIG_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*\((.*)\)\s*$")
_INT_RE = re.compile(r"^(u?)int(\d*)$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d+)$")


def normalize_type(abi_type: str) -> str:
    """Canonical type name (``uint`` -> ``uint256``, whitespace stripped)."""
    t = abi_type.strip()
    m = _INT_RE.match(t)
    if m:
        bits = int(m.group(2) or 256)
        if bits % 8 != 0 or not 8 <= bits <= 256:
            raise EncodingError(f"invalid integer width: {abi_type!r}", abi_type=abi_type)
        return f"{m.group(1)}int{bits}"
    m = _FIXED_BYTES_RE.match(t)
    if m:
        size = int(m.group(1))
        if not 1 <= size <= 32:
            raise EncodingError(f"invalid fixed bytes size: {abi_type!r}", abi_type=abi_type)
        return t
    if t in ("bool", "address", "bytes", "string"):
        return t
    raise EncodingError(f"unsupported type: {abi_type!r}", abi_type=abi_type)


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    """
    Split ``name(type,type,...)`` into the function name and canonical types.
    """
    m = _SIG_RE.match(signature or "")
    if not m:
        raise EncodingError("malformed function signature", function=signature)
    name, inner = m.group(1), m.group(2).strip()
    types = [normalize_type(t) for t in inner.split(",")] if inner else []
    return name, types


def encode_function(signature: str) -> bytes:
    """Canonical UTF-8 form of a signature, e.g. ``add(uint256,uint256)``."""
    name, types = parse_signature(signature)
    return f"{name}({','.join(types)})".encode("utf-8")


def _is_dynamic(abi_type: str) -> bool:
    return abi_type in ("bytes", "string")


def _pad_right(b: bytes) -> bytes:
    rem = len(b) % WORD
    return b if rem == 0 else b + b"\x00" * (WORD - rem)


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return from_hex(value)
    raise TypeError(f"expected bytes or hex string, got {type(value).__name__}")


def _encode_static(value: Any, abi_type: str) -> bytes:
    if abi_type == "bool":
        if not isinstance(value, bool):
            raise TypeError(f"expected bool, got {type(value).__name__}")
        return int(value).to_bytes(WORD, "big")

    m = _INT_RE.match(abi_type)
    if m:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected int, got {type(value).__name__}")
        bits = int(m.group(2))
        if m.group(1):  # unsigned
            if not 0 <= value < (1 << bits):
                raise ValueError(f"{value} out of range for {abi_type}")
            return value.to_bytes(WORD, "big")
        lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        if not lo <= value <= hi:
            raise ValueError(f"{value} out of range for {abi_type}")
        return value.to_bytes(WORD, "big", signed=True)

    if abi_type == "address":
        raw = _as_bytes(value)
        if len(raw) != 20:
            raise ValueError(f"address must be 20 bytes, got {len(raw)}")
        return b"\x00" * 12 + raw

    m = _FIXED_BYTES_RE.match(abi_type)
    if m:
        raw = _as_bytes(value)
        if len(raw) != int(m.group(1)):
            raise ValueError(f"{abi_type} expects {m.group(1)} bytes, got {len(raw)}")
        return _pad_right(raw)

    raise ValueError(f"unsupported static type {abi_type}")


def _encode_dynamic(value: Any, abi_type: str) -> bytes:
    if abi_type == "string":
        if not isinstance(value, str):
            raise TypeError(f"expected str, got {type(value).__name__}")
        raw = value.encode("utf-8")
    else:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"expected bytes, got {type(value).__name__}")
        raw = bytes(value)
    return len(raw).to_bytes(WORD, "big") + _pad_right(raw)


def encode_args(args: Sequence[ArgSpec], *, function: str | None = None) -> bytes:
    """
    Encode positional ``(value, type)`` pairs into canonical bytes.

    Raises EncodingError (with the argument index) when a value does not match
    its declared type.
    """
    heads: List[bytes] = []
    tails: List[bytes] = []
    for i, spec in enumerate(args):
        try:
            value, declared = spec
        except (TypeError, ValueError):
            raise EncodingError(
                "argument must be a (value, type) pair", function=function, index=i
            ) from None
        if not isinstance(declared, str):
            raise EncodingError("argument type must be a string", function=function, index=i)
        abi_type = normalize_type(declared)
        try:
            if _is_dynamic(abi_type):
                heads.append(b"")  # offset patched below
                tails.append(_encode_dynamic(value, abi_type))
            else:
                heads.append(_encode_static(value, abi_type))
                tails.append(b"")
        except (TypeError, ValueError) as e:
            raise EncodingError(str(e), function=function, index=i, abi_type=abi_type) from e

    head_size = WORD * len(heads)
    offset = head_size
    out_head = bytearray()
    for head, tail in zip(heads, tails):
        if head:
            out_head += head
        else:
            out_head += offset.to_bytes(WORD, "big")
            offset += len(tail)
    return bytes(out_head) + b"".join(tails)


def _word(data: bytes, pos: int) -> bytes:
    chunk = data[pos : pos + WORD]
    if len(chunk) != WORD:
        raise EncodingError(f"output truncated at byte {pos}")
    return chunk


def decode_output(types: Sequence[str], data: bytes) -> List[Any]:
    """
    Decode ABI-encoded return data into Python values.

    ``uintN``/``intN`` -> int, bool -> bool, address -> 0x-hex str,
    ``bytesN``/``bytes`` -> bytes, string -> str.
    """
    out: List[Any] = []
    for i, declared in enumerate(types):
        abi_type = normalize_type(declared)
        word = _word(data, i * WORD)
        if _is_dynamic(abi_type):
            start = int.from_bytes(word, "big")
            length = int.from_bytes(_word(data, start), "big")
            body = data[start + WORD : start + WORD + length]
            if len(body) != length:
                raise EncodingError("dynamic output truncated", index=i, abi_type=abi_type)
            if abi_type != "string":
                out.append(bytes(body))
                continue
            try:
                out.append(body.decode("utf-8"))
            except UnicodeDecodeError as e:
                raise EncodingError(f"string output is not UTF-8: {e.reason}", index=i, abi_type=abi_type) from e
            continue
        m = _INT_RE.match(abi_type)
        if m:
            out.append(int.from_bytes(word, "big", signed=not m.group(1)))
        elif abi_type == "bool":
            out.append(word[-1] == 1)
        elif abi_type == "address":
            out.append("0x" + word[12:].hex())
        else:
            size = int(_FIXED_BYTES_RE.match(abi_type).group(1))  # type: ignore[union-attr]
            out.append(bytes(word[:size]))
    return out
