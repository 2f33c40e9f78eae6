from __future__ import annotations

"""
HKDF-SHA3-256 (RFC 5869 style)
==============================

Task keys are derived from the raw ECDH shared secret with HKDF over
**SHA3-256**:

- hkdf_extract(salt, ikm) -> prk
- hkdf_expand(prk, info, length) -> okm
- hkdf_sha3_256(ikm, length, salt=None, info=b"") -> okm

If `salt` is None or empty, Extract uses HashLen zero bytes as RFC 5869
prescribes. `info` carries the versioned context label so keys for different
purposes never collide.
"""

import hashlib
import hmac
from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]

_HASH_LEN = hashlib.sha3_256().digest_size


def _to_bytes(b: Optional[BytesLike]) -> bytes:
    if b is None:
        return b""
    return bytes(b)


def hkdf_extract(salt: Optional[BytesLike], ikm: BytesLike) -> bytes:
    """
    HKDF-Extract(salt, IKM) -> PRK

    PRK = HMAC-SHA3-256(salt or zeros(HashLen), IKM)
    """
    salt_b = _to_bytes(salt) or (b"\x00" * _HASH_LEN)
    return hmac.new(salt_b, _to_bytes(ikm), digestmod=hashlib.sha3_256).digest()


def hkdf_expand(prk: BytesLike, info: Optional[BytesLike], length: int) -> bytes:
    """
    HKDF-Expand(PRK, info, L) -> OKM

    T(0) = empty
    T(i) = HMAC(PRK, T(i-1) | info | byte(i))
    OKM  = first L bytes of T(1) | T(2) | ... | T(N)
    """
    if length < 0:
        raise ValueError("length must be non-negative")
    if length > 255 * _HASH_LEN:
        raise ValueError(f"length {length} exceeds HKDF limit {255 * _HASH_LEN}")

    prk_b = _to_bytes(prk)
    info_b = _to_bytes(info)
    okm = bytearray()
    t = b""
    counter = 0
    while len(okm) < length:
        counter += 1
        t = hmac.new(prk_b, t + info_b + bytes([counter]), digestmod=hashlib.sha3_256).digest()
        okm.extend(t)
    return bytes(okm[:length])


def hkdf_sha3_256(
    ikm: BytesLike,
    length: int,
    *,
    salt: Optional[BytesLike] = None,
    info: Optional[BytesLike] = b"",
) -> bytes:
    """Extract + Expand in one call."""
    return hkdf_expand(hkdf_extract(salt, ikm), info, length)


__all__ = ["hkdf_extract", "hkdf_expand", "hkdf_sha3_256"]
