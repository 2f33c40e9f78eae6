"""
SHA3-256 (FIPS-202) helpers.

Task ids and payload digests use NIST SHA3 from hashlib, so no Keccak
provider is required on the client.
"""

from __future__ import annotations

from hashlib import sha3_256 as _sha3

from .bytes import BytesLike, ensure_bytes, to_hex


def sha3_256_concat(*parts: BytesLike) -> bytes:
    """Digest of the concatenation of *parts*, fed to the hash one at a time."""
    h = _sha3()
    for part in parts:
        h.update(ensure_bytes(part))
    return h.digest()


def sha3_256(data: BytesLike) -> bytes:
    return sha3_256_concat(data)


def sha3_256_hex(data: BytesLike, *, prefix: bool = True) -> str:
    return to_hex(sha3_256_concat(data), prefix=prefix)


__all__ = ["sha3_256", "sha3_256_hex", "sha3_256_concat"]
