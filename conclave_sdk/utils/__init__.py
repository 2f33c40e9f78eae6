"""Small shared helpers: hex/bytes, hashing, retry/backoff and token units."""

from .bytes import ensure_bytes, from_hex, to_hex  # noqa: F401
from .hash import sha3_256, sha3_256_hex  # noqa: F401
from .units import from_grains, to_grains  # noqa: F401

__all__ = [
    "ensure_bytes",
    "from_hex",
    "to_hex",
    "sha3_256",
    "sha3_256_hex",
    "to_grains",
    "from_grains",
]
