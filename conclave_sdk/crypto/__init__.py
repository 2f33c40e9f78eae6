"""
Client-side crypto for task payloads.

- secp256k1 ECDH between a per-task ephemeral key and the worker's published
  encryption key
- HKDF-SHA3-256 key schedule
- AES-256-GCM sealing of task inputs and outputs
- ECDSA verification of worker signatures
"""

from .kdf import hkdf_expand, hkdf_extract, hkdf_sha3_256  # noqa: F401
from .session import (  # noqa: F401
    CryptoSession,
    EphemeralKeyPair,
    decrypt,
    derive_shared_key,
    encrypt,
    load_public_key,
    sign,
    verify_signature,
)

__all__ = [
    "CryptoSession",
    "EphemeralKeyPair",
    "derive_shared_key",
    "encrypt",
    "decrypt",
    "sign",
    "verify_signature",
    "load_public_key",
    "hkdf_extract",
    "hkdf_expand",
    "hkdf_sha3_256",
]
