from __future__ import annotations

"""
CryptoSession
=============

Pure functions for sealing task inputs and opening task outputs:

  derive_shared_key(local_private, remote_public) -> 32-byte key
      secp256k1 ECDH, then HKDF-SHA3-256 with a versioned info label.

  encrypt(key, plaintext) -> sealed
  decrypt(key, sealed)    -> plaintext   (DecryptionError on any tamper)
      AES-256-GCM with a fresh random 12-byte nonce per message. Wire layout:

          sealed = ciphertext || tag(16) || nonce(12)

      A constant domain tag is bound as associated data.

  sign(private, message) -> DER signature
  verify_signature(public, message, signature) -> bool
      ECDSA over secp256k1 with SHA-256.

Key handling
------------
A fresh `EphemeralKeyPair` is generated for every task. Its private scalar
lives in a bytearray so `wipe()` can zero it once the task's result has been
decrypted; a wiped pair refuses further use. Public keys travel as 65-byte
uncompressed SEC1 points.

Nothing here keeps state between calls.
"""

import os
from typing import Union

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import (Encoding,
                                                          PublicFormat)

from ..errors import DecryptionError
from .kdf import hkdf_sha3_256

CURVE = ec.SECP256K1()
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
PUBLIC_KEY_SIZE = 65

AEAD_DOMAIN_TAG = b"conclave/task/aead/v1"
KEY_SCHEDULE_INFO = b"conclave/task/key/v1"

PublicKeyLike = Union[bytes, bytearray, ec.EllipticCurvePublicKey]


class EphemeralKeyPair:
    """
    Per-task secp256k1 key pair whose private scalar can be zeroed.

    Usage:
        with EphemeralKeyPair.generate() as kp:
            key = derive_shared_key(kp, worker_pub)
        # kp is wiped here
    """

    __slots__ = ("_secret", "_public", "_wiped")

    def __init__(self, secret: Union[bytes, bytearray]) -> None:
        if len(secret) != KEY_SIZE:
            raise ValueError("private scalar must be 32 bytes")
        self._secret = bytearray(secret)
        self._wiped = False
        self._public = (
            self._private_key()
            .public_key()
            .public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
        )

    @classmethod
    def generate(cls) -> "EphemeralKeyPair":
        key = ec.generate_private_key(CURVE)
        return cls(key.private_numbers().private_value.to_bytes(KEY_SIZE, "big"))

    @property
    def public_key(self) -> bytes:
        return self._public

    @property
    def wiped(self) -> bool:
        return self._wiped

    def private_bytes(self) -> bytes:
        """Copy of the 32-byte private scalar, for handing a task key to another process."""
        if self._wiped:
            raise ValueError("key pair has been wiped")
        return bytes(self._secret)

    def _private_key(self) -> ec.EllipticCurvePrivateKey:
        if self._wiped:
            raise ValueError("key pair has been wiped")
        return ec.derive_private_key(int.from_bytes(self._secret, "big"), CURVE)

    def wipe(self) -> None:
        """Zero the private scalar in place. Idempotent."""
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._wiped = True

    def __enter__(self) -> "EphemeralKeyPair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else "live"
        return f"EphemeralKeyPair(pub=0x{self._public.hex()[:16]}..., {state})"


PrivateKeyLike = Union[EphemeralKeyPair, ec.EllipticCurvePrivateKey]


def _as_private(key: PrivateKeyLike) -> ec.EllipticCurvePrivateKey:
    if isinstance(key, EphemeralKeyPair):
        return key._private_key()
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key
    raise TypeError(f"unsupported private key type: {type(key).__name__}")


def load_public_key(public: PublicKeyLike) -> ec.EllipticCurvePublicKey:
    """Parse a SEC1-encoded secp256k1 point (ValueError if invalid)."""
    if isinstance(public, ec.EllipticCurvePublicKey):
        return public
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes(public))


def derive_shared_key(local_private: PrivateKeyLike, remote_public: PublicKeyLike) -> bytes:
    """ECDH + HKDF-SHA3-256 -> 32-byte symmetric key. Symmetric in the two parties."""
    shared = _as_private(local_private).exchange(ec.ECDH(), load_public_key(remote_public))
    return hkdf_sha3_256(shared, KEY_SIZE, info=KEY_SCHEDULE_INFO)


def encrypt(key: bytes, plaintext: bytes) -> bytes:
    """Seal `plaintext`; returns ciphertext || tag || nonce."""
    if len(key) != KEY_SIZE:
        raise ValueError("key must be 32 bytes")
    nonce = os.urandom(NONCE_SIZE)
    return AESGCM(key).encrypt(nonce, bytes(plaintext), AEAD_DOMAIN_TAG) + nonce


def decrypt(key: bytes, sealed: bytes) -> bytes:
    """Open a sealed message. Raises DecryptionError on tamper or truncation."""
    if len(key) != KEY_SIZE:
        raise ValueError("key must be 32 bytes")
    sealed = bytes(sealed)
    if len(sealed) < TAG_SIZE + NONCE_SIZE:
        raise DecryptionError("ciphertext truncated")
    body, nonce = sealed[:-NONCE_SIZE], sealed[-NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, body, AEAD_DOMAIN_TAG)
    except InvalidTag:
        raise DecryptionError("authentication tag mismatch") from None


def sign(private: PrivateKeyLike, message: bytes) -> bytes:
    """DER-encoded ECDSA/SHA-256 signature over `message`."""
    return _as_private(private).sign(bytes(message), ec.ECDSA(hashes.SHA256()))


def verify_signature(public: PublicKeyLike, message: bytes, signature: bytes) -> bool:
    """True iff `signature` is valid for `message` under `public`. Never raises on bad input."""
    try:
        pub = load_public_key(public)
        pub.verify(bytes(signature), bytes(message), ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


class CryptoSession:
    """Namespace bundling the task crypto operations (no instance state)."""

    generate_key_pair = staticmethod(EphemeralKeyPair.generate)
    derive_shared_key = staticmethod(derive_shared_key)
    encrypt = staticmethod(encrypt)
    decrypt = staticmethod(decrypt)
    sign = staticmethod(sign)
    verify_signature = staticmethod(verify_signature)


__all__ = [
    "CURVE",
    "KEY_SIZE",
    "PUBLIC_KEY_SIZE",
    "EphemeralKeyPair",
    "load_public_key",
    "derive_shared_key",
    "encrypt",
    "decrypt",
    "sign",
    "verify_signature",
    "CryptoSession",
]
