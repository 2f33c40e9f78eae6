import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from conclave_sdk.crypto import kdf
from conclave_sdk.crypto.session import (CURVE, NONCE_SIZE, PUBLIC_KEY_SIZE,
                                         TAG_SIZE, CryptoSession,
                                         EphemeralKeyPair, decrypt,
                                         derive_shared_key, encrypt, sign,
                                         verify_signature)
from conclave_sdk.errors import DecryptionError
from tests.fakes import public_bytes


def _pair():
    return EphemeralKeyPair.generate(), EphemeralKeyPair.generate()


def test_shared_key_is_symmetric():
    user, worker = _pair()
    k1 = derive_shared_key(user, worker.public_key)
    k2 = derive_shared_key(worker, user.public_key)
    assert k1 == k2
    assert len(k1) == 32


def test_roundtrip_between_parties():
    user, worker = _pair()
    sealed = encrypt(derive_shared_key(user, worker.public_key), b"add(uint256,uint256)")
    assert len(sealed) == len(b"add(uint256,uint256)") + TAG_SIZE + NONCE_SIZE
    assert decrypt(derive_shared_key(worker, user.public_key), sealed) == b"add(uint256,uint256)"


def test_fresh_nonce_per_message():
    user, worker = _pair()
    key = derive_shared_key(user, worker.public_key)
    assert encrypt(key, b"same") != encrypt(key, b"same")


@pytest.mark.parametrize("position", [0, -NONCE_SIZE - 1, -1])
def test_bit_flip_is_rejected(position):
    user, worker = _pair()
    key = derive_shared_key(user, worker.public_key)
    sealed = bytearray(encrypt(key, b"\x00" * 64))
    sealed[position] ^= 0x01
    with pytest.raises(DecryptionError):
        decrypt(key, bytes(sealed))


def test_wrong_key_is_rejected():
    a, b = _pair()
    sealed = encrypt(derive_shared_key(a, b.public_key), b"secret")
    other = derive_shared_key(a, EphemeralKeyPair.generate().public_key)
    with pytest.raises(DecryptionError):
        decrypt(other, sealed)


def test_truncated_ciphertext():
    key = b"\x01" * 32
    with pytest.raises(DecryptionError, match="truncated"):
        decrypt(key, b"\x00" * (TAG_SIZE + NONCE_SIZE - 1))


def test_key_size_is_enforced():
    with pytest.raises(ValueError):
        encrypt(b"short", b"x")


def test_public_key_is_uncompressed_sec1():
    kp = EphemeralKeyPair.generate()
    assert len(kp.public_key) == PUBLIC_KEY_SIZE
    assert kp.public_key[0] == 0x04


def test_wipe_zeroes_and_blocks_use():
    kp = EphemeralKeyPair.generate()
    peer = EphemeralKeyPair.generate()
    kp.wipe()
    assert kp.wiped
    assert bytes(kp._secret) == b"\x00" * 32
    with pytest.raises(ValueError, match="wiped"):
        derive_shared_key(kp, peer.public_key)
    kp.wipe()  # idempotent
    assert "wiped" in repr(kp)


def test_context_manager_wipes():
    with EphemeralKeyPair.generate() as kp:
        assert not kp.wiped
    assert kp.wiped


def test_sign_and_verify():
    key = ec.generate_private_key(CURVE)
    sig = sign(key, b"payload")
    assert verify_signature(public_bytes(key), b"payload", sig)
    assert not verify_signature(public_bytes(key), b"payload!", sig)
    assert not verify_signature(public_bytes(ec.generate_private_key(CURVE)), b"payload", sig)


def test_verify_never_raises_on_garbage():
    key = ec.generate_private_key(CURVE)
    assert verify_signature(b"\x04" + b"\x00" * 64, b"m", b"sig") is False
    assert verify_signature(public_bytes(key), b"m", b"") is False


def test_session_namespace_matches_functions():
    kp = CryptoSession.generate_key_pair()
    key = CryptoSession.derive_shared_key(kp, EphemeralKeyPair.generate().public_key)
    assert CryptoSession.decrypt(key, CryptoSession.encrypt(key, b"x")) == b"x"


def test_hkdf_lengths_and_info_separation():
    prk = kdf.hkdf_extract(None, b"ikm")
    assert len(kdf.hkdf_expand(prk, b"a", 80)) == 80
    assert kdf.hkdf_expand(prk, b"a", 32) != kdf.hkdf_expand(prk, b"b", 32)
    assert kdf.hkdf_sha3_256(b"ikm", 32, info=b"a") == kdf.hkdf_expand(prk, b"a", 32)
    with pytest.raises(ValueError):
        kdf.hkdf_expand(prk, b"", 255 * 32 + 1)
