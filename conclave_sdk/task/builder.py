"""
conclave_sdk.task.builder
=========================

Turn ``(fn_signature, args, gas, sender)`` into an encrypted `TaskDescriptor`.

Steps
-----
1. Canonically encode the function signature and the typed positional args
   (`conclave_sdk.abi`). Shape mismatches raise `EncodingError` before any
   key material is created.
2. Generate a fresh ephemeral key pair for this task.
3. Derive the symmetric key against the worker's encryption key.
4. Seal the selector and the arguments *separately*, so the selector can be
   routed on without opening argument payloads.
5. Attach the ephemeral public key so the worker derives the same key with no
   prior handshake, and derive the task id:

       task_id = sha3_256( sha3(encFn) || sha3(encArgs) || contract(20)
                           || nonce(32) || sender(20) )

The ephemeral key pair is returned alongside the descriptor (`BuiltTask`);
the caller owns it and must wipe it once the result is decrypted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..abi import (ArgSpec, encode_args, encode_function, normalize_type,
                   parse_signature)
from ..crypto.session import (EphemeralKeyPair, derive_shared_key, encrypt,
                              load_public_key)
from ..errors import EncodingError
from ..types import TaskDescriptor
from ..utils.bytes import from_hex, int_to_word, to_hex
from ..utils.hash import sha3_256, sha3_256_concat

log = logging.getLogger(__name__)


def _address_bytes(addr: str, what: str) -> bytes:
    try:
        raw = from_hex(addr)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"{what} must be 0x-hex: {e}") from e
    if len(raw) != 20:
        raise EncodingError(f"{what} must be 20 bytes, got {len(raw)}")
    return raw


def derive_task_id(
    encrypted_fn: bytes,
    encrypted_args: bytes,
    contract_address: str,
    nonce: int,
    sender: str,
) -> str:
    """Deterministic task id from the sealed inputs, target, nonce and sender."""
    return to_hex(
        sha3_256_concat(
            sha3_256(encrypted_fn),
            sha3_256(encrypted_args),
            _address_bytes(contract_address, "contract address"),
            int_to_word(nonce),
            _address_bytes(sender, "sender"),
        )
    )


@dataclass(frozen=True)
class BuiltTask:
    descriptor: TaskDescriptor
    key_pair: EphemeralKeyPair


class TaskBuilder:
    """Stateless builder; one instance can serve any number of tasks."""

    def build(
        self,
        fn_signature: str,
        args: Sequence[ArgSpec],
        gas_limit: int,
        gas_price: int,
        sender: str,
        worker_pub_key: bytes,
        *,
        contract_address: str,
        nonce: int = 0,
        key_pair: Optional[EphemeralKeyPair] = None,
    ) -> BuiltTask:
        for name, value in (("gas_limit", gas_limit), ("gas_price", gas_price), ("nonce", nonce)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise EncodingError(f"{name} must be a non-negative int", function=fn_signature)
        _address_bytes(sender, "sender")
        _address_bytes(contract_address, "contract address")

        _, declared = parse_signature(fn_signature)
        if len(declared) != len(args):
            raise EncodingError(
                f"signature declares {len(declared)} args, got {len(args)}",
                function=fn_signature,
            )
        fn_bytes = encode_function(fn_signature)
        args_bytes = encode_args(args, function=fn_signature)
        for i, ((_, arg_type), sig_type) in enumerate(zip(args, declared)):
            if normalize_type(arg_type) != sig_type:
                raise EncodingError(
                    f"argument type {arg_type!r} does not match signature type {sig_type!r}",
                    function=fn_signature,
                    index=i,
                    abi_type=arg_type,
                )

        try:
            load_public_key(worker_pub_key)
        except ValueError as e:
            raise EncodingError(f"invalid worker public key: {e}") from e

        kp = key_pair or EphemeralKeyPair.generate()
        key = derive_shared_key(kp, worker_pub_key)
        encrypted_fn = encrypt(key, fn_bytes)
        encrypted_args = encrypt(key, args_bytes)

        task_id = derive_task_id(encrypted_fn, encrypted_args, contract_address, nonce, sender)
        descriptor = TaskDescriptor(
            task_id=task_id,
            encrypted_fn=encrypted_fn,
            encrypted_args=encrypted_args,
            gas_limit=gas_limit,
            gas_price=gas_price,
            sender=sender,
            user_pub_key=kp.public_key,
            contract_address=contract_address,
            nonce=nonce,
            worker_pub_key=bytes(worker_pub_key),
        )
        log.debug("built task %s fn=%s args=%d", task_id, fn_signature, len(args))
        return BuiltTask(descriptor=descriptor, key_pair=kp)


__all__ = ["BuiltTask", "TaskBuilder", "derive_task_id"]
