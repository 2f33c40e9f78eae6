"""Open a verified TaskResult with the task's ephemeral key."""

from __future__ import annotations

import logging

from .crypto.session import PrivateKeyLike, PublicKeyLike, decrypt, derive_shared_key
from .errors import DecryptionError
from .types import TaskResult

log = logging.getLogger(__name__)


class ResultDecryptor:
    def decrypt(
        self,
        result: TaskResult,
        local_private: PrivateKeyLike,
        worker_pub_key: PublicKeyLike,
    ) -> TaskResult:
        """
        Return a copy of `result` with `decrypted_output` set.

        DecryptionError from the crypto layer propagates unchanged (only the
        task id is attached for context).
        """
        key = derive_shared_key(local_private, worker_pub_key)
        try:
            plaintext = decrypt(key, result.encrypted_abi_encoded_outputs)
        except DecryptionError as e:
            e.task_id = result.task_id
            raise
        log.info("task %s result decrypted (%d bytes)", result.task_id, len(plaintext))
        return result.with_output(plaintext)


__all__ = ["ResultDecryptor"]
