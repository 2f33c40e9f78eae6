"""
conclave_sdk.fetcher
====================

Fetch and verify the worker result for a terminal task.

The worker signs ``encryptedAbiEncodedOutputs || taskId`` (task id as its raw
32 bytes). The signature is checked against the expected worker identity for
the task before the result leaves this module; a mismatch is a hard
VerificationError and is never retried.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from .crypto.session import verify_signature
from .errors import NotReadyError, VerificationError
from .ledger import Ledger
from .types import TaskId, TaskRecord, TaskResult
from .utils.bytes import from_hex, to_hex
from .worker import WorkerClient

log = logging.getLogger(__name__)

WorkerIdentity = Union[bytes, Callable[[TaskId], bytes]]


def result_sign_bytes(encrypted_outputs: bytes, task_id: TaskId) -> bytes:
    """Exact bytes covered by `workerTaskSig`."""
    return bytes(encrypted_outputs) + from_hex(task_id)


class ResultFetcher:
    """
    Parameters
    ----------
    worker : WorkerClient
    ledger : Ledger
        Used to confirm the record is terminal when the caller does not pass it.
    expected_worker : bytes | callable(task_id) -> bytes
        SEC1 public key of the worker expected to sign this task's result.
    """

    def __init__(self, worker: WorkerClient, ledger: Ledger, expected_worker: WorkerIdentity) -> None:
        self._worker = worker
        self._ledger = ledger
        self._expected = expected_worker

    def _worker_key(self, task_id: TaskId) -> bytes:
        if callable(self._expected):
            return bytes(self._expected(task_id))
        return bytes(self._expected)

    async def fetch(self, task_id: TaskId, record: Optional[TaskRecord] = None) -> TaskResult:
        if record is None:
            record = await self._ledger.read_record(task_id)
        if not record.is_terminal:
            raise NotReadyError(
                "task record is not terminal yet", task_id=task_id, last_status=record.eth_status
            )

        payload = await self._worker.get_result(task_id)
        worker_key = self._worker_key(task_id)
        try:
            result = TaskResult.from_rpc_dict(task_id, payload, eth_status=record.eth_status)
        except (KeyError, TypeError, ValueError) as e:
            raise VerificationError(
                f"malformed worker result: {e}", task_id=task_id, worker_key=to_hex(worker_key)
            ) from e

        message = result_sign_bytes(result.encrypted_abi_encoded_outputs, task_id)
        if not verify_signature(worker_key, message, result.worker_task_sig):
            raise VerificationError(
                "worker signature does not match result", task_id=task_id, worker_key=to_hex(worker_key)
            )
        log.info("task %s result fetched (engStatus=%s)", task_id, result.eng_status.value)
        return result


__all__ = ["ResultFetcher", "WorkerIdentity", "result_sign_bytes"]
