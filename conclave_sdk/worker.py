"""
conclave_sdk.worker
===================

Read-only client for the off-chain Worker Service (JSON-RPC over HTTP):

- getTaskResult           {taskId}      -> { engStatus, encryptedAbiEncodedOutputs, workerTaskSig }
                                           | { status: "PENDING" }
- getWorkerEncryptionKey  {userPubKey}  -> { workerEncryptionKey, workerSig }

Both calls are idempotent and go through `AsyncRpcClient`, which retries
transport failures with bounded exponential backoff before raising
`TransportError`. No mutating calls are made from here.

The encryption key handed out by the service is only trusted after its
signature checks out against the pinned worker signing key.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from .crypto.session import load_public_key, verify_signature
from .errors import (JsonRpcCode, NotFoundError, NotReadyError, RpcError,
                     VerificationError)
from .rpc.http import AsyncRpcClient
from .types import TaskId
from .utils.bytes import from_hex, to_hex

log = logging.getLogger(__name__)

_PENDING_STATES = {"PENDING", "INPROGRESS", "IN_PROGRESS", "UNVERIFIED"}


class WorkerClient:
    def __init__(self, rpc: AsyncRpcClient) -> None:
        self._rpc = rpc

    async def aclose(self) -> None:
        await self._rpc.aclose()

    async def get_result(self, task_id: TaskId) -> Dict[str, Any]:
        """
        Return the raw result payload for `task_id`.

        Raises NotReadyError while the worker still reports the task as
        pending, NotFoundError if the worker does not know it.
        """
        try:
            res = await self._rpc.request("getTaskResult", {"taskId": task_id})
        except RpcError as e:
            if e.code == JsonRpcCode.NOT_FOUND:
                raise NotFoundError(e.message, task_id=task_id) from e
            if e.code == JsonRpcCode.RESULT_PENDING:
                raise NotReadyError(e.message, task_id=task_id) from e
            raise
        if not isinstance(res, Mapping):
            raise RpcError(method="getTaskResult", code=-32603, message="invalid result payload", data=res)
        if "engStatus" not in res:
            state = str(res.get("status", "")).upper()
            if state in _PENDING_STATES:
                raise NotReadyError(f"worker reports {state}", task_id=task_id)
            raise RpcError(method="getTaskResult", code=-32603, message="result payload missing engStatus",
                           data=dict(res))
        return dict(res)

    async def get_encryption_key(self, user_pub_key: bytes, signing_key: bytes) -> bytes:
        """
        Fetch the worker's task encryption key and verify it was signed by
        `signing_key`. Raises VerificationError on a bad signature.
        """
        res = await self._rpc.request("getWorkerEncryptionKey", {"userPubKey": to_hex(user_pub_key)})
        if not isinstance(res, Mapping) or "workerEncryptionKey" not in res:
            raise RpcError(method="getWorkerEncryptionKey", code=-32603, message="invalid key payload", data=res)
        key = from_hex(str(res["workerEncryptionKey"]))
        sig = from_hex(str(res.get("workerSig") or "0x"))
        if not verify_signature(signing_key, key, sig):
            raise VerificationError("worker encryption key signature mismatch", worker_key=to_hex(signing_key))
        try:
            load_public_key(key)
        except ValueError as e:
            raise VerificationError(f"worker encryption key is not a valid point: {e}") from e
        log.debug("worker encryption key %s verified", to_hex(key)[:18])
        return key


__all__ = ["WorkerClient"]
