"""
conclave_sdk.ledger
===================

Boundary to the chain that records and orders task submissions.

The core only relies on the small `Ledger` protocol below; the chain's RPC
transport, signing and contract execution are opaque. `RpcLedger` is the
stock implementation, talking JSON-RPC to a node (or gateway) that exposes:

- task.createRecord   {descriptor}         -> { taskId, blockNumber }
- task.getRecord      {taskId}             -> { ethStatus, blockNumber } | null
- task.getUserNonce   {sender}             -> int

Submission waits for the node to acknowledge inclusion and is NEVER retried
automatically (a blind resubmit could create a second task). Reverts, gas
exhaustion and rejections surface as `SubmissionError`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .errors import (JsonRpcCode, NotFoundError, RpcError, SubmissionError)
from .rpc.http import AsyncRpcClient
from .types import (DEFAULT_STATUS_CODES, StatusCodes, TaskDescriptor,
                    TaskId, TaskRecord)

log = logging.getLogger(__name__)

_SUBMIT_FAILURE_CODES = {
    int(JsonRpcCode.TX_REJECTED),
    int(JsonRpcCode.TX_REVERTED),
    int(JsonRpcCode.OUT_OF_GAS),
}


@runtime_checkable
class Ledger(Protocol):
    """Minimal interface the task lifecycle expects from the chain."""

    async def submit(self, descriptor: TaskDescriptor) -> TaskId: ...

    async def read_record(self, task_id: TaskId) -> TaskRecord: ...

    async def get_task_nonce(self, sender: str) -> int: ...


class RpcLedger:
    """
    `Ledger` over JSON-RPC.

    Parameters
    ----------
    rpc : AsyncRpcClient
        Client bound to the ledger endpoint.
    status_codes : StatusCodes
        Wire-code table used to decode `ethStatus`.
    """

    def __init__(
        self,
        rpc: AsyncRpcClient,
        *,
        status_codes: StatusCodes = DEFAULT_STATUS_CODES,
    ) -> None:
        self._rpc = rpc
        self._codes = status_codes

    async def aclose(self) -> None:
        await self._rpc.aclose()

    async def submit(self, descriptor: TaskDescriptor) -> TaskId:
        try:
            res = await self._rpc.request(
                "task.createRecord", {"descriptor": descriptor.to_rpc_dict()}, idempotent=False
            )
        except RpcError as e:
            if e.code in _SUBMIT_FAILURE_CODES:
                raise SubmissionError(
                    e.message,
                    task_id=descriptor.task_id,
                    code=e.code,
                    receipt=e.data if isinstance(e.data, dict) else None,
                ) from e
            raise

        task_id = res.get("taskId") if isinstance(res, Mapping) else res
        if not isinstance(task_id, str) or not task_id:
            raise SubmissionError(
                "ledger did not return a taskId", task_id=descriptor.task_id
            )
        log.info(
            "task %s recorded at block %s",
            task_id,
            res.get("blockNumber") if isinstance(res, Mapping) else "?",
        )
        return task_id

    async def read_record(self, task_id: TaskId) -> TaskRecord:
        try:
            res: Any = await self._rpc.request("task.getRecord", {"taskId": task_id})
        except RpcError as e:
            if e.code == JsonRpcCode.NOT_FOUND:
                raise NotFoundError(e.message, task_id=task_id) from e
            raise
        if res is None:
            raise NotFoundError("no task record on the ledger", task_id=task_id)
        if not isinstance(res, Mapping):
            raise RpcError(
                method="task.getRecord", code=-32603, message="invalid record payload", data=res
            )
        return TaskRecord.from_rpc_dict(task_id, res, self._codes)

    async def get_task_nonce(self, sender: str) -> int:
        res: Optional[Any] = await self._rpc.request("task.getUserNonce", {"sender": sender})
        if isinstance(res, Mapping):
            res = res.get("nonce")
        if isinstance(res, bool) or not isinstance(res, int):
            raise RpcError(
                method="task.getUserNonce", code=-32603, message="invalid nonce payload", data=res
            )
        return res


__all__ = ["Ledger", "RpcLedger"]
