from __future__ import annotations

"""
In-memory stand-ins for the two external collaborators:

- FakeLedger           implements the `Ledger` protocol with a scripted
                       sequence of ethStatus values and counts reads.
- JsonRpcStub          a JSON-RPC 2.0 endpoint served through
                       httpx.MockTransport; routes are plain callables.
- FakeWorkerService    a JsonRpcStub that behaves like the Worker Service:
                       it opens submitted tasks with its encryption key,
                       "executes" them and signs the sealed result.
"""

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from conclave_sdk.abi import decode_output, encode_args, parse_signature
from conclave_sdk.crypto.session import (CURVE, EphemeralKeyPair, decrypt,
                                         derive_shared_key, encrypt, sign)
from conclave_sdk.errors import NotFoundError, SubmissionError
from conclave_sdk.fetcher import result_sign_bytes
from conclave_sdk.rpc.http import AsyncRpcClient
from conclave_sdk.types import EthStatus, TaskDescriptor, TaskRecord
from conclave_sdk.utils.bytes import to_hex
from conclave_sdk.worker import WorkerClient

SENDER = "0x" + "11" * 20
CONTRACT = "0x" + "22" * 20
TASK_ID = "0x" + "ab" * 32

# Below this the fake worker reports an out-of-gas failure.
MIN_GAS = 21_000


def public_bytes(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


class FakeLedger:
    """
    Scripted ledger. `statuses` are returned one per read; the last value
    repeats once the script runs out. An empty script means the task is unknown,
    and a `None` entry means the record has vanished by that read.
    """

    def __init__(
        self,
        statuses: Sequence[Optional[int]] = (0, 1, 2),
        *,
        nonce: int = 0,
        block_number: int = 100,
        reject: Optional[SubmissionError] = None,
    ) -> None:
        self.statuses = list(statuses)
        self.nonce = nonce
        self.block_number = block_number
        self.reject = reject
        self.reads = 0
        self.submitted: List[TaskDescriptor] = []

    async def submit(self, descriptor: TaskDescriptor) -> str:
        if self.reject is not None:
            raise self.reject
        self.submitted.append(descriptor)
        return descriptor.task_id

    async def read_record(self, task_id: str) -> TaskRecord:
        self.reads += 1
        if not self.statuses:
            raise NotFoundError("no task record on the ledger", task_id=task_id)
        code = self.statuses[min(self.reads, len(self.statuses)) - 1]
        if code is None:
            raise NotFoundError("task record dropped from the ledger", task_id=task_id)
        return TaskRecord(task_id=task_id, eth_status=EthStatus(code), block_number=self.block_number)

    async def get_task_nonce(self, sender: str) -> int:
        return self.nonce


class RpcFault(Exception):
    """Raise from a route to answer with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


Route = Any  # callable(params) -> result, or a constant result


class JsonRpcStub:
    """
    Minimal in-memory JSON-RPC endpoint. Every request is recorded in
    `.calls` as (method, params). The first `fail_first` requests answer with
    HTTP `fail_status` to exercise transport retries.
    """

    def __init__(
        self,
        routes: Optional[Mapping[str, Route]] = None,
        *,
        fail_first: int = 0,
        fail_status: int = 503,
    ) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[tuple] = []
        self.fail_first = fail_first
        self.fail_status = fail_status

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append((method, params))
        if self.fail_first > 0:
            self.fail_first -= 1
            return httpx.Response(self.fail_status)
        if method not in self.routes:
            return self._reply(body, error={"code": -32601, "message": f"method not found: {method}"})
        route = self.routes[method]
        try:
            result = route(params) if callable(route) else route
        except RpcFault as f:
            return self._reply(body, error={"code": f.code, "message": f.message, "data": f.data})
        return self._reply(body, result=result)

    @staticmethod
    def _reply(body: Dict[str, Any], *, result: Any = None, error: Optional[dict] = None) -> httpx.Response:
        msg: Dict[str, Any] = {"jsonrpc": "2.0", "id": body["id"]}
        if error is not None:
            msg["error"] = error
        else:
            msg["result"] = result
        return httpx.Response(200, json=msg)

    def methods(self) -> List[str]:
        return [m for m, _ in self.calls]

    def client(self, url: str = "http://rpc.test", **kwargs: Any) -> AsyncRpcClient:
        kwargs.setdefault("max_retries", 2)
        kwargs.setdefault("backoff_base", 0.0)
        kwargs.setdefault("backoff_max", 0.0)
        return AsyncRpcClient(url, transport=httpx.MockTransport(self.handle), **kwargs)


class FakeWorkerService(JsonRpcStub):
    """
    Worker Service double. Results for tasks found in `ledger.submitted` are
    computed on first request: the function's uint arguments are summed, or
    the task fails with an out-of-gas message when `gas_limit < MIN_GAS`.
    """

    def __init__(self, ledger: Optional[FakeLedger] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.ledger = ledger
        self.signing_key = ec.generate_private_key(CURVE)
        self.encryption = EphemeralKeyPair.generate()
        self.results: Dict[str, Dict[str, Any]] = {}
        self.routes.update(
            {
                "getTaskResult": self._get_task_result,
                "getWorkerEncryptionKey": self._get_encryption_key,
            }
        )

    @property
    def signing_pub(self) -> bytes:
        return public_bytes(self.signing_key)

    @property
    def encryption_pub(self) -> bytes:
        return self.encryption.public_key

    def worker_client(self, **kwargs: Any) -> WorkerClient:
        return WorkerClient(self.client("http://worker.test", **kwargs))

    # --- routes ------------------------------------------------------------

    def _get_encryption_key(self, params: Dict[str, Any]) -> Dict[str, str]:
        return {
            "workerEncryptionKey": to_hex(self.encryption_pub),
            "workerSig": to_hex(sign(self.signing_key, self.encryption_pub)),
        }

    def _get_task_result(self, params: Dict[str, Any]) -> Dict[str, Any]:
        task_id = params["taskId"]
        if task_id not in self.results:
            submitted = self.ledger.submitted if self.ledger is not None else []
            descriptor = next((d for d in submitted if d.task_id == task_id), None)
            if descriptor is None:
                raise RpcFault(-32004, "unknown task")
            self.execute(descriptor)
        return self.results[task_id]

    # --- task handling -----------------------------------------------------

    def open_inputs(self, descriptor: TaskDescriptor) -> tuple:
        key = derive_shared_key(self.encryption, descriptor.user_pub_key)
        fn_signature = decrypt(key, descriptor.encrypted_fn).decode("utf-8")
        _, types = parse_signature(fn_signature)
        values = decode_output(types, decrypt(key, descriptor.encrypted_args))
        return key, fn_signature, values

    def execute(self, descriptor: TaskDescriptor) -> None:
        key, _, values = self.open_inputs(descriptor)
        if descriptor.gas_limit < MIN_GAS:
            status = "FAILED"
            output = f"out of gas: limit {descriptor.gas_limit} below {MIN_GAS}".encode("utf-8")
        else:
            status = "SUCCESS"
            output = encode_args([(sum(values), "uint256")])
        self.publish(descriptor.task_id, status, encrypt(key, output))

    def publish(
        self,
        task_id: str,
        eng_status: str,
        sealed: bytes,
        *,
        signer: Optional[ec.EllipticCurvePrivateKey] = None,
    ) -> None:
        sig = sign(signer or self.signing_key, result_sign_bytes(sealed, task_id))
        self.results[task_id] = {
            "engStatus": eng_status,
            "encryptedAbiEncodedOutputs": to_hex(sealed),
            "workerTaskSig": to_hex(sig),
        }


EventLog = List[tuple]


def recorder(log: EventLog) -> Callable[[Any, Any], None]:
    def _on_event(event: Any, payload: Any) -> None:
        log.append((event, payload))

    return _on_event


__all__ = [
    "SENDER",
    "CONTRACT",
    "TASK_ID",
    "MIN_GAS",
    "public_bytes",
    "FakeLedger",
    "RpcFault",
    "JsonRpcStub",
    "FakeWorkerService",
    "recorder",
]
