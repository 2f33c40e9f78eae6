"""
Typed error classes for the Python SDK.

Every failure along the task lifecycle (build, submit, poll, fetch, decrypt)
surfaces as a subclass of `ConclaveSdkError` carrying enough context (task id,
last observed status) to diagnose it without retrying blindly.

Only `TransportError` is retried internally (bounded backoff); all other
errors propagate to the caller as-is. Cancellation is reported with
`asyncio.CancelledError` and is not wrapped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "ConclaveSdkError",
    "EncodingError",
    "SubmissionError",
    "NotFoundError",
    "TaskTimeoutError",
    "InconsistentStateError",
    "TransportError",
    "VerificationError",
    "DecryptionError",
    "NotReadyError",
    "RpcError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class ConclaveSdkError(Exception):
    """Base class for all SDK errors."""


class JsonRpcCode(IntEnum):
    """Error codes seen from the ledger node and the Worker Service."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000

    # task-specific, inside the -32000..-32099 server range
    NOT_FOUND = -32004
    TX_REJECTED = -32011
    TX_REVERTED = -32012
    OUT_OF_GAS = -32013
    RESULT_PENDING = -32020


@dataclass(eq=False)
class RpcError(ConclaveSdkError):
    """An application-level JSON-RPC error (or an unusable response). Never retried."""

    method: Optional[str]
    code: int
    message: str
    data: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        tail = "" if self.data is None else f" data={self.data!r}"
        return f"RpcError {self.method or '?'} [{self.code}]: {self.message}{tail}"


@dataclass(eq=False)
class EncodingError(ConclaveSdkError):
    """
    Raised when a function signature or an argument cannot be encoded.

    Typical causes: declared type does not match the value's shape, integer out
    of range, wrong byte length, malformed signature. Local; never retried.
    """

    message: str
    function: Optional[str] = None
    index: Optional[int] = None
    abi_type: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        ctx = {"fn": self.function, "arg": self.index, "type": self.abi_type}
        located = " ".join(f"{k}={v}" for k, v in ctx.items() if v is not None)
        return f"EncodingError ({located}): {self.message}" if located else f"EncodingError: {self.message}"


@dataclass(eq=False)
class SubmissionError(ConclaveSdkError):
    """
    Raised when the ledger rejects the task-creation transaction (revert, gas
    exhaustion, node rejection). Surfaced immediately; never resubmitted.
    """

    message: str
    task_id: Optional[str] = None
    code: Optional[int] = None
    receipt: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        suffix = f" task={self.task_id}" if self.task_id else ""
        rpc_code = "" if self.code is None else f" [{self.code}]"
        return f"SubmissionError{suffix}{rpc_code}: {self.message}"


@dataclass(eq=False)
class NotFoundError(ConclaveSdkError):
    """Raised when the ledger (or worker) does not know the task id."""

    message: str
    task_id: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"NotFoundError task={self.task_id}: {self.message}"


class TaskTimeoutError(ConclaveSdkError, TimeoutError):
    """
    Raised when polling exhausts its attempts before a terminal status.

    Also an instance of the builtin TimeoutError.
    """

    def __init__(
        self,
        message: str,
        *,
        task_id: Optional[str] = None,
        last_status: Optional[Any] = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.task_id = task_id
        self.last_status = last_status
        self.attempts = attempts

    def __str__(self) -> str:  # pragma: no cover - trivial
        return (
            f"TaskTimeoutError task={self.task_id} attempts={self.attempts} "
            f"last_status={self.last_status}: {self.message}"
        )


@dataclass(eq=False)
class InconsistentStateError(ConclaveSdkError):
    """
    Raised when the ledger reports a status that goes backwards (or is not a
    known status at all). Indicates a reorg or a protocol bug; fatal.
    """

    message: str
    task_id: Optional[str] = None
    previous_status: Optional[Any] = None
    observed_status: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return (
            f"InconsistentStateError task={self.task_id} "
            f"{self.previous_status} -> {self.observed_status}: {self.message}"
        )


@dataclass(eq=False)
class TransportError(ConclaveSdkError):
    """
    Raised on network failure talking to the Worker Service or the ledger RPC,
    after bounded retries are exhausted.
    """

    message: str
    url: Optional[str] = None
    attempts: int = 1
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        http = f" http={self.http_status}" if self.http_status is not None else ""
        return f"TransportError {self.url or '?'} after {self.attempts} attempt(s){http}: {self.message}"


@dataclass(eq=False)
class VerificationError(ConclaveSdkError):
    """
    Raised when a worker signature does not validate against the expected
    worker identity. Never retried: retrying cannot fix a forged result.
    """

    message: str
    task_id: Optional[str] = None
    worker_key: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"VerificationError task={self.task_id} worker={self.worker_key}: {self.message}"


@dataclass(eq=False)
class DecryptionError(ConclaveSdkError):
    """Raised on AEAD authentication failure or truncated ciphertext."""

    message: str
    task_id: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        suffix = f" task={self.task_id}" if self.task_id else ""
        return f"DecryptionError{suffix}: {self.message}"


@dataclass(eq=False)
class NotReadyError(ConclaveSdkError):
    """Raised when a result is requested before the task record is terminal."""

    message: str
    task_id: Optional[str] = None
    last_status: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"NotReadyError task={self.task_id} status={self.last_status}: {self.message}"


def from_jsonrpc_error(err_obj: Dict[str, Any], *, method: Optional[str] = None) -> RpcError:
    """Build an RpcError from a response's `error` member ({code, message, data?})."""
    return RpcError(
        method=method,
        code=int(err_obj.get("code", JsonRpcCode.SERVER_ERROR)),
        message=str(err_obj.get("message") or "JSON-RPC error without a message"),
        data=err_obj.get("data"),
    )
