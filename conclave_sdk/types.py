from __future__ import annotations

"""
Task lifecycle types for the Python SDK.

Two complementary representations, as elsewhere in the SDK:
- `TypedDict` shapes mirroring the JSON-RPC payloads (hex strings for binary).
- Frozen `@dataclass` models with `bytes` fields and `to_rpc_dict()` /
  `from_rpc_dict()` converters.

Objects are immutable snapshots passed by value between stages. Nothing here
performs network I/O.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict

from .abi import decode_output as _decode_output
from .errors import InconsistentStateError
from .utils.bytes import from_hex, to_hex

Address = str  # 0x-prefixed 20-byte hex
TaskId = str  # 0x-prefixed 32-byte hex


class EthStatus(IntEnum):
    """On-chain task record status; values are ordered along the lifecycle."""

    RECORD_CREATED = 0
    IN_PROGRESS = 1
    RECEIPT_VERIFIED = 2
    FAILED = 3

    @property
    def is_terminal(self) -> bool:
        return self in (EthStatus.RECEIPT_VERIFIED, EthStatus.FAILED)


TERMINAL_STATUSES = frozenset({EthStatus.RECEIPT_VERIFIED, EthStatus.FAILED})


class StatusCodes:
    """
    Name-keyed mapping between ledger wire codes and `EthStatus`.

    The default table is 0..3 in declaration order; a ledger that numbers the
    states differently is handled by passing ``{"FAILED": 4, ...}``.
    """

    __slots__ = ("_by_code",)

    def __init__(self, mapping: Optional[Mapping[str, int]] = None) -> None:
        table = {s.name: int(s.value) for s in EthStatus}
        for name, code in (mapping or {}).items():
            if name not in table:
                raise ValueError(f"unknown status name: {name!r}")
            table[name] = int(code)
        by_code = {code: EthStatus[name] for name, code in table.items()}
        if len(by_code) != len(table):
            raise ValueError("status codes must be distinct")
        self._by_code = by_code

    def decode(self, code: Any, *, task_id: Optional[str] = None) -> EthStatus:
        try:
            return self._by_code[int(code)]
        except (KeyError, TypeError, ValueError):
            raise InconsistentStateError(
                "ledger reported an unknown status code",
                task_id=task_id,
                observed_status=code,
            ) from None


DEFAULT_STATUS_CODES = StatusCodes()


class EngStatus(str, Enum):
    """Worker-reported logical outcome of the task's function."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# --- JSON-RPC TypedDict shapes ----------------------------------------------


class TaskDescriptorDict(TypedDict, total=False):
    taskId: TaskId
    encryptedFn: str
    encryptedArgs: str
    gasLimit: int
    gasPrice: int
    sender: Address
    userPubKey: str
    contractAddress: Address
    nonce: int
    workerPubKey: str


class TaskRecordDict(TypedDict, total=False):
    taskId: TaskId
    ethStatus: int
    blockNumber: int


class TaskResultDict(TypedDict, total=False):
    taskId: TaskId
    engStatus: str
    encryptedAbiEncodedOutputs: str
    workerTaskSig: str


# --- Dataclasses (bytes-friendly) -------------------------------------------


@dataclass(frozen=True)
class TaskDescriptor:
    """
    An encrypted, addressable task. Created by TaskBuilder, immutable after.

    `encrypted_fn` and `encrypted_args` are sealed separately so routing can
    look at the selector without touching argument payloads.
    """

    task_id: TaskId
    encrypted_fn: bytes
    encrypted_args: bytes
    gas_limit: int
    gas_price: int
    sender: Address
    user_pub_key: bytes
    contract_address: Address
    nonce: int = 0
    worker_pub_key: bytes = b""

    @property
    def fee(self) -> int:
        """Maximum fee in grains the task may consume."""
        return self.gas_limit * self.gas_price

    def to_rpc_dict(self) -> TaskDescriptorDict:
        return {
            "taskId": self.task_id,
            "encryptedFn": to_hex(self.encrypted_fn),
            "encryptedArgs": to_hex(self.encrypted_args),
            "gasLimit": self.gas_limit,
            "gasPrice": self.gas_price,
            "sender": self.sender,
            "userPubKey": to_hex(self.user_pub_key),
            "contractAddress": self.contract_address,
            "nonce": self.nonce,
            "workerPubKey": to_hex(self.worker_pub_key),
        }

    @staticmethod
    def from_rpc_dict(d: Mapping[str, Any]) -> "TaskDescriptor":
        return TaskDescriptor(
            task_id=str(d["taskId"]),
            encrypted_fn=from_hex(d["encryptedFn"]),
            encrypted_args=from_hex(d["encryptedArgs"]),
            gas_limit=int(d["gasLimit"]),
            gas_price=int(d["gasPrice"]),
            sender=str(d["sender"]),
            user_pub_key=from_hex(d["userPubKey"]),
            contract_address=str(d.get("contractAddress", "")),
            nonce=int(d.get("nonce", 0)),
            worker_pub_key=from_hex(d.get("workerPubKey", "0x")),
        )


@dataclass(frozen=True)
class TaskRecord:
    """Ledger snapshot of a task; mutated only by the ledger, never here."""

    task_id: TaskId
    eth_status: EthStatus
    block_number: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.eth_status.is_terminal

    def to_rpc_dict(self) -> TaskRecordDict:
        return {
            "taskId": self.task_id,
            "ethStatus": int(self.eth_status),
            "blockNumber": self.block_number,
        }

    @staticmethod
    def from_rpc_dict(
        task_id: TaskId,
        d: Mapping[str, Any],
        codes: StatusCodes = DEFAULT_STATUS_CODES,
    ) -> "TaskRecord":
        return TaskRecord(
            task_id=task_id,
            eth_status=codes.decode(d.get("ethStatus"), task_id=task_id),
            block_number=int(d.get("blockNumber") or 0),
        )


@dataclass(frozen=True)
class TaskResult:
    """
    Worker output for a terminal task.

    `decrypted_output` is None until ResultDecryptor fills it in (on a copy).
    When `eng_status` is FAILED the plaintext is a human-readable error
    message; otherwise it is ABI-encoded return data. Branch on `eng_status`
    before interpreting it.
    """

    task_id: TaskId
    eng_status: EngStatus
    encrypted_abi_encoded_outputs: bytes
    worker_task_sig: bytes
    eth_status: Optional[EthStatus] = None
    decrypted_output: Optional[bytes] = None

    @property
    def is_decrypted(self) -> bool:
        return self.decrypted_output is not None

    @property
    def succeeded(self) -> bool:
        return self.eng_status is EngStatus.SUCCESS

    @property
    def error_message(self) -> Optional[str]:
        """Decoded error text for FAILED results (None otherwise)."""
        if self.eng_status is not EngStatus.FAILED or self.decrypted_output is None:
            return None
        return self.decrypted_output.decode("utf-8", errors="replace")

    def decode_output(self, types: Sequence[str]) -> List[Any]:
        """ABI-decode a successful, decrypted output."""
        if self.eng_status is not EngStatus.SUCCESS:
            raise ValueError("task failed; read error_message instead")
        if self.decrypted_output is None:
            raise ValueError("result has not been decrypted")
        return _decode_output(types, self.decrypted_output)

    def with_output(self, plaintext: bytes) -> "TaskResult":
        return dataclasses.replace(self, decrypted_output=bytes(plaintext))

    def to_rpc_dict(self) -> TaskResultDict:
        return {
            "taskId": self.task_id,
            "engStatus": self.eng_status.value,
            "encryptedAbiEncodedOutputs": to_hex(self.encrypted_abi_encoded_outputs),
            "workerTaskSig": to_hex(self.worker_task_sig),
        }

    @staticmethod
    def from_rpc_dict(
        task_id: TaskId,
        d: Mapping[str, Any],
        *,
        eth_status: Optional[EthStatus] = None,
    ) -> "TaskResult":
        return TaskResult(
            task_id=task_id,
            eng_status=EngStatus(str(d["engStatus"]).upper()),
            encrypted_abi_encoded_outputs=from_hex(d["encryptedAbiEncodedOutputs"]),
            worker_task_sig=from_hex(d["workerTaskSig"]),
            eth_status=eth_status,
        )


__all__ = [
    "Address",
    "TaskId",
    "EthStatus",
    "TERMINAL_STATUSES",
    "StatusCodes",
    "DEFAULT_STATUS_CODES",
    "EngStatus",
    "TaskDescriptorDict",
    "TaskRecordDict",
    "TaskResultDict",
    "TaskDescriptor",
    "TaskRecord",
    "TaskResult",
]
