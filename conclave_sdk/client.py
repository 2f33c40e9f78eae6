"""
conclave_sdk.client
===================

High-level client for the confidential task lifecycle:

    compute_task          build + submit         -> TaskDescriptor
    get_task_record_status one ledger read        -> TaskRecord
    wait_task_record      poll until terminal    -> TaskRecord
    get_task_result       fetch + verify         -> TaskResult
    decrypt_task_result   open with task key     -> TaskResult
    run_task              all of the above       -> TaskResult (decrypted)
    spawn_task            run_task as an asyncio.Task

Example
-------
    from conclave_sdk import ClientConfig, ConclaveClient, to_grains

    cfg = ClientConfig.from_env()
    async with ConclaveClient(cfg) as client:
        task = await client.compute_task(
            "add(uint256,uint256)", [(24, "uint256"), (67, "uint256")],
            gas_limit=100_000, gas_price=to_grains(1),
            sender="0x...", target="0x...",
        )
        record = await client.wait_task_record(task)
        result = await client.decrypt_task_result(await client.get_task_result(task))
        if result.succeeded:
            print(result.decode_output(["uint256"]))
        else:
            print(result.error_message)

Key handling
------------
Every task gets its own ephemeral key pair. The client keeps it in a per-task
keyring (keyed by task id) only until `decrypt_task_result` consumes it, then
wipes it. A failed submission or an unverifiable result wipes the key
immediately, and `discard_task` drops it on demand. `export_task_keys` hands
the material to the caller for decrypting in another process. Nothing else
is shared between concurrent lifecycles.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

from .abi import ArgSpec
from .config import ClientConfig
from .crypto.session import EphemeralKeyPair
from .decryptor import ResultDecryptor
from .errors import DecryptionError, SubmissionError, VerificationError
from .events import EventCallback, Stage, TaskLifecycle
from .fetcher import ResultFetcher
from .ledger import Ledger, RpcLedger
from .poller import PollPolicy, StatusPoller
from .rpc.http import AsyncRpcClient
from .task.builder import TaskBuilder
from .types import StatusCodes, TaskDescriptor, TaskId, TaskRecord, TaskResult
from .utils.bytes import from_hex, to_hex
from .worker import WorkerClient

log = logging.getLogger(__name__)

TaskRef = Union[TaskDescriptor, TaskId]


def _task_id(task: TaskRef) -> TaskId:
    return task.task_id if isinstance(task, TaskDescriptor) else str(task)


def _keyring_id(task_id: TaskId) -> TaskId:
    """Canonical lowercase 0x form, so ids that differ only in case share one entry."""
    return to_hex(from_hex(task_id))


def _same_task_id(a: TaskId, b: TaskId) -> bool:
    try:
        return from_hex(a) == from_hex(b)
    except ValueError:
        return False


@dataclass
class _TaskKeys:
    key_pair: EphemeralKeyPair
    worker_pub_key: bytes


class ConclaveClient:
    """
    Parameters
    ----------
    config : ClientConfig
        Endpoints, gas defaults, polling/retry policy, pinned worker keys.
    ledger : Ledger | None
        Ledger boundary; defaults to `RpcLedger` on `config.ledger_url`.
    worker : WorkerClient | None
        Worker Service client; defaults to one on `config.worker_url`.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        ledger: Optional[Ledger] = None,
        worker: Optional[WorkerClient] = None,
    ) -> None:
        self.config = config
        self._owned: list = []
        if ledger is None:
            ledger = RpcLedger(self._rpc(config.ledger_url), status_codes=StatusCodes(config.status_codes))
            self._owned.append(ledger)
        if worker is None:
            worker = WorkerClient(self._rpc(config.worker_url))
            self._owned.append(worker)
        self.ledger = ledger
        self.worker = worker

        self._builder = TaskBuilder()
        self._poller = StatusPoller(
            ledger,
            PollPolicy(
                interval=config.poll_interval,
                max_attempts=config.poll_max_attempts,
                backoff=config.poll_backoff,
                max_interval=config.poll_max_interval,
            ),
        )
        self._fetcher = ResultFetcher(worker, ledger, self._expected_worker)
        self._decryptor = ResultDecryptor()
        self._keyring: Dict[TaskId, _TaskKeys] = {}

    def _rpc(self, url: str) -> AsyncRpcClient:
        return AsyncRpcClient(
            url,
            timeout=self.config.request_timeout,
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
            backoff_max=self.config.backoff_max,
            headers=self.config.http_headers(),
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "ConclaveClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        for keys in self._keyring.values():
            keys.key_pair.wipe()
        self._keyring.clear()
        for closable in self._owned:
            await closable.aclose()

    # --- worker identity -------------------------------------------------

    def _signing_key(self) -> bytes:
        if not self.config.worker_signing_key:
            raise VerificationError("no worker signing key configured")
        return from_hex(self.config.worker_signing_key)

    def _expected_worker(self, task_id: TaskId) -> bytes:
        return self._signing_key()

    async def _worker_encryption_key(self, key_pair: EphemeralKeyPair) -> bytes:
        if self.config.worker_encryption_key:
            return from_hex(self.config.worker_encryption_key)
        return await self.worker.get_encryption_key(key_pair.public_key, self._signing_key())

    # --- lifecycle stages ------------------------------------------------

    async def _submit(
        self,
        lifecycle: TaskLifecycle,
        fn_signature: str,
        args: Sequence[ArgSpec],
        gas_limit: Optional[int],
        gas_price: Optional[int],
        sender: str,
        target: Optional[str],
    ) -> TaskDescriptor:
        contract = target or self.config.contract_address
        if not contract:
            raise SubmissionError("no target contract address given or configured")
        key_pair = EphemeralKeyPair.generate()
        try:
            worker_pub_key = await self._worker_encryption_key(key_pair)
            nonce = await self.ledger.get_task_nonce(sender)
            built = self._builder.build(
                fn_signature,
                args,
                self.config.default_gas_limit if gas_limit is None else gas_limit,
                self.config.default_gas_price if gas_price is None else gas_price,
                sender,
                worker_pub_key,
                contract_address=contract,
                nonce=nonce,
                key_pair=key_pair,
            )
            descriptor = built.descriptor
            task_id = await self.ledger.submit(descriptor)
            if not _same_task_id(task_id, descriptor.task_id):
                raise SubmissionError(
                    f"ledger assigned task id {task_id}, expected {descriptor.task_id}",
                    task_id=descriptor.task_id,
                )
        except BaseException:
            key_pair.wipe()
            raise

        task_id = descriptor.task_id
        self._keyring[_keyring_id(task_id)] = _TaskKeys(key_pair=key_pair, worker_pub_key=worker_pub_key)
        log.info("task %s submitted (fee=%d grains)", task_id, descriptor.fee)
        lifecycle.advance(Stage.SUBMITTED, descriptor)
        return descriptor

    # --- public API ------------------------------------------------------

    async def compute_task(
        self,
        fn_signature: str,
        args: Sequence[ArgSpec],
        gas_limit: Optional[int],
        gas_price: Optional[int],
        sender: str,
        target: Optional[str] = None,
        *,
        on_event: Optional[EventCallback] = None,
    ) -> TaskDescriptor:
        """Encrypt and submit a task. Emits SUBMITTED or ERROR."""
        lifecycle = TaskLifecycle(on_event)
        try:
            return await self._submit(lifecycle, fn_signature, args, gas_limit, gas_price, sender, target)
        except Exception as e:
            lifecycle.fail(e)
            raise

    async def get_task_record_status(self, task: TaskRef) -> TaskRecord:
        """Single ledger read of the task record."""
        return await self.ledger.read_record(_task_id(task))

    async def wait_task_record(
        self,
        task: TaskRef,
        *,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> TaskRecord:
        """Poll until the record is RECEIPT_VERIFIED or FAILED."""
        return await self._poller.await_terminal(_task_id(task), poll_interval, max_attempts)

    async def get_task_result(self, task: TaskRef, record: Optional[TaskRecord] = None) -> TaskResult:
        """
        Fetch and verify the worker result (record must be terminal). A result
        that fails verification cannot be trusted, so the task's key is wiped.
        """
        try:
            return await self._fetcher.fetch(_task_id(task), record)
        except VerificationError:
            self.discard_task(task)
            raise

    async def decrypt_task_result(
        self,
        result: TaskResult,
        *,
        key_pair: Optional[EphemeralKeyPair] = None,
        worker_pub_key: Optional[bytes] = None,
    ) -> TaskResult:
        """
        Decrypt with the task's ephemeral key. The keyring entry is consumed
        and wiped whether or not decryption succeeds.
        """
        keys = self._keyring.pop(_keyring_id(result.task_id), None)
        if key_pair is None or worker_pub_key is None:
            if keys is None:
                raise DecryptionError("no key material held for this task", task_id=result.task_id)
            key_pair = key_pair or keys.key_pair
            worker_pub_key = worker_pub_key or keys.worker_pub_key
        try:
            return self._decryptor.decrypt(result, key_pair, worker_pub_key)
        finally:
            if keys is not None:
                keys.key_pair.wipe()

    async def run_task(
        self,
        fn_signature: str,
        args: Sequence[ArgSpec],
        gas_limit: Optional[int],
        gas_price: Optional[int],
        sender: str,
        target: Optional[str] = None,
        *,
        on_event: Optional[EventCallback] = None,
    ) -> TaskResult:
        """Submit, wait, fetch and decrypt one task, emitting events in order."""
        lifecycle = TaskLifecycle(on_event)
        task_id: Optional[TaskId] = None
        try:
            descriptor = await self._submit(
                lifecycle, fn_signature, args, gas_limit, gas_price, sender, target
            )
            task_id = descriptor.task_id
            record = await self._poller.await_terminal(task_id)
            lifecycle.advance(Stage.TERMINAL, record)
            result = await self._fetcher.fetch(task_id, record)
            lifecycle.advance(Stage.FETCHED, result)
            result = await self.decrypt_task_result(result)
            lifecycle.advance(Stage.DECRYPTED, result)
            return result
        except Exception as e:
            lifecycle.fail(e)
            raise
        finally:
            if task_id is not None:
                self.discard_task(task_id)

    def spawn_task(self, *args: Any, **kwargs: Any) -> "asyncio.Task[TaskResult]":
        """Run `run_task` as its own cancellable asyncio.Task."""
        return asyncio.get_running_loop().create_task(self.run_task(*args, **kwargs))

    def discard_task(self, task: TaskRef) -> bool:
        """Wipe and forget the key material held for `task`. Returns False if none was held."""
        keys = self._keyring.pop(_keyring_id(_task_id(task)), None)
        if keys is None:
            return False
        keys.key_pair.wipe()
        return True

    def export_task_keys(self, task: TaskRef) -> Dict[str, str]:
        """
        Hex copy of the key material needed to decrypt `task` later, e.g. from
        another process via `decrypt_task_result(result, key_pair=..., worker_pub_key=...)`.
        The keyring entry stays in place.
        """
        task_id = _task_id(task)
        keys = self._keyring.get(_keyring_id(task_id))
        if keys is None:
            raise DecryptionError("no key material held for this task", task_id=task_id)
        return {
            "taskId": task_id,
            "userPrivateKey": to_hex(keys.key_pair.private_bytes()),
            "workerEncryptionKey": to_hex(keys.worker_pub_key),
        }


__all__ = ["ConclaveClient", "TaskRef"]
