"""
conclave_sdk.poller
===================

Wait for a task record to reach a terminal status.

State machine
-------------
Polling starts from RECORD_CREATED. On every read:

- same status as before        -> keep waiting
- lower status than before     -> InconsistentStateError (reorg / protocol bug)
- RECEIPT_VERIFIED or FAILED   -> return the record immediately
- record gone                  -> NotFoundError (propagated from the ledger)

After `max_attempts` reads without a terminal status the wait fails with
TaskTimeoutError carrying the last observed status.

Delays between reads start at `interval` and are multiplied by `backoff`
after each read, capped at `max_interval` (backoff=1.0 gives a fixed delay).

Cancellation
------------
`await_terminal` is a plain coroutine: cancelling the task awaiting it (or the
`asyncio.Task` returned by `start`) interrupts the current sleep or read and
resolves with CancelledError. No further reads are issued and no background
loop is left behind.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import InconsistentStateError, TaskTimeoutError
from .ledger import Ledger
from .types import EthStatus, TaskId, TaskRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    interval: float = 1.0
    max_attempts: int = 60
    backoff: float = 1.0
    max_interval: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.interval < 0 or self.max_interval < 0:
            raise ValueError("intervals must be non-negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")

    def delay(self, attempt: int) -> float:
        """Sleep after the given (1-based) attempt."""
        return min(self.interval * (self.backoff ** (attempt - 1)), max(self.max_interval, self.interval))


class StatusPoller:
    """Polls one ledger; safe to share across concurrent waits (no state)."""

    def __init__(self, ledger: Ledger, policy: Optional[PollPolicy] = None) -> None:
        self._ledger = ledger
        self._policy = policy or PollPolicy()

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    async def await_terminal(
        self,
        task_id: TaskId,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> TaskRecord:
        policy = self._policy
        if poll_interval is not None or max_attempts is not None:
            policy = PollPolicy(
                interval=policy.interval if poll_interval is None else poll_interval,
                max_attempts=policy.max_attempts if max_attempts is None else max_attempts,
                backoff=policy.backoff,
                max_interval=policy.max_interval,
            )

        last_status = EthStatus.RECORD_CREATED
        last_block: Optional[int] = None
        for attempt in range(1, policy.max_attempts + 1):
            record = await self._ledger.read_record(task_id)
            status = record.eth_status
            log.debug("poll %s attempt=%d status=%s", task_id, attempt, status.name)

            if status < last_status:
                raise InconsistentStateError(
                    "task status regressed",
                    task_id=task_id,
                    previous_status=last_status,
                    observed_status=status,
                )
            if last_block is not None and record.block_number != last_block:
                log.warning(
                    "task %s record moved from block %s to %s",
                    task_id,
                    last_block,
                    record.block_number,
                )
            last_status, last_block = status, record.block_number

            if status.is_terminal:
                log.info("task %s terminal: %s after %d reads", task_id, status.name, attempt)
                return record
            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.delay(attempt))

        raise TaskTimeoutError(
            f"no terminal status after {policy.max_attempts} reads",
            task_id=task_id,
            last_status=last_status,
            attempts=policy.max_attempts,
        )

    def start(
        self,
        task_id: TaskId,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> "asyncio.Task[TaskRecord]":
        """Schedule `await_terminal` as a cancellable task on the running loop."""
        return asyncio.get_running_loop().create_task(
            self.await_terminal(task_id, poll_interval, max_attempts),
            name=f"poll:{task_id}",
        )


__all__ = ["PollPolicy", "StatusPoller"]
