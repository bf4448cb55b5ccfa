from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..constants import AUDIT_EVERY_MS, AUDIT_MAX_BATCH, AUDIT_MAX_QUEUE_SIZE
from ..models import ActivityLogEntry
from .stats import RuntimeStats

if TYPE_CHECKING:
    from ..interfaces import ActivityLog

log = logging.getLogger("tribunal.audit")


@dataclass(frozen=True)
class AuditPolicy:
    max_batch: int = AUDIT_MAX_BATCH
    every_ms: int = AUDIT_EVERY_MS
    max_queue_size: int = AUDIT_MAX_QUEUE_SIZE
    micro_sleep_seconds: float = 0.0


class AuditDispatcher:
    """Paced, best-effort writer for activity log entries.

    ``dispatch`` never raises and never waits on the log. Entries that do not
    fit in the queue, or whose append fails, are counted and lost; the
    mutation that produced them stands either way.
    """

    def __init__(
        self,
        sink: ActivityLog,
        policy: Optional[AuditPolicy] = None,
        stats: Optional[RuntimeStats] = None,
    ) -> None:
        self._sink = sink
        self.policy = policy or AuditPolicy()
        self.stats = stats or RuntimeStats()
        self._q: asyncio.Queue[ActivityLogEntry] = asyncio.Queue(maxsize=max(1, self.policy.max_queue_size))
        self._stop = asyncio.Event()
        self._runner: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._runner and not self._runner.done():
            return
        self._stop.clear()
        self._runner = asyncio.create_task(self._run(), name="tribunal-audit-queue")
        log.info(
            "AuditDispatcher started (max_batch=%s every_ms=%s max_size=%s)",
            self.policy.max_batch,
            self.policy.every_ms,
            self.policy.max_queue_size,
        )

    async def stop(self) -> None:
        self._stop.set()
        if self._runner:
            await self._runner
            self._runner = None
        # Whatever is still queued gets one last attempt.
        await self.flush()
        log.info("AuditDispatcher stopped")

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def size(self) -> int:
        return self._q.qsize()

    def dispatch(self, entry: ActivityLogEntry) -> bool:
        try:
            self._q.put_nowait(entry)
        except asyncio.QueueFull:
            self.stats.audit_dropped += 1
            log.warning(
                "Audit queue full; dropped %s entry for reviewer %s",
                entry.activity_type.value,
                entry.reviewer_id,
            )
            return False
        self.stats.audit_enqueued += 1
        return True

    async def flush(self) -> int:
        """Write every pending entry now. Returns how many were written."""
        written = 0
        while True:
            try:
                entry = self._q.get_nowait()
            except asyncio.QueueEmpty:
                return written
            if await self._write(entry):
                written += 1

    async def _write(self, entry: ActivityLogEntry) -> bool:
        try:
            await self._sink.append(entry)
            self.stats.audit_written += 1
            return True
        except Exception:
            self.stats.audit_failed += 1
            log.exception(
                "Failed to append %s activity for reviewer %s",
                entry.activity_type.value,
                entry.reviewer_id,
            )
            return False
        finally:
            self._q.task_done()

    async def _run(self) -> None:
        tick_sleep = max(1, self.policy.every_ms) / 1000.0
        max_batch = max(1, self.policy.max_batch)
        micro = max(0.0, float(self.policy.micro_sleep_seconds))

        while not self._stop.is_set():
            batch: list[ActivityLogEntry] = []
            for _ in range(max_batch):
                try:
                    batch.append(self._q.get_nowait())
                except asyncio.QueueEmpty:
                    break

            for entry in batch:
                await self._write(entry)
                if micro:
                    await asyncio.sleep(micro)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=tick_sleep)
            except asyncio.TimeoutError:
                pass
