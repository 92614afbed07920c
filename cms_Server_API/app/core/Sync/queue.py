# Sync/queue.py
# Debounced, coalescing write-behind queue in front of the remote commit transport.
import asyncio
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger

from .models import PendingSyncFile
from .transport import GitDataTransport


class SyncQueue:
    """
    Collects collection-file writes and mirrors them remotely in batches.

    - `enqueue()` keeps only the newest payload per filename and restarts the debounce timer.
    - When the timer fires the pending map is drained synchronously, before any network
      call, so writes arriving mid-flush start a fresh cycle instead of joining the batch.
    - Failures never reach the caller. A failed batch is retried with exponential backoff,
      up to `max_retries` times. Files with a newer payload (still pending, or already handed
      to a later batch) are left out of the retry so stale content never overwrites it.

    With no transport configured the queue is disabled and `enqueue()` is a no-op.
    """

    def __init__(self, transport: Optional[GitDataTransport] = None, debounce_seconds: float = 0.8,
                 max_retries: int = 3, max_backoff_seconds: float = 60.0):
        self.transport = transport
        self.debounce_seconds = debounce_seconds
        self.max_retries = max_retries
        self.max_backoff_seconds = max_backoff_seconds
        self._pending: Dict[str, str] = {}
        # Per-filename write sequence: pending payloads, and the newest one handed to a batch.
        self._seq = 0
        self._pending_seq: Dict[str, int] = {}
        self._drained_seq: Dict[str, int] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Set[asyncio.Task] = set()
        self._retry_attempt = 0

    @property
    def enabled(self) -> bool:
        return self.transport is not None

    @property
    def pending(self) -> Dict[str, str]:
        return dict(self._pending)

    def enqueue(self, filename: str, content: str) -> None:
        if not self.enabled:
            return
        self._seq += 1
        self._pending[filename] = content
        self._pending_seq[filename] = self._seq
        self._schedule(self.debounce_seconds)

    def _schedule(self, delay: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _drain(self) -> Tuple[List[PendingSyncFile], Dict[str, int]]:
        files = [PendingSyncFile(name, content) for name, content in self._pending.items()]
        seqs = dict(self._pending_seq)
        for name, seq in seqs.items():
            self._drained_seq[name] = max(self._drained_seq.get(name, 0), seq)
        self._pending.clear()
        self._pending_seq.clear()
        return files, seqs

    def _on_timer(self) -> None:
        self._timer = None
        files, seqs = self._drain()
        if not files:
            return
        task = asyncio.ensure_future(self._flush_batch(files, seqs))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _flush_batch(self, files: List[PendingSyncFile], seqs: Dict[str, int]) -> bool:
        names = ", ".join(f.name for f in files)
        try:
            commit_sha = await self.transport.commit_files(files)
        except Exception as e:
            logger.warning(f"[SyncQueue] Remote sync failed for {names}: {e}")
            self._requeue(files, seqs)
            return False
        self._retry_attempt = 0
        logger.info(f"[SyncQueue] Synced {names} ({commit_sha})")
        return True

    def _is_superseded(self, name: str, seq: int) -> bool:
        return name in self._pending or self._drained_seq.get(name, 0) > seq

    def _requeue(self, files: List[PendingSyncFile], seqs: Dict[str, int]) -> None:
        # A newer payload for the same file, pending or already handed to another batch, wins.
        stale = [f for f in files if not self._is_superseded(f.name, seqs[f.name])]
        if not stale:
            logger.info(f"[SyncQueue] Failed batch already superseded by newer writes: "
                        f"{', '.join(f.name for f in files)}")
            return
        self._retry_attempt += 1
        if self._retry_attempt > self.max_retries:
            logger.error(f"[SyncQueue] Dropping batch after {self.max_retries} failed retries: "
                         f"{', '.join(f.name for f in stale)}")
            self._retry_attempt = 0
            return
        for pending in stale:
            self._pending[pending.name] = pending.content
            self._pending_seq[pending.name] = seqs[pending.name]
        delay = min(self.debounce_seconds * (2 ** self._retry_attempt), self.max_backoff_seconds)
        logger.info(f"[SyncQueue] Retry {self._retry_attempt}/{self.max_retries} in {delay:.2f}s")
        self._schedule(delay)

    async def flush(self) -> bool:
        """Flushes whatever is pending right now. Returns False when the commit failed."""
        self._cancel_timer()
        files, seqs = self._drain()
        if not files:
            return True
        return await self._flush_batch(files, seqs)

    async def aclose(self) -> None:
        """Flushes pending files, waits for in-flight commits and releases the transport."""
        if not self.enabled:
            return
        await self.flush()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        self._cancel_timer()
        if self._pending:
            logger.warning(f"[SyncQueue] Shutting down with unsynced files: {', '.join(self._pending)}")
        await self.transport.aclose()
