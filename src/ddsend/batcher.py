"""
Batch accumulator: buffers encoded lines and flushes them on size, count or time.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import MAX_ARRAY_SIZE, MAX_CONTENT_BYTE_SIZE, normalize_interval
from .payload import prepare_line

logger = logging.getLogger(__name__)

DEFAULT_INTAKE_SIZE = 1024

# Control items sent through the intake queue
_FLUSH = object()
_STOP = object()


@dataclass
class Batch:
    """Ordered lines waiting to be sent, plus their total size in bytes."""

    lines: List[bytes] = field(default_factory=list)
    size: int = 0
    trigger: str = ""

    def append(self, line: bytes) -> None:
        self.lines.append(line)
        self.size += len(line)

    def __len__(self) -> int:
        return len(self.lines)


class BatchAccumulator:
    """
    Collects encoded lines on a single worker thread.

    The worker is the only code that touches the current batch. A batch is
    handed to ``on_flush`` when the next line would reach ``max_bytes``, when
    it already holds ``max_entries`` lines, or when ``interval`` elapses.
    ``on_flush`` runs on the worker thread and must not block on I/O.

    Example:
        acc = BatchAccumulator(on_flush=dispatcher.submit, is_json=True)
        acc.add(b'{"msg":"hello"}\\n')
        acc.close()
    """

    def __init__(
        self,
        on_flush: Callable[[Batch], None],
        is_json: bool = True,
        interval: Optional[float] = None,
        max_bytes: int = MAX_CONTENT_BYTE_SIZE,
        max_entries: int = MAX_ARRAY_SIZE,
        intake_size: int = DEFAULT_INTAKE_SIZE,
        enqueue_timeout: Optional[float] = 1.0,
        debug: bool = False,
    ):
        """
        Initialize BatchAccumulator and start its worker thread.

        Args:
            on_flush: Called with each completed batch (possibly empty on timer)
            is_json: Lines are JSON objects (else plain text)
            interval: Seconds between timed flushes, defaults to 30
            max_bytes: Payload byte ceiling
            max_entries: Maximum lines per batch
            intake_size: Capacity of the intake queue
            enqueue_timeout: Seconds add() waits on a full queue before dropping
            debug: Emit diagnostics for dropped lines
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if max_bytes <= 0:
            raise ValueError("max_bytes must be positive")

        self.on_flush = on_flush
        self.is_json = is_json
        self.interval = normalize_interval(interval)
        self.max_bytes = max_bytes
        self.max_entries = max_entries
        self.enqueue_timeout = enqueue_timeout
        self.debug = debug

        self._intake: "queue.Queue[object]" = queue.Queue(maxsize=intake_size)
        self._batch = Batch()
        self._closed = False
        self._close_lock = threading.Lock()

        self._stats_lock = threading.Lock()
        self._received = 0
        self._discarded = 0
        self._dropped = 0
        self._flushes = 0

        self._thread = threading.Thread(
            target=self._run, daemon=True, name="ddsend-batcher"
        )
        self._thread.start()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def add(self, line: bytes) -> bool:
        """
        Enqueue one encoded line.

        Returns:
            False if the line was dropped (closed, or the intake stayed full)
        """
        # Nothing is enqueued after _STOP
        with self._close_lock:
            if self._closed:
                self._count_dropped("accumulator is closed")
                return False
            try:
                self._intake.put(line, timeout=self.enqueue_timeout)
            except queue.Full:
                self._count_dropped("intake queue is full")
                return False
        return True

    def flush(self) -> None:
        """Ask the worker to flush the current batch after pending lines."""
        with self._close_lock:
            if self._closed:
                return
            try:
                self._intake.put(_FLUSH, timeout=self.enqueue_timeout)
            except queue.Full:
                if self.debug:
                    logger.warning("Skipping flush request: intake queue is full")

    def wait_idle(self) -> None:
        """Block until every enqueued item has been processed."""
        self._intake.join()

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after draining the intake and flushing the rest."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._intake.put(_STOP)
        self._thread.join(timeout=timeout)

    @property
    def pending_count(self) -> int:
        """Lines in the current batch (approximate when read off-thread)."""
        return len(self._batch)

    @property
    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "received": self._received,
                "discarded": self._discarded,
                "dropped": self._dropped,
                "flushes": self._flushes,
            }

    def _count_dropped(self, reason: str) -> None:
        with self._stats_lock:
            self._dropped += 1
        if self.debug:
            logger.warning("Dropping log line: %s", reason)

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _run(self) -> None:
        deadline = time.monotonic() + self.interval
        while True:
            now = time.monotonic()
            if now >= deadline:
                self._flush_batch("timer")
                deadline = now + self.interval
                continue

            try:
                item = self._intake.get(timeout=deadline - now)
            except queue.Empty:
                continue

            try:
                if item is _STOP:
                    self._flush_batch("close")
                    return
                if item is _FLUSH:
                    self._flush_batch("flush")
                else:
                    self._add_line(item)
            finally:
                self._intake.task_done()

    def _add_line(self, line: bytes) -> None:
        with self._stats_lock:
            self._received += 1
        if not line or not line.strip():
            with self._stats_lock:
                self._discarded += 1
            return

        line = prepare_line(line, self.is_json)
        if self._batch.size + len(line) >= self.max_bytes:
            self._flush_batch("size")
        elif len(self._batch) >= self.max_entries:
            self._flush_batch("count")
        self._batch.append(line)

    def _flush_batch(self, trigger: str) -> None:
        batch, self._batch = self._batch, Batch()
        batch.trigger = trigger
        with self._stats_lock:
            self._flushes += 1
        try:
            self.on_flush(batch)
        except Exception:
            # A failing callback must not kill the worker
            logger.exception("Flush callback failed for %d line(s)", len(batch))
