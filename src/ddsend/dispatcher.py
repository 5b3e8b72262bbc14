"""
Dispatcher: turns completed batches into payloads and delivers them in the background.
"""

import logging
import threading
import time
from typing import Optional, Set

from .batcher import Batch
from .payload import build_payload
from .sender import DatadogSender

logger = logging.getLogger(__name__)


class Dispatcher:
    """Hands each batch to the sender on its own daemon thread."""

    def __init__(self, sender: DatadogSender, debug: bool = False):
        self._sender = sender
        self.debug = debug
        self._inflight: Set[threading.Thread] = set()
        self._lock = threading.Lock()

    @property
    def is_json(self) -> bool:
        return self._sender.is_json

    def submit(self, batch: Batch) -> None:
        """Deliver a batch without blocking the caller. Empty batches are ignored."""
        if not batch:
            return

        thread = threading.Thread(
            target=self._run, args=(batch,), daemon=True, name="ddsend-dispatch"
        )
        with self._lock:
            self._inflight.add(thread)
        try:
            thread.start()
        except RuntimeError:
            with self._lock:
                self._inflight.discard(thread)
            raise

    def _run(self, batch: Batch) -> None:
        try:
            self.dispatch(batch)
        finally:
            with self._lock:
                self._inflight.discard(threading.current_thread())

    def dispatch(self, batch: Batch) -> bool:
        """Build the payload for a batch and send it synchronously."""
        payload = build_payload(batch.lines, self.is_json)
        if not payload:
            return True

        if self.debug:
            logger.debug(
                "Dispatching %d line(s), %d bytes (trigger=%s)",
                len(batch),
                len(payload),
                batch.trigger or "manual",
            )
        return self._sender.deliver(payload)

    @property
    def inflight_count(self) -> int:
        with self._lock:
            return len(self._inflight)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight deliveries to finish.

        Returns:
            True if nothing is left in flight
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._inflight)
            if not pending:
                return True
            for thread in pending:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                thread.join(timeout=remaining)
