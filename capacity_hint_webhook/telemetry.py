"""
Replica counts observed while admitting Deployments.

`record` never blocks the admission path: counts go into a bounded queue and
are dropped when it is full. A background worker drains the queue into an
optional KeyValueStore as a running summary.
"""
import logging
import queue
import threading
from typing import Any

from .store.interface import KeyValueStore

log = logging.getLogger("capacity-hint")

SUMMARY_KEY = "deployment-replicas"


class ReplicaCountSink:
    def __init__(
        self,
        datastore: KeyValueStore | None = None,
        maxsize: int = 1000,
        ttl_seconds: int | None = None,
    ) -> None:
        self._queue: queue.Queue[int] = queue.Queue(maxsize=max(1, maxsize))
        self._datastore = datastore
        self._ttl_seconds = ttl_seconds
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def dropped(self) -> int:
        return self._dropped

    def pending(self) -> int:
        return self._queue.qsize()

    def record(self, count: int) -> bool:
        """Queue a replica count. Returns False when the sink is full and the count was dropped."""
        try:
            self._queue.put_nowait(int(count))
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
            log.debug("Replica sink full; dropped count %s", count)
            return False
        return True

    def drain(self, block: bool = False, timeout: float | None = None) -> int:
        """Move queued counts into the datastore summary. Returns how many counts were consumed."""
        counts: list[int] = []
        try:
            counts.append(self._queue.get(block=block, timeout=timeout))
            while True:
                counts.append(self._queue.get_nowait())
        except queue.Empty:
            pass

        if not counts:
            return 0

        log.info("Observed %d deployment replica counts (last=%d)", len(counts), counts[-1])
        if self._datastore is not None:
            self._datastore.set(
                SUMMARY_KEY, self._summarize(counts), ttl_seconds=self._ttl_seconds
            )
        return len(counts)

    def _summarize(self, counts: list[int]) -> dict[str, Any]:
        current = self._datastore.get(SUMMARY_KEY) if self._datastore else None
        if not isinstance(current, dict):
            current = {"last": 0, "max": 0, "observed": 0}
        return {
            "last": counts[-1],
            "max": max([int(current.get("max", 0))] + counts),
            "observed": int(current.get("observed", 0)) + len(counts),
        }

    def start(self) -> None:
        if self._thread is not None:
            return

        def _loop():
            while True:
                try:
                    self.drain(block=True, timeout=5)
                except Exception:
                    log.error("Replica sink drain failed", exc_info=True)

        self._thread = threading.Thread(target=_loop, name="replica-sink", daemon=True)
        self._thread.start()
        log.info("Replica sink worker started")
