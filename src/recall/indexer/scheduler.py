"""Background timer for the incremental indexer.

One daemon thread runs the indexer, then sleeps for the interval. When a run
reports more pending messages the next run starts immediately. Stopping is
cooperative: the flag is checked between runs, never inside one.
"""

from __future__ import annotations

import logging
import threading

from recall.indexer.service import MessageIndexer

logger = logging.getLogger(__name__)


class IndexScheduler:
    def __init__(self, indexer: MessageIndexer, interval_ms: int = 60_000) -> None:
        if interval_ms < 1:
            raise ValueError("interval_ms must be >= 1")
        self._indexer = indexer
        self._interval_s = interval_ms / 1000.0
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop; the first run happens immediately. No-op if already started."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="recall-indexer", daemon=True)
        self._thread.start()
        logger.info("Background indexer started (interval: %.0fms)", self._interval_s * 1000)

    def trigger(self) -> bool:
        """Request a run now. Ignored (returns False) while a run is in progress."""
        if self._indexer.is_running:
            return False
        self._wake.set()
        return True

    def stop(self, timeout: float | None = None) -> None:
        """Ask the loop to exit after the current run and wait for it."""
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Background indexer stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            self._wake.clear()
            result = self._indexer.run_safe()
            if self._stop.is_set():
                break
            if result is not None and result.has_more:
                continue
            self._wake.wait(self._interval_s)
