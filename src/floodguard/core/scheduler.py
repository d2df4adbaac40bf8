"""
Background eviction of expired message records.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from floodguard.core.policy import SettingsHolder
from floodguard.core.store import RecordStore, now_ms
from floodguard.utils.logging import get_logger

logger = get_logger(__name__)


class EvictionScheduler:
    """
    Periodically sweeps the record store.

    The retention horizon is the longest window of the policy active at each
    tick. Errors in a sweep are logged and the loop carries on.

    Attributes:
        interval: Seconds between sweeps
    """

    def __init__(
        self,
        store: RecordStore,
        settings: SettingsHolder,
        interval: float = 60,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.settings = settings
        self.interval = interval
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="floodguard-eviction", daemon=True
        )
        self._thread.start()
        logger.info("Eviction scheduler started (every %ss)", self.interval)

    def stop(self, timeout: Optional[float] = 5) -> None:
        """Signal the loop to exit and wait for a sweep in progress to finish."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Eviction thread did not stop within %ss", timeout)
        logger.info("Eviction scheduler stopped")

    def run_once(self) -> int:
        """
        Run a single sweep.

        Returns:
            int: Records removed, 0 if the sweep failed
        """
        try:
            max_age = self.settings.current.spam.max_window_ms()
            return self.store.sweep(max_age, self._clock())
        except Exception as e:
            logger.exception("Error in eviction sweep: %s", e)
            return 0

    def _run(self) -> None:
        stop = self._stop
        # wait() returns True as soon as stop is set
        while not stop.wait(self.interval):
            self.run_once()
