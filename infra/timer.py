"""Cancellable fixed-rate timer running on a daemon thread."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """
    Call `callback` every `interval` seconds until cancelled.

    Firings follow a fixed monotonic schedule (start + n * interval), so a slow
    callback does not push later firings back. The callback should return
    quickly; long work belongs on its own thread. Missed slots (callback
    slower than the interval) are skipped, not replayed in a burst.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "RepeatingTimer"):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = float(interval)
        self._callback = callback
        self._name = name
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.firings = 0

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._cancelled.is_set()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self._name} already started")
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def cancel(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Disarm the timer. No firing starts after this returns."""
        self._cancelled.set()
        if wait and self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        next_fire = time.monotonic() + self.interval
        while not self._cancelled.wait(max(0.0, next_fire - time.monotonic())):
            self.firings += 1
            try:
                self._callback()
            except Exception as e:
                logger.error(f"{self._name} callback failed: {e}", exc_info=True)
            now = time.monotonic()
            next_fire += self.interval
            if next_fire <= now:
                missed = int((now - next_fire) // self.interval) + 1
                next_fire += missed * self.interval
                logger.warning(f"{self._name} fell behind; skipped {missed} firing(s)")
        logger.debug(f"{self._name} stopped after {self.firings} firing(s)")
