"""
Reservation sweeper background thread.

Periodically removes expired reservations. Allocation and release already
sweep lazily, so the thread only keeps idle stores from holding stale
entries.
"""

import threading

from extipam.services.reservation_store import ReservationStore
from extipam.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)


class ReservationSweeper:
    """Runs ``store.sweep()`` every ``interval`` seconds until stopped."""

    def __init__(self, store: ReservationStore, interval: float):
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sweep thread (no-op if disabled or running)."""
        if self.interval <= 0 or self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="reservation-sweeper", daemon=True
        )
        self._thread.start()
        logger.debug(f"Reservation sweeper started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to stop and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.store.sweep()
            except Exception as e:
                logger.error(f"Error sweeping reservations: {e}")
                logger.debug(format_traceback(e))
