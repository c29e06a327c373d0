"""Background task that periodically removes expired content."""

import threading
from typing import Optional

from app.content_store.service import ContentService
from app.core.logging import get_logger

logger = get_logger()


class ExpirySweeper:
    """Run :meth:`ContentService.sweep` on a fixed interval in a daemon thread.

    The first sweep runs ``initial_delay`` seconds after :meth:`start`, then
    every ``interval`` seconds until :meth:`stop` is called. A failing sweep
    is logged and the loop carries on.
    """

    def __init__(
        self,
        service: ContentService,
        interval: float = 300.0,
        initial_delay: float = 5.0,
    ):
        """Initialize the sweeper.

        Args:
            service: Content service whose expired records are removed
            interval: Seconds between sweeps
            initial_delay: Seconds before the first sweep after start
        """
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self.service = service
        self.interval = interval
        self.initial_delay = max(initial_delay, 0.0)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread. Calling start twice is a no-op."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="expiry-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(
            "sweeper_started",
            interval_seconds=self.interval,
            initial_delay_seconds=self.initial_delay,
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the loop to exit and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("sweeper_stopped")

    def run_once(self) -> int:
        """Run a single sweep, logging instead of raising on failure.

        Returns:
            Number of records removed, 0 if the sweep failed
        """
        try:
            return self.service.sweep()
        except Exception as e:
            logger.error("sweep_failed", error=str(e), exc_info=True)
            return 0

    def _run(self) -> None:
        if self._stop_event.wait(self.initial_delay):
            return
        while True:
            self.run_once()
            if self._stop_event.wait(self.interval):
                return
