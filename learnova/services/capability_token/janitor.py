"""Background purge of expired token usage records."""

import threading
from datetime import timedelta
from typing import TYPE_CHECKING

from learnova.utils.logger import get_logger

from .service import utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from learnova.database.handlers import TokenUsageHandler
else:
    Callable = object
    datetime = object
    TokenUsageHandler = object

logger = get_logger(__name__)


class TokenUsageJanitor:
    """Deletes usage records once they are past expiry plus the retention window."""

    def __init__(
        self,
        usage_handler: TokenUsageHandler,
        *,
        retention: timedelta,
        interval: float,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._usage = usage_handler
        self.retention = retention
        self.interval = interval
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> int:
        """Purge once, returns the number of records removed."""
        cutoff = self._clock() - self.retention
        return self._usage.purge_expired(older_than=cutoff)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        def janitor_thread() -> None:
            while not self._stop_event.wait(self.interval):
                try:
                    self.run_once()
                except Exception:  # This is a background thread so it won't crash the app
                    logger.exception("Token usage purge failed")

        logger.info("Starting token usage janitor, every %ss", self.interval)
        self._stop_event.clear()
        self._thread = threading.Thread(target=janitor_thread, name="TokenUsageJanitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
