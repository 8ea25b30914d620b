"""
Refresh cool-down breaker.

After a failed session renewal no further refresh is attempted until the
window elapses or a refresh succeeds. The breaker is owned by one client
instance.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 30.0


class RefreshCooldown:
    """
    Time-boxed suppression of refresh attempts.

    When an event loop is running the reset is scheduled with ``call_later``;
    otherwise a monotonic deadline is checked on every ``is_failed()`` call.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        if window_seconds < 0:
            raise ValueError("Cool-down window cannot be negative")
        self.window_seconds = window_seconds
        self._clock = clock
        self._failed = False
        self._expires_at: Optional[float] = None
        self._reset_timer: Optional[asyncio.TimerHandle] = None

    def is_failed(self) -> bool:
        if self._failed and self._expires_at is not None and self._clock() >= self._expires_at:
            self.reset()
        return self._failed

    def mark_failed(self) -> None:
        """Open the breaker and (re)start its window."""
        self._cancel_timer()
        self._failed = True
        self._expires_at = self._clock() + self.window_seconds

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._reset_timer = loop.call_later(self.window_seconds, self._expire)

        logger.info(f"Token refresh suppressed for {self.window_seconds:.0f}s")

    def reset(self) -> None:
        """Close the breaker immediately."""
        self._cancel_timer()
        if self._failed:
            logger.debug("Refresh cool-down cleared")
        self._failed = False
        self._expires_at = None

    def remaining(self) -> float:
        """Seconds left in the current window (0 when inactive)."""
        if not self.is_failed() or self._expires_at is None:
            return 0.0
        return max(0.0, self._expires_at - self._clock())

    def close(self) -> None:
        self._cancel_timer()

    def _expire(self) -> None:
        self._reset_timer = None
        self.reset()

    def _cancel_timer(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
