"""Rate limiting for forced JWKS refreshes.

A token with an unknown kid makes the key provider re-fetch the key set, in
case the provider has rotated keys. Without a limit, anyone can make us hit
the JWKS endpoint once per request by sending random kids. `RefreshGate`
lets at most one forced refresh through per interval and logs when denials
pile up.
"""

from __future__ import annotations

import threading
import time
from typing import Final

import structlog

logger = structlog.get_logger(__name__)

_DEFAULT_INTERVAL: Final[float] = 60.0
"""Default minimum interval between forced refreshes in seconds."""

_DEFAULT_ALERT_THRESHOLD: Final[int] = 40
"""Denials within one interval before a warning is logged."""


class RefreshGate:
    """Allows one refresh per ``min_interval`` seconds.

    Thread Safety:
        `allow` runs under an internal lock.

    Attributes:
        name: Label used in log events, usually the JWKS URI.
    """

    def __init__(
        self,
        min_interval: float = _DEFAULT_INTERVAL,
        alert_threshold: int = _DEFAULT_ALERT_THRESHOLD,
        *,
        name: str = "",
    ) -> None:
        """
        Raises:
            ValueError: min_interval is not positive or alert_threshold < 1.
        """
        if min_interval <= 0:
            raise ValueError(f"min_interval must be positive, got {min_interval}")
        if alert_threshold < 1:
            raise ValueError(f"alert_threshold must be at least 1, got {alert_threshold}")

        self.name = name
        self._min_interval = min_interval
        self._alert_threshold = alert_threshold

        self._lock = threading.Lock()
        self._next_allowed_at: float = 0.0
        self._denied: int = 0

    @property
    def denied(self) -> int:
        """Denials since the last allowed refresh."""
        return self._denied

    def allow(self) -> bool:
        """Return True and start a new interval, or False and count a denial."""
        now = time.time()

        with self._lock:
            if now < self._next_allowed_at:
                self._denied += 1
                if self._denied == self._alert_threshold:
                    logger.warning(
                        "jwks_refresh_throttled",
                        gate=self.name,
                        denied=self._denied,
                        retry_in=round(self._next_allowed_at - now, 1),
                    )
                return False

            self._next_allowed_at = now + self._min_interval
            self._denied = 0
            return True

    def reset(self) -> None:
        """Let the next `allow` through regardless of the interval."""
        with self._lock:
            self._next_allowed_at = 0.0
            self._denied = 0
