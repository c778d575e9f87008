"""Clock with optional virtual time.

Responsibilities:
- Supply "now" (tz-aware UTC) to the lifecycle engine and sweeps
- Freeze time for tests
- Shift time forward (days, hours, minutes) for operator testing
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from roster.logging_config import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Time source with a movable offset.

    Unfrozen, it follows the real clock plus any offset accumulated through
    advance_time/set_time. Frozen, it stays on a fixed instant that only
    moves when advanced or set.

    Args:
        frozen_at: instant to freeze at; None follows the real clock
    """

    def __init__(self, frozen_at: Optional[datetime] = None) -> None:
        self._lock = threading.RLock()
        self._frozen_at = frozen_at
        self._offset = timedelta(0)

        logger.info(
            "clock_initialized",
            frozen=frozen_at is not None,
            current_time=self.now().isoformat(),
        )

    @property
    def frozen(self) -> bool:
        return self._frozen_at is not None

    @property
    def offset(self) -> timedelta:
        """Total virtual shift applied since creation or the last reset."""
        with self._lock:
            return self._offset

    def now(self) -> datetime:
        """Current (virtual) time as a tz-aware UTC datetime."""
        with self._lock:
            if self._frozen_at is not None:
                return self._frozen_at + self._offset
            return utc_now() + self._offset

    def advance_time(self, days: int = 0, hours: int = 0, minutes: int = 0) -> dict:
        """Move virtual time forward.

        Args:
            days: number of days to advance
            hours: number of hours to advance
            minutes: number of minutes to advance

        Returns:
            Dictionary with old_time, new_time and advanced (timedelta)

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed.")

        delta = timedelta(days=days, hours=hours, minutes=minutes)
        with self._lock:
            old_time = self.now()
            self._offset += delta
            new_time = self.now()

        if delta:
            logger.info(
                "time_advanced",
                old_time=old_time.isoformat(),
                new_time=new_time.isoformat(),
                days=days,
                hours=hours,
                minutes=minutes,
            )
        return {"old_time": old_time, "new_time": new_time, "advanced": delta}

    def set_time(self, timestamp: datetime) -> dict:
        """Jump virtual time to a specific instant.

        Args:
            timestamp: target instant (naive values are taken as UTC)

        Returns:
            Dictionary with old_time and new_time

        Raises:
            ValueError: If timestamp is before the current virtual time
        """
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        with self._lock:
            old_time = self.now()
            if timestamp < old_time:
                raise ValueError(
                    f"cannot set time backwards, current: {old_time.isoformat()}, "
                    f"requested: {timestamp.isoformat()}"
                )
            self._offset += timestamp - old_time
            new_time = self.now()

        logger.info("time_set", old_time=old_time.isoformat(), new_time=new_time.isoformat())
        return {"old_time": old_time, "new_time": new_time}

    def reset_time(self) -> dict:
        """Drop the virtual offset."""
        with self._lock:
            old_time = self.now()
            self._offset = timedelta(0)
            new_time = self.now()

        logger.info("time_reset", old_time=old_time.isoformat(), new_time=new_time.isoformat())
        return {"old_time": old_time, "new_time": new_time}


_clock_instance: Optional[Clock] = None
_clock_lock = threading.Lock()


def get_clock() -> Clock:
    global _clock_instance
    if _clock_instance is None:
        with _clock_lock:
            if _clock_instance is None:
                _clock_instance = Clock()
    return _clock_instance


def reset_clock() -> None:
    global _clock_instance
    with _clock_lock:
        _clock_instance = Clock()
