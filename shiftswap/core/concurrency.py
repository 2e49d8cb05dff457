"""Write serialization for master schedule aggregates.

Two layers:
- schedule_lock: in-process lock per schedule id, bounded wait
- run_with_retry: re-runs a whole read-validate-commit attempt when a
  version-conditioned write lost against another process
"""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from loguru import logger

from shiftswap.config.settings import settings
from shiftswap.core.errors import ConcurrentModificationError, PersistenceTimeoutError

T = TypeVar("T")


class ScheduleLockRegistry:
    """Lazily created threading.Lock per schedule id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, schedule_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(schedule_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[schedule_id] = lock
            return lock

    def reset(self) -> None:
        with self._guard:
            self._locks.clear()


_registry = ScheduleLockRegistry()


def reset_schedule_locks() -> None:
    """Drop all known locks. Only safe while no lock is held (tests)."""
    _registry.reset()


@contextmanager
def schedule_lock(schedule_id: str, timeout: float | None = None) -> Generator[None, None, None]:
    """Hold the write lock of a master schedule.

    Args:
        schedule_id: Master schedule id
        timeout: Maximum wait in seconds (defaults to SCHEDULE_LOCK_TIMEOUT_SECONDS)

    Raises:
        PersistenceTimeoutError: If the lock could not be acquired in time
    """
    wait = settings.schedule_lock_timeout_seconds if timeout is None else timeout
    lock = _registry.get(schedule_id)
    if not lock.acquire(timeout=wait):
        logger.bind(schedule_id=schedule_id, timeout=wait).warning("Schedule lock wait timed out")
        raise PersistenceTimeoutError(f"timed out waiting for schedule {schedule_id}")
    try:
        yield
    finally:
        lock.release()


def _backoff_delay(attempt: int, base_delay_s: float, max_delay_s: float) -> float:
    # Full jitter: uniform(0, min(max, base * 2^attempt))
    ceiling = min(max_delay_s, base_delay_s * (2**attempt))
    return random.uniform(0, ceiling)


def run_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int | None = None,
    base_delay_s: float = 0.05,
    max_delay_s: float = 1.0,
    description: str = "schedule write",
) -> T:
    """Run fn, retrying on ConcurrentModificationError.

    fn must perform a complete attempt (open session, re-read, re-validate,
    write, commit) so that a retry sees the state the competing writer left.

    Args:
        fn: Attempt callable
        max_attempts: Attempts including the first (defaults to TRADE_MAX_ATTEMPTS)
        base_delay_s: Initial backoff ceiling
        max_delay_s: Backoff ceiling cap
        description: Label used in logs

    Returns:
        Result of the first successful attempt

    Raises:
        ConcurrentModificationError: If every attempt lost its race
    """
    attempts = settings.trade_max_attempts if max_attempts is None else max(1, int(max_attempts))
    for attempt in range(attempts):
        try:
            return fn()
        except ConcurrentModificationError:
            if attempt + 1 >= attempts:
                logger.bind(operation=description, attempts=attempts).error("Concurrent modification retries exhausted")
                raise
            delay = _backoff_delay(attempt, base_delay_s, max_delay_s)
            logger.bind(operation=description, attempt=attempt + 1, delay_s=round(delay, 3)).warning(
                "Concurrent modification, retrying"
            )
            time.sleep(delay)
    raise ConcurrentModificationError(f"{description}: no attempts made")
