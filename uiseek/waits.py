# uiseek/waits.py
"""
@file waits.py
@brief Deadlines and wait/retry utilities for the resolution engine.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Tuple, TypeVar

from .exceptions import TimeoutError
from .timinglogger import TIMING_LOGGER

T = TypeVar("T")


def _now() -> float:
    """Monotonic time source for deterministic timeout calculations."""
    return time.monotonic()


def sleep(seconds: float) -> None:
    """Suspension point used by every poll and settle pause."""
    if seconds > 0:
        time.sleep(seconds)


class Deadline:
    """
    Absolute point on the monotonic clock shared by every phase of one call.

    A resolution call creates exactly one Deadline; polling, scrolling and
    index correction all consult it instead of keeping their own timers.
    """

    def __init__(self, timeout: float):
        if timeout < 0:
            raise ValueError(f"Deadline timeout must be >= 0, got {timeout}")
        self.timeout = float(timeout)
        self.started_at = _now()
        self.expires_at = self.started_at + self.timeout

    @classmethod
    def after(cls, timeout: float) -> Deadline:
        return cls(timeout)

    def expired(self) -> bool:
        """True once the clock moved strictly past the deadline."""
        return _now() > self.expires_at

    def remaining(self) -> float:
        return max(0.0, self.expires_at - _now())

    def elapsed(self) -> float:
        return _now() - self.started_at

    def sleep(self, interval: float) -> None:
        """Sleep for interval, never beyond the deadline."""
        sleep(min(interval, self.remaining()))

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout}, remaining={self.remaining():.3f})"


def _set_timeout_metadata(
    error: TimeoutError,
    *,
    description: str,
    timeout: float,
    attempt_count: int,
    elapsed: float,
    stage: Optional[str],
) -> None:
    error.description = description
    error.timeout = timeout
    error.attempt_count = attempt_count
    error.elapsed_time = elapsed
    error.stage = stage


def wait_until_passes(
    func: Callable[..., T],
    timeout: float,
    interval: float = 0.2,
    exceptions: Tuple[type, ...] = (Exception,),
    description: str = "operation",
    *args: Any,
    stage: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """
    Wait until func(*args, **kwargs) succeeds without raising one of exceptions.
    """
    start_time = _now()
    attempt_count = 0

    while True:
        attempt_count += 1
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            elapsed = _now() - start_time
            time_left = timeout - elapsed

            if time_left <= 0:
                if TIMING_LOGGER.is_enabled():
                    TIMING_LOGGER.log(
                        event="retry_timeout",
                        description=description,
                        status="error",
                        metadata={"attempts": attempt_count, "elapsed_s": elapsed, "stage": stage},
                    )
                error = TimeoutError(
                    f"Timed out waiting for {description} after {timeout}s "
                    f"({attempt_count} attempts). "
                    f"Last error: {type(e).__name__}: {e}"
                )
                error.original_exception = e
                _set_timeout_metadata(
                    error,
                    description=description,
                    timeout=timeout,
                    attempt_count=attempt_count,
                    elapsed=elapsed,
                    stage=stage,
                )
                raise error from e

            sleep_time = min(interval, time_left)
            if TIMING_LOGGER.is_enabled():
                TIMING_LOGGER.log(
                    event="retry_wait",
                    description=description,
                    metadata={"attempt": attempt_count, "sleep_s": sleep_time, "stage": stage},
                )
            sleep(sleep_time)
