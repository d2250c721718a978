"""Adaptive client-side throttling circuit breaker."""

from __future__ import annotations

import abc
import enum
import logging
import random
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


class BreakerState(enum.IntEnum):
    """State of a circuit breaker."""

    CLOSED = 0
    OPEN = 1


class ServiceUnavailableError(Exception):
    """Raised when a breaker refuses to let a request through."""

    def __init__(self, message: str = "service unavailable") -> None:
        super().__init__(message)


class Breaker(abc.ABC):
    """Interface every circuit breaker implements."""

    @abc.abstractmethod
    def allow(self) -> None:
        """Return if the request may proceed, raise ServiceUnavailableError otherwise."""

    @abc.abstractmethod
    def accept(self) -> None:
        """Record a successful request."""

    @abc.abstractmethod
    def reject(self) -> None:
        """Record a failed request."""


class Proba:
    """Thread-safe source of random decisions."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(time.time_ns() if seed is None else seed)
        self._lock = threading.Lock()

    def true_on_proba(self, proba: float) -> bool:
        """Return True with the given probability."""
        with self._lock:
            return self._rng.random() < proba


@dataclass
class _Bucket:
    sum: float = 0.0
    count: int = 0


class _RollingWindow:
    """Fixed number of time buckets sliding forward with the clock."""

    def __init__(self, size: int, interval: float, clock: Callable[[], float]) -> None:
        self._buckets: deque[_Bucket] = deque((_Bucket() for _ in range(size)), maxlen=size)
        self._size = size
        self._interval = interval
        self._clock = clock
        self._last = clock()
        self._lock = threading.Lock()

    def _advance(self) -> None:
        now = self._clock()
        elapsed = now - self._last
        span = int(elapsed // self._interval)
        if span <= 0:
            return
        for _ in range(min(span, self._size)):
            self._buckets.append(_Bucket())
        self._last = now - elapsed % self._interval

    def add(self, value: float) -> None:
        with self._lock:
            self._advance()
            bucket = self._buckets[-1]
            bucket.sum += value
            bucket.count += 1

    def totals(self) -> tuple[float, int]:
        with self._lock:
            self._advance()
            return (
                sum(bucket.sum for bucket in self._buckets),
                sum(bucket.count for bucket in self._buckets),
            )


@dataclass
class GoogleSreBreakerConfig:
    """Settings of a GoogleSreBreaker; window is in seconds."""

    k: float = 1.5
    window: float = 10.0
    bucket_size: int = 40
    name: str = ""


class GoogleSreBreaker(Breaker):
    """Breaker following the adaptive throttling formula of the Google SRE book."""

    def __init__(
        self,
        config: GoogleSreBreakerConfig | None = None,
        *,
        proba: Proba | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = config or GoogleSreBreakerConfig()
        if config.bucket_size <= 0:
            raise ValueError("bucket_size must be positive")
        if config.window <= 0:
            raise ValueError("window must be positive")
        self.k = config.k
        self.name = config.name
        self._window = _RollingWindow(
            config.bucket_size, config.window / config.bucket_size, clock
        )
        self._proba = proba or Proba()
        self._state = BreakerState.OPEN
        self._state_lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: BreakerState) -> None:
        with self._state_lock:
            self._state = state

    def summary(self) -> tuple[float, int]:
        """Return (successes, total requests) within the window."""
        return self._window.totals()

    def allow(self) -> None:
        success, total = self.summary()
        accepts = self.k * success
        drop_ratio = max(0.0, (total - accepts) / (total + 1))
        logger.debug(
            "breaker name=%s total=%d success=%s accepts=%s ratio=%s",
            self.name,
            total,
            success,
            accepts,
            drop_ratio,
        )
        if drop_ratio <= 0:
            self._set_state(BreakerState.CLOSED)
            return
        self._set_state(BreakerState.OPEN)
        if self._proba.true_on_proba(drop_ratio):
            raise ServiceUnavailableError()

    def accept(self) -> None:
        self._window.add(1)

    def reject(self) -> None:
        self._window.add(0)


class BreakerGroup:
    """Named breakers created on first use."""

    def __init__(self) -> None:
        self._breakers: dict[str, Breaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Breaker:
        """Return the breaker of that name, creating it with defaults if needed."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = GoogleSreBreaker(GoogleSreBreakerConfig(name=name))
                self._breakers[name] = breaker
            return breaker

    def do(
        self,
        name: str,
        run: Callable[[], Any],
        accept: Callable[[BaseException | None], bool],
    ) -> Any:
        """Run guarded by the named breaker and record the outcome.

        The breaker's refusal is raised before run is called. An exception
        from run is recorded through accept and then re-raised.
        """
        breaker = self.get(name)
        breaker.allow()
        try:
            result = run()
        except Exception as exc:
            if accept(exc):
                breaker.accept()
            else:
                breaker.reject()
            raise
        if accept(None):
            breaker.accept()
        else:
            breaker.reject()
        return result


_GROUP = BreakerGroup()


def new_breaker_group() -> BreakerGroup:
    """Return the process-wide breaker group."""
    return _GROUP