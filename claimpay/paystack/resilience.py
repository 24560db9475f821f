"""
Outage protection for Paystack calls.

``CircuitBreaker`` keeps its state in the Django cache so the web process
and every Celery worker agree on whether Paystack is reachable.
``retry_with_backoff`` is for lookups only: a transfer request that timed
out may already have been accepted, so it goes out exactly once.
"""

import logging
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from django.core.cache import cache

from claimpay.settlements.exceptions import ProcessorError, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Breaker snapshots outlive any sane recovery window
SNAPSHOT_TTL = 24 * 60 * 60


class CircuitBreakerOpen(TransientNetworkError):
    default_code = "processor_circuit_open"
    default_detail = "Payment processor calls are paused after repeated failures."


def is_processor_outage(error: Exception) -> bool:
    """
    Network failures and 5xx answers count against Paystack's health.

    A 4xx is Paystack judging the request, not Paystack being down.
    """
    if isinstance(error, TransientNetworkError):
        return True
    if isinstance(error, ProcessorError):
        return (error.http_status or 0) >= 500
    return False


class CircuitBreaker:
    """
    Stops calling Paystack once ``failure_threshold`` outages pile up.

    After ``recovery_timeout`` seconds one trial call is let through; its
    result either closes the circuit or opens it for another window.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 120):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.cache_key = f"paystack:breaker:{name}"
        self._lock = threading.RLock()

    def _load(self) -> dict:
        return cache.get(self.cache_key) or {"state": self.CLOSED, "failures": 0, "opened_at": None}

    def _save(self, snapshot: dict) -> None:
        cache.set(self.cache_key, snapshot, timeout=SNAPSHOT_TTL)

    @property
    def state(self) -> str:
        return self._load()["state"]

    def _admit(self) -> bool:
        with self._lock:
            snapshot = self._load()
            if snapshot["state"] == self.CLOSED:
                return True
            # opened_at also stamps the trial call, so a trial lost with its
            # worker is retried one window later
            if time.time() - (snapshot["opened_at"] or 0) < self.recovery_timeout:
                return False
            snapshot["state"] = self.HALF_OPEN
            snapshot["opened_at"] = time.time()
            self._save(snapshot)
            logger.info("Breaker %s letting a trial call through", self.name)
            return True

    def _succeeded(self) -> None:
        with self._lock:
            snapshot = self._load()
            if snapshot["state"] != self.CLOSED:
                logger.info("Breaker %s closed, Paystack is answering again", self.name)
            self._save({"state": self.CLOSED, "failures": 0, "opened_at": None})

    def _failed(self, error: Exception) -> None:
        with self._lock:
            snapshot = self._load()
            snapshot["failures"] += 1
            trial_failed = snapshot["state"] == self.HALF_OPEN
            if trial_failed or snapshot["failures"] >= self.failure_threshold:
                snapshot["state"] = self.OPEN
                snapshot["opened_at"] = time.time()
                logger.warning(
                    "Breaker %s open after %d failure(s): %s",
                    self.name,
                    snapshot["failures"],
                    error,
                )
            self._save(snapshot)

    def reset(self) -> None:
        cache.delete(self.cache_key)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if not self._admit():
            raise CircuitBreakerOpen()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            if is_processor_outage(e):
                self._failed(e)
            else:
                self._succeeded()
            raise
        self._succeeded()
        return result


def retry_with_backoff(
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    retry_on: tuple = (TransientNetworkError,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry an idempotent lookup, doubling the pause each time."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except CircuitBreakerOpen:
                    raise
                except retry_on as e:
                    if attempt >= max_retries:
                        logger.error("%s still failing after %d retries: %s", func.__name__, max_retries, e)
                        raise
                    pause = min(base_delay * 2 ** attempt, max_delay)
                    attempt += 1
                    logger.warning(
                        "%s failed (%s), retry %d/%d in %.1fs", func.__name__, e, attempt, max_retries, pause
                    )
                    time.sleep(pause)

        return wrapper

    return decorator
