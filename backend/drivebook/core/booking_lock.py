from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from drivebook.core.config import settings
from drivebook.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def user_lock_key(user_id: str) -> str:
    return f"quota:{user_id}:mutex"


def date_lock_key(lesson_date: str) -> str:
    return f"calendar:{lesson_date}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    if not settings.redis_url:
        return None
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=1,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_lock_sync(key: str, ttl_s: Optional[int] = None) -> bool:
    """
    Try to take a short-lived mutex.

    Fails open when Redis is unreachable: the database constraints remain the
    authoritative guard, the lock only narrows the race window.
    """
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")
        logger.debug("booking_lock_sync_redis_unavailable", extra={"lock_key": key})
        return True
    try:
        acquired = bool(client.set(_namespaced_key(key), str(time.time()), nx=True, ex=ttl))
        if acquired:
            prometheus_metrics.record_booking_lock("acquire", "success")
        else:
            prometheus_metrics.record_booking_lock("acquire", "blocked")
        return acquired
    except Exception as exc:
        prometheus_metrics.record_booking_lock("acquire", "error")
        logger.warning(
            "booking_lock_sync_failed",
            extra={
                "lock_key": key,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True


def release_lock_sync(key: str) -> None:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_booking_lock("release", "redis_unavailable")
        return
    try:
        deleted = client.delete(_namespaced_key(key))
        if deleted:
            prometheus_metrics.record_booking_lock("release", "success")
        else:
            prometheus_metrics.record_booking_lock("release", "not_found")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={
                "lock_key": key,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def booking_lock_sync(key: str, ttl_s: Optional[int] = None) -> Iterator[bool]:
    acquired = acquire_lock_sync(key, ttl_s=ttl_s)
    try:
        yield acquired
    finally:
        if acquired:
            release_lock_sync(key)
