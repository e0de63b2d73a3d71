"""
Redis read-model cache and change feed.

Cached dashboards are keyed per manager and dropped after every committed
write for that manager, which is also announced on a pub/sub channel.
Redis being down only disables both; requests keep working.
"""

import logging
import json
from typing import Any, Optional, Callable, Iterable
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)


def _encode(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return {'__decimal__': str(obj)}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"{type(obj).__name__} is not cacheable")


def _decode(dct: dict) -> Any:
    return Decimal(dct['__decimal__']) if '__decimal__' in dct else dct


class CacheService:
    """Keys look like ``{prefix}:manager:{manager_id}:{module}:{key}``."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._prefix = 'barpos'
        self._channel = 'barpos:changes'
        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'barpos')
        self._channel = app.config.get('CHANGE_FEED_CHANNEL', f'{self._prefix}:changes')

        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] disabled via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                health_check_interval=30
            )
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {redis_url}: {e}. Cache disabled.")
            return
        self.client = client
        logger.info(f"[CACHE] Redis connected: {redis_url}")

    def is_available(self) -> bool:
        return self.client is not None

    def _key(self, manager_id: str, module: str, key: str) -> str:
        return f"{self._prefix}:manager:{manager_id}:{module}:{key}"

    def memoize(self, manager_id: str, module: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or load it and cache it for ``ttl`` seconds."""
        if not self.is_available():
            return loader_fn()

        full_key = self._key(manager_id, module, key)
        try:
            cached = self.client.get(full_key)
            if cached is not None:
                return json.loads(cached, object_hook=_decode)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] read failed for {full_key}: {e}")

        value = loader_fn()
        try:
            if ttl is None:
                ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
            self.client.setex(full_key, ttl, json.dumps(value, default=_encode))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] write failed for {full_key}: {e}")
        return value

    def invalidate_module(self, manager_id: str, module: str) -> int:
        """Drop every cached entry of one module for a manager."""
        if not self.is_available():
            return 0
        pattern = self._key(manager_id, module, '*')
        try:
            keys = list(self.client.scan_iter(match=pattern, count=100))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[CACHE] INVALIDATE: {pattern} ({len(keys)} keys)")
            return len(keys)
        except RedisError as e:
            logger.warning(f"[CACHE] invalidate failed for {pattern}: {e}")
            return 0

    def publish_change(self, manager_id: str, collections: Iterable[str]) -> bool:
        """Notify live-feed subscribers that a write for this manager was committed."""
        if not self.is_available():
            return False
        try:
            self.client.publish(self._channel, json.dumps({
                'manager_id': manager_id,
                'collections': sorted(set(collections)),
                'committed_at': datetime.utcnow().isoformat(),
            }))
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] publish failed: {e}")
            return False


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
