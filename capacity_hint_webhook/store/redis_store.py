import json
import logging
from typing import Any

import redis

from .interface import KeyValueStore

log = logging.getLogger("capacity-hint")


class RedisStore(KeyValueStore):
    def __init__(
        self,
        url: str,
        default_ttl_seconds: int = 86400,
        key_prefix: str = "capacity-hint:",
    ) -> None:
        self._client = redis.Redis.from_url(url)
        self._default_ttl_seconds = max(1, int(default_ttl_seconds))
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        val_bytes = self._client.get(self._key(key))
        if val_bytes is None:
            return None
        try:
            return json.loads(val_bytes)
        except ValueError:
            log.warning("Discarding undecodable value under %s", self._key(key))
            return None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        val_str = json.dumps(value, separators=(",", ":"))
        ttl = (
            self._default_ttl_seconds
            if not ttl_seconds or ttl_seconds <= 0
            else int(ttl_seconds)
        )
        self._client.setex(self._key(key), ttl, val_str)
