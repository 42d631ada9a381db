import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import redis
from fastapi import Request

from soil_analytics.config import Settings
from soil_analytics.errors import StoreReadError, StoreUnavailable

logger = logging.getLogger("SoilAnalytics.Store")


class ObjectStore(ABC):
    """
    Namespaced key/value store holding JSON documents.

    Absent keys are not errors: `get_json` returns None for them.
    `list_keys` returns keys sorted lexicographically on every backend.
    """

    mode: str = "abstract"

    @abstractmethod
    def get_json(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set_json(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def list_keys(self, prefix: str) -> List[str]:
        ...

    def ping(self) -> bool:
        return True

    def close(self):
        pass


class MemoryStore(ObjectStore):
    """
    Process-local store used when no durable backend is configured.
    Values are kept as serialized JSON so callers never share state with the store.
    """

    mode = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_json(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def list_keys(self, prefix: str) -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def reset(self):
        """Drops every stored value."""
        self._data.clear()

    def __len__(self):
        return len(self._data)


def _escape_glob(value: str) -> str:
    for char in ("\\", "*", "?", "[", "]"):
        value = value.replace(char, "\\" + char)
    return value


class RedisStore(ObjectStore):
    """
    Durable store backed by Redis. Every key is stored as "<namespace>:<key>".
    """

    mode = "redis"

    def __init__(self, client: redis.Redis, namespace: str):
        self.redis = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str) -> "RedisStore":
        return cls(redis.from_url(url, decode_responses=True), namespace)

    def _get_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = self.redis.get(self._get_key(key))
        except redis.ConnectionError as e:
            logger.error(f"Redis unavailable while reading {key}: {e}")
            raise StoreUnavailable(str(e)) from e
        except redis.RedisError as e:
            logger.error(f"Redis read error for {key}: {e}")
            raise StoreReadError(str(e)) from e

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt JSON stored at {key}: {e}")
            raise StoreReadError(f"Corrupt value at {key}") from e

    def set_json(self, key: str, value: Any) -> None:
        try:
            self.redis.set(self._get_key(key), json.dumps(value))
        except redis.ConnectionError as e:
            logger.error(f"Redis unavailable while writing {key}: {e}")
            raise StoreUnavailable(str(e)) from e
        except redis.RedisError as e:
            logger.error(f"Redis write error for {key}: {e}")
            raise StoreUnavailable(str(e)) from e

    def list_keys(self, prefix: str) -> List[str]:
        pattern = _escape_glob(self._get_key(prefix)) + "*"
        strip = len(self.namespace) + 1
        try:
            keys = [k[strip:] for k in self.redis.scan_iter(match=pattern, count=500)]
        except redis.ConnectionError as e:
            logger.error(f"Redis unavailable while listing {prefix}: {e}")
            raise StoreUnavailable(str(e)) from e
        except redis.RedisError as e:
            logger.error(f"Redis list error for {prefix}: {e}")
            raise StoreReadError(str(e)) from e
        return sorted(keys)

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self):
        logger.info("Closing Redis connection...")
        self.redis.close()


def create_store(settings: Settings) -> ObjectStore:
    """
    Build the object store for the configured backend.
    Falls back to an in-memory store when REDIS_URL is not set.
    """
    if settings.REDIS_URL:
        logger.info(f"Using Redis object store (namespace '{settings.STORE_NAMESPACE}')")
        return RedisStore.from_url(settings.REDIS_URL, settings.STORE_NAMESPACE)

    logger.warning("REDIS_URL not set. Using in-memory object store; data will not survive a restart.")
    return MemoryStore()


def get_store(request: Request) -> ObjectStore:
    """
    FastAPI Dependency that provides the application's object store.
    """
    return request.app.state.store
