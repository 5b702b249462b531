from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from paperclip_core.errors import CacheDecodeError, CacheSerializationError
from paperclip_core.schemas import dump_json, validate_json

from .disk import DiskStore

logger = logging.getLogger(__name__)


class Cache(Protocol):
    def save(self, value: Any, key: str, *, model: Any = None) -> None: ...

    def fetch(self, key: str, model: Any) -> Any | None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTier:
    """Thread-safe in-process key -> bytes map."""

    def __init__(self) -> None:
        self._entries: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, payload: bytes) -> None:
        with self._lock:
            self._entries[key] = payload

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def encode_value(value: Any, key: str, model: Any = None) -> bytes:
    try:
        return dump_json(value, model)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise CacheSerializationError(key, exc) from exc


def decode_value(payload: bytes, key: str, model: Any) -> Any:
    try:
        return validate_json(model, payload)
    except (ValidationError, TypeError, ValueError) as exc:
        raise CacheDecodeError(key, exc) from exc


class MemoryCache:
    """Cache with only the in-process tier.

    Used when no durable location is available; values do not survive the
    process.
    """

    def __init__(self) -> None:
        self.memory = MemoryTier()

    def save(self, value: Any, key: str, *, model: Any = None) -> None:
        self.memory.put(key, encode_value(value, key, model))
        logger.info("memory_cache set key=%s", key)

    def fetch(self, key: str, model: Any) -> Any | None:
        payload = self.memory.get(key)
        if payload is None:
            logger.info("memory_cache miss key=%s", key)
            return None
        logger.info("memory_cache hit key=%s", key)
        return decode_value(payload, key, model)

    def remove(self, key: str) -> None:
        self.memory.remove(key)

    def clear(self) -> None:
        self.memory.clear()


class TieredCache:
    """In-process tier in front of a :class:`DiskStore`.

    Writes go to memory first, then to disk. Reads check memory, then disk,
    and repopulate memory on a disk hit. A miss returns ``None``; bytes that
    do not decode into the requested model raise ``CacheDecodeError``.
    """

    def __init__(self, store: DiskStore) -> None:
        self.memory = MemoryTier()
        self.store = store

    def save(self, value: Any, key: str, *, model: Any = None) -> None:
        payload = encode_value(value, key, model)
        self.memory.put(key, payload)
        self.store.put(key, payload)
        logger.info("tiered_cache set key=%s bytes=%d", key, len(payload))

    def fetch(self, key: str, model: Any) -> Any | None:
        payload = self.memory.get(key)
        if payload is not None:
            logger.info("tiered_cache hit key=%s tier=memory", key)
            return decode_value(payload, key, model)

        payload = self.store.get(key)
        if payload is None:
            logger.info("tiered_cache miss key=%s", key)
            return None

        value = decode_value(payload, key, model)
        self.memory.put(key, payload)
        logger.info("tiered_cache hit key=%s tier=disk", key)
        return value

    def remove(self, key: str) -> None:
        self.memory.remove(key)
        self.store.remove(key)

    def clear(self) -> None:
        self.memory.clear()
        self.store.clear()
        logger.info("tiered_cache cleared directory=%s", self.store.directory)
