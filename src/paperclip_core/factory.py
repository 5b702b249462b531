from __future__ import annotations

import logging

from paperclip_core.config import ClientConfig
from paperclip_core.errors import NoStorageLocation
from paperclip_core.net import Endpoint, FetchClient, Transport
from paperclip_core.repository import ClassifiedRepository
from paperclip_core.storage import Cache, DiskStore, MemoryCache, TieredCache

logger = logging.getLogger(__name__)


def build_cache(config: ClientConfig | None = None) -> Cache:
    config = config or ClientConfig()
    if not config.caching.enabled:
        logger.info("caching disabled, using memory cache")
        return MemoryCache()

    try:
        store = DiskStore(config.caching.directory, app_id=config.caching.app_id)
    except NoStorageLocation as exc:
        logger.warning("no durable cache location, falling back to memory cache: %s", exc)
        return MemoryCache()
    return TieredCache(store)


def build_client(
    config: ClientConfig | None = None,
    *,
    transport: Transport | None = None,
    cache: Cache | None = None,
) -> FetchClient:
    config = config or ClientConfig()
    return FetchClient(
        cache if cache is not None else build_cache(config),
        transport,
        max_delay_seconds=config.backoff.max_delay_seconds,
        max_jitter_seconds=config.backoff.max_jitter_seconds,
        max_workers=config.max_workers,
    )


def build_repository(
    config: ClientConfig | None = None,
    *,
    transport: Transport | None = None,
    cache: Cache | None = None,
) -> ClassifiedRepository:
    config = config or ClientConfig()
    endpoints = config.endpoints
    return ClassifiedRepository(
        build_client(config, transport=transport, cache=cache),
        categories_endpoint=Endpoint.categories(
            endpoints.categories_url,
            retry_count=endpoints.retry_count,
            timeout_seconds=endpoints.timeout_seconds,
        ),
        listings_endpoint=Endpoint.listings(
            endpoints.listings_url,
            retry_count=endpoints.retry_count,
            timeout_seconds=endpoints.timeout_seconds,
        ),
    )
