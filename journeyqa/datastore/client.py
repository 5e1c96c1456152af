"""Supabase client construction."""

from __future__ import annotations

import logging

from supabase import AsyncClient, Client, acreate_client, create_client

from journeyqa.models.config import DatastoreConfig

logger = logging.getLogger(__name__)


class DatastoreNotConfiguredError(RuntimeError):
    pass


def get_client(config: DatastoreConfig) -> Client:
    """Create a synchronous client for queries and writes."""
    if not config.enabled:
        raise DatastoreNotConfiguredError(
            "Datastore url and key are required (set datastore.url / datastore.key)"
        )
    logger.debug("Connecting to datastore at %s", config.url)
    return create_client(config.url, config.key)


async def get_async_client(config: DatastoreConfig) -> AsyncClient:
    """Create an async client; realtime channels need one."""
    if not config.enabled:
        raise DatastoreNotConfiguredError(
            "Datastore url and key are required (set datastore.url / datastore.key)"
        )
    return await acreate_client(config.url, config.key)
