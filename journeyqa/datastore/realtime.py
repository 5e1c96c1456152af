"""Realtime journey updates — subscription plus a re-fetching dashboard model."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from journeyqa.dashboard.metrics import step_stats
from journeyqa.models.dashboard import JourneyDetail, StepStats
from journeyqa.tracking.collector import iso_timestamp

logger = logging.getLogger(__name__)

CHANNEL_NAME = "journey-updates"
WATCHED_TABLES = ("steps", "journeys")


async def subscribe_to_journey_updates(
    client,
    on_change: Callable[[dict], Any],
    on_error: Optional[Callable[[Optional[Exception]], Any]] = None,
):
    """Listen for inserts, updates and deletes on the watched tables.

    ``client`` is an async Supabase client. Returns the channel so it can be
    passed to ``unsubscribe`` later.
    """
    channel = client.channel(CHANNEL_NAME)
    for table in WATCHED_TABLES:
        channel.on_postgres_changes("*", callback=on_change, table=table, schema="public")

    def _status(status, err: Optional[Exception] = None) -> None:
        logger.debug("Realtime channel %s status: %s", CHANNEL_NAME, status)
        if str(getattr(status, "value", status)) == "CHANNEL_ERROR":
            logger.error("Realtime channel %s error: %s", CHANNEL_NAME, err)
            if on_error:
                on_error(err)

    await channel.subscribe(_status)
    logger.info("Subscribed to %s on %s", CHANNEL_NAME, ", ".join(WATCHED_TABLES))
    return channel


async def unsubscribe(client, channel) -> None:
    await client.remove_channel(channel)
    logger.info("Unsubscribed from %s", CHANNEL_NAME)


class RealtimeDashboard:
    """Keeps the latest journey in memory and re-fetches it on every change.

    No incremental patching: any notification triggers one full re-fetch.
    """

    def __init__(
        self,
        fetch: Callable[[], Optional[JourneyDetail]],
        clock: Callable[[], float] = time.time,
    ):
        self._fetch = fetch
        self._clock = clock
        self.data: Optional[JourneyDetail] = None
        self.last_updated: Optional[str] = None
        self.refresh_count = 0
        self.error: Optional[str] = None
        self._pending: set[asyncio.Task] = set()

    def refresh(self) -> Optional[JourneyDetail]:
        self.refresh_count += 1
        self.data = self._fetch()
        self.last_updated = iso_timestamp(self._clock())
        logger.debug("Realtime dashboard refreshed (%d)", self.refresh_count)
        return self.data

    async def handle_change(self, payload: dict | None = None) -> None:
        payload = payload or {}
        event = payload.get("eventType") or (payload.get("data") or {}).get("type")
        logger.info("Change notification received (%s), re-fetching", event or "unknown")
        await asyncio.to_thread(self.refresh)

    def on_change(self, payload: dict) -> None:
        """Subscription callback; schedules ``handle_change`` on the running loop."""
        task = asyncio.get_running_loop().create_task(self.handle_change(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def on_error(self, err: Optional[Exception]) -> None:
        self.error = str(err) if err else "Realtime channel error"

    def stats(self) -> StepStats:
        if self.data is None:
            return StepStats()
        return step_stats(self.data.steps)
