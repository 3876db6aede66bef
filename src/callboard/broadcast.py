"""Broadcaster — fan-out of board events to every connected display.

Each WebSocket connection gets its own subscriber queue, so two
displays both see every event instead of splitting them.

With a Redis backplane, publish() goes through a pub/sub channel and a
relay task feeds whatever arrives on that channel to the local queues.
Every server instance runs a relay, so a change made through one
instance reaches displays connected to all of them. Without a backplane
(single process, tests) publish() fans out directly.

Delivery is best-effort: no buffer, no replay. A display that wasn't
connected when an event went out catches up from the snapshot it gets
on connect.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import logfire
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import StoreUnavailableError
from .store import store_errors


class Broadcaster:
    """Fan-out event distribution, optionally across server instances.

    Events carry a per-instance sequence number. Within one instance,
    events published one after another reach each subscriber in that
    order.

    If the backplane connection drops, current subscribers get the None
    sentinel (so their displays reconnect and resync) and the relay
    resubscribes with backoff. publish() raises StoreUnavailableError
    until it is back.

    A subscriber that falls QUEUE_SIZE events behind is dropped the
    same way.

    Usage:
        broadcaster = Broadcaster(client, keys.events_channel)
        await broadcaster.start()

        # Producer side (Board after each mutation)
        await broadcaster.publish("update", 42)

        # Consumer side (one per WebSocket)
        queue = broadcaster.subscribe()
        event = await queue.get()  # {"type": "update", "data": 42, "id": 7}
        broadcaster.unsubscribe(queue)
    """

    RELAY_POLL_SECONDS = 1.0
    RELAY_MIN_BACKOFF = 0.1
    RELAY_MAX_BACKOFF = 5.0
    QUEUE_SIZE = 256

    def __init__(
        self,
        client: aioredis.Redis | None = None,
        channel: str = "callsys:events",
        queue_size: int | None = None,
    ):
        self._client = client
        self._channel = channel
        self._queue_size = queue_size or self.QUEUE_SIZE
        self._seq: int = 0
        self._subscribers: set[asyncio.Queue] = set()
        self._closed: bool = False
        self._pubsub = None
        self._relay_task: asyncio.Task | None = None
        self._relay_up: bool = False

    @property
    def seq(self) -> int:
        """Current sequence number (last assigned)."""
        return self._seq

    @property
    def subscriber_count(self) -> int:
        """Number of active subscribers."""
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def relaying(self) -> bool:
        """Whether the backplane subscription is currently live."""
        return self._relay_up

    @property
    def backplane(self) -> bool:
        """Whether events go through the Redis channel (live or not)."""
        return self._relay_task is not None

    # -- Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the backplane channel and start relaying.

        No-op without a Redis client. Raises StoreUnavailableError if the
        first subscription fails.
        """
        if self._client is None or self._relay_task is not None:
            return
        with store_errors("broadcast.subscribe"):
            await self._subscribe()
        self._relay_task = asyncio.create_task(self._relay())
        logfire.info("Broadcast relay subscribed to {channel}", channel=self._channel)

    async def close(self) -> None:
        """Stop relaying and signal every subscriber to stop.

        Sends None sentinel to every subscriber queue. New subscribers
        after close() immediately receive None. Idempotent.
        """
        if self._closed:
            return
        self._closed = True

        if self._relay_task is not None:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass

        await self._drop_pubsub()
        self._relay_up = False

        for queue in list(self._subscribers):
            self._stop(queue)

    # -- Producer side --------------------------------------------------------

    async def publish(self, event_type: str, data: Any = None) -> int:
        """Publish an event to all subscribers, on every instance.

        Args:
            event_type: Event name (e.g., "update", "updatePassed")
            data: JSON-serializable payload. Falsy payloads (0, [], False)
                  are delivered as-is.

        Returns:
            The assigned sequence number.

        Raises:
            StoreUnavailableError: the backplane is down or refused the
                message.
        """
        if self._closed:
            return self._seq

        if self.backplane and not self._relay_up:
            raise StoreUnavailableError("Broadcast backplane is down")

        self._seq += 1
        event: dict[str, Any] = {"type": event_type, "data": data, "id": self._seq}

        if self.backplane:
            with store_errors("broadcast.publish"):
                await self._client.publish(self._channel, json.dumps(event, ensure_ascii=False))
        else:
            self._fan_out(event)

        return self._seq

    # -- Consumer side --------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        """Create a subscriber queue.

        Returns:
            An asyncio.Queue that receives all future events.
            None sentinel signals shutdown.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)

        # If already closed, immediately signal
        if self._closed:
            queue.put_nowait(None)

        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Remove a subscriber.

        Safe to call even if the queue isn't subscribed (idempotent).
        """
        self._subscribers.discard(queue)

    # -- Internals ------------------------------------------------------------

    def _stop(self, queue: asyncio.Queue) -> None:
        """Detach a subscriber and hand it the sentinel, even if it's full."""
        self._subscribers.discard(queue)
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(None)

    def _fan_out(self, event: dict[str, Any]) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logfire.warning("Dropping a subscriber {size} events behind", size=queue.qsize())
                self._stop(queue)

    async def _subscribe(self) -> None:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(self._channel)
        except RedisError:
            await pubsub.aclose()
            raise
        self._pubsub = pubsub
        self._relay_up = True

    async def _drop_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except RedisError as e:
            logfire.warning("Broadcast unsubscribe failed: {error}", error=str(e))

    async def _relay(self) -> None:
        """Backplane channel → local subscriber queues.

        On a store error every current subscriber is stopped, so displays
        reconnect and resync from a snapshot instead of silently going
        stale, and the relay resubscribes with exponential backoff.
        """
        failures = 0
        while not self._closed:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    logfire.info("Broadcast relay resubscribed to {channel}", channel=self._channel)
                message = await self._pubsub.get_message(timeout=self.RELAY_POLL_SECONDS)
            except RedisError as e:
                failures += 1
                if self._relay_up:
                    logfire.error("Broadcast relay lost the store: {error}", error=str(e))
                    self._relay_up = False
                    for queue in list(self._subscribers):
                        self._stop(queue)
                await self._drop_pubsub()
                delay = min(self.RELAY_MIN_BACKOFF * 2 ** (failures - 1), self.RELAY_MAX_BACKOFF)
                await asyncio.sleep(delay)
                continue

            failures = 0
            if message is None or message.get("type") != "message":
                continue
            try:
                event = json.loads(message["data"])
            except (TypeError, ValueError):
                logfire.warning("Dropping malformed broadcast message on {channel}", channel=self._channel)
                continue
            self._fan_out(event)
