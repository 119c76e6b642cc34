"""EventManager - in-memory pub/sub for card events."""

from __future__ import annotations

import asyncio
import contextlib
from collections import defaultdict

from .models import Event


class EventManager:
    """In-memory pub/sub.

    Notification collaborators subscribe to an owner's channel; publishing
    never blocks on a slow subscriber.
    """

    def __init__(self) -> None:
        self._channels: dict[str, set[asyncio.Queue]] = defaultdict(set)

    async def subscribe(self, channel: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        self._channels[channel].add(queue)
        return queue

    async def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        self._channels[channel].discard(queue)
        if not self._channels[channel]:
            del self._channels[channel]

    async def publish(self, channel: str, event: Event) -> None:
        for queue in list(self._channels.get(channel, [])):
            with contextlib.suppress(asyncio.QueueFull):
                queue.put_nowait(event)

    async def publish_to_owner(self, owner: str, event: Event) -> None:
        """Convenience: publish to owner:{owner} channel."""
        event.channel = f"owner:{owner}"
        await self.publish(event.channel, event)


# Singleton instance
event_manager = EventManager()
