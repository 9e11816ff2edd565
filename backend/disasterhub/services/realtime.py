"""
DisasterHub Backend — Realtime Notification Hub
=================================================

What:  In-process registry of per-user subscriber queues. The notification
       fan-out publishes each persisted notification to its recipient; the
       WebSocket endpoint drains the queue of the connected user.
How:   One asyncio.Queue per open connection, grouped by user id. A user
       may hold several connections (tabs, devices); every one receives
       each payload.

Delivery is best-effort: a full queue drops the payload for that
connection (the notification is already persisted and visible in the
inbox), and nothing is buffered for users who are offline.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

QUEUE_MAXSIZE = 100


class RealtimeHub:
    """Fan-in point between notification writers and live connections."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._subscribers: Dict[uuid.UUID, Set[asyncio.Queue]] = defaultdict(set)

    @property
    def subscriber_count(self) -> int:
        return sum(len(queues) for queues in self._subscribers.values())

    def subscribe(self, user_id: uuid.UUID) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_MAXSIZE)
        self._subscribers[user_id].add(queue)
        logger.debug("Realtime subscriber added for user %s", user_id)
        return queue

    def unsubscribe(self, user_id: uuid.UUID, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]
        logger.debug("Realtime subscriber removed for user %s", user_id)

    async def publish(self, user_id: uuid.UUID, payload: Dict[str, Any]) -> int:
        """
        Push `payload` to every live connection of `user_id`.

        Returns:
            Number of connections the payload was queued for.

        Raises:
            RuntimeError: the hub is disabled.
        """
        if not self.enabled:
            raise RuntimeError("Realtime channel is disabled")

        delivered = 0
        for queue in list(self._subscribers.get(user_id, ())):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Realtime queue full for user %s; payload dropped", user_id)
        return delivered


# ── Singleton Instance ────────────────────────────────────────────────────
# Enabled state is applied from settings at startup (see main.lifespan)
realtime_hub = RealtimeHub()
