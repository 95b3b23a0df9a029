"""Topic-based WebSocket broadcaster for meeting viewers.

Viewers join topics ("rooms"): ``index`` for the meeting list and
``meeting_{id}`` for a single meeting. Every published message is sent as
``{"event": <name>, "data": <payload>}`` to each socket joined to the topic.

Delivery is best-effort: publishing never raises, and sockets that fail to
receive are dropped from every room.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

import structlog
from fastapi import WebSocket

logger = structlog.get_logger(__name__)

INDEX_TOPIC = "index"


class Broadcaster:
    """In-process publish/subscribe over FastAPI WebSockets."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)

    def join(self, topic: str, websocket: WebSocket) -> None:
        self._rooms[topic].add(websocket)
        logger.debug("broadcast.joined", topic=topic, subscribers=len(self._rooms[topic]))

    def leave(self, topic: str, websocket: WebSocket) -> None:
        members = self._rooms.get(topic)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._rooms[topic]

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a socket from every room it joined."""
        for topic in list(self._rooms):
            self.leave(topic, websocket)

    def subscriber_count(self, topic: str) -> int:
        return len(self._rooms.get(topic, ()))

    async def publish(self, topic: str, event: str, data: Any) -> int:
        """Send an event to all subscribers of a topic.

        Returns:
            Number of sockets the message was delivered to.
        """
        members = list(self._rooms.get(topic, ()))
        if not members:
            return 0

        message = {"event": event, "data": data}
        delivered = 0
        dead: list[WebSocket] = []
        for websocket in members:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                dead.append(websocket)

        for websocket in dead:
            self.disconnect(websocket)
        if dead:
            logger.info("broadcast.dropped_subscribers", topic=topic, dropped=len(dead))

        logger.debug("broadcast.published", topic=topic, event_name=event, delivered=delivered)
        return delivered

    async def publish_message(self, topic: str, message: dict[str, Any]) -> None:
        """Publish a ``{"type": ..., "payload": ...}`` message.

        Adapter for the analysis coalescer's publish interface.
        """
        await self.publish(topic, message["type"], message.get("payload"))
