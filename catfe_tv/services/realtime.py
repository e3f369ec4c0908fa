"""
Change notifications for connected displays.

Every mutation is mapped to the display topic it affects, so a TV only reloads
the part of its state that changed: the slide rotation, the guest board, the
polls or the photo walls. Events carry the hub revision plus a per-topic
revision; the hello message sent on connect holds the current snapshot, which
lets a reconnecting display tell what it missed.
"""

import asyncio
import json
import logging
from typing import Any, Iterable

from fastapi import WebSocket

from catfe_tv.services.clock import utc_now

logger = logging.getLogger(__name__)

HELLO = "hello"
CONFIG_CHANGED = "config_changed"
GUEST_REMINDER = "guest_reminder"

PLAYLIST = "playlist"
GUESTS = "guests"
POLLS = "polls"
PHOTOS = "photos"
TOPICS = (PLAYLIST, GUESTS, POLLS, PHOTOS)

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE"})

_TOPIC_PREFIXES = (
    ("/screens", PLAYLIST),
    ("/settings", PLAYLIST),
    ("/playlists", PLAYLIST),
    ("/time-slots", PLAYLIST),
    ("/guest-sessions", GUESTS),
    ("/api/webhooks", GUESTS),
    ("/polls", POLLS),
    ("/photos", PHOTOS),
)


def topic_for(path: str) -> str | None:
    for prefix, topic in _TOPIC_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return topic
    return None


def parse_topics(raw: str | None) -> frozenset[str]:
    """Topics named in a `?topics=playlist,guests` query; none or only unknown ones means all."""
    wanted = {item.strip().lower() for item in (raw or "").split(",") if item.strip()}
    unknown = wanted.difference(TOPICS)
    if unknown:
        logger.debug("Ignoring unknown realtime topics: %s", ", ".join(sorted(unknown)))
    return frozenset(wanted.intersection(TOPICS)) or frozenset(TOPICS)


class RealtimeHub:
    def __init__(self) -> None:
        self._clients: dict[WebSocket, frozenset[str]] = {}
        self._lock = asyncio.Lock()
        self._revision = 0
        self._topic_revisions = dict.fromkeys(TOPICS, 0)

    def _encode(self, event_type: str, **fields: Any) -> str:
        message: dict[str, Any] = {"type": event_type, "revision": self._revision, "ts": utc_now().isoformat()}
        message.update(fields)
        return json.dumps(message, default=str)

    async def connect(self, websocket: WebSocket, topics: Iterable[str] | None = None) -> None:
        subscribed = frozenset(topics) if topics else frozenset(TOPICS)
        await websocket.accept()
        async with self._lock:
            self._clients[websocket] = subscribed
        snapshot = {topic: self._topic_revisions[topic] for topic in TOPICS if topic in subscribed}
        await websocket.send_text(self._encode(HELLO, topics=snapshot))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.pop(websocket, None)

    async def publish(self, event_type: str, topic: str, payload: dict[str, Any] | None = None) -> int:
        self._revision += 1
        self._topic_revisions[topic] += 1
        message = self._encode(
            event_type,
            topic=topic,
            topic_revision=self._topic_revisions[topic],
            payload=payload or {},
        )
        async with self._lock:
            targets = [client for client, subscribed in self._clients.items() if topic in subscribed]

        stale: list[WebSocket] = []
        for client in targets:
            try:
                await client.send_text(message)
            except Exception as exc:
                logger.debug("Dropping display connection after send failure: %s", exc)
                stale.append(client)

        if stale:
            async with self._lock:
                for client in stale:
                    self._clients.pop(client, None)
        return self._revision

    async def publish_change(self, path: str, method: str) -> int | None:
        """Announce a successful write; reads and unwatched paths are ignored."""
        method = method.upper()
        topic = topic_for(path)
        if method not in MUTATING_METHODS or topic is None:
            return None
        return await self.publish(CONFIG_CHANGED, topic, {"path": path, "method": method})

    async def publish_reminders(self, reminders: list[dict[str, Any]]) -> int | None:
        if not reminders:
            return None
        logger.info("Announcing %d guest reminder(s)", len(reminders))
        return await self.publish(GUEST_REMINDER, GUESTS, {"sessions": reminders})

    def topic_revision(self, topic: str) -> int:
        return self._topic_revisions[topic]

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def client_count(self) -> int:
        return len(self._clients)


hub = RealtimeHub()
