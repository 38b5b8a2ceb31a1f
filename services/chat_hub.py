"""Room-scoped, best-effort broadcast of chat events.

Rooms are ``user:<id>`` for direct messages and ``group:<id>`` for group
chats. A listener is any callable taking ``(event, payload)``; whatever
transport is attached (a websocket handler, a test collector) subscribes it
to the rooms of the connected user. Events are fired after the message is
committed and are not queued for absent listeners.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict], None]

EVENT_RECEIVE_MESSAGE = 'receiveMessage'
EVENT_MESSAGE_SENT = 'messageSent'
EVENT_MESSAGE_DELETED = 'messageDeleted'
EVENT_RECEIVE_GROUP_MESSAGE = 'receiveGroupMessage'
EVENT_GROUP_MESSAGE_DELETED = 'groupMessageDeleted'


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def group_room(group_id: int) -> str:
    return f"group:{group_id}"


class ChatHub:
    """Keeps room subscriptions for the process and fans events out to them."""

    def __init__(self):
        # room -> listeners currently subscribed
        self.rooms: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, room: str, listener: Listener) -> None:
        with self._lock:
            listeners = self.rooms.setdefault(room, [])
            if listener not in listeners:
                listeners.append(listener)
        logger.debug("Listener joined %s (%d total)", room, len(self.rooms.get(room, [])))

    def unsubscribe(self, room: str, listener: Listener) -> None:
        with self._lock:
            listeners = self.rooms.get(room)
            if not listeners:
                return
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                del self.rooms[room]
        logger.debug("Listener left %s", room)

    def listener_count(self, room: str) -> int:
        with self._lock:
            return len(self.rooms.get(room, []))

    def broadcast(self, room: str, event: str, payload: dict) -> int:
        """Send an event to every listener in the room; returns how many got it."""
        with self._lock:
            listeners = list(self.rooms.get(room, []))

        delivered = 0
        dead = []
        for listener in listeners:
            try:
                listener(event, payload)
                delivered += 1
            except Exception:
                logger.warning("Dropping listener in %s after failed %s delivery", room, event, exc_info=True)
                dead.append(listener)

        for listener in dead:
            self.unsubscribe(room, listener)

        logger.info("Broadcast %s to %s (%d delivered)", event, room, delivered)
        return delivered
