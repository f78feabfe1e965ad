import json
import asyncio
import logging
from typing import Dict, Optional, Set

from fastapi import WebSocket
import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RelaySession:
    """One authenticated WebSocket and the rooms it has joined."""

    def __init__(self, websocket: WebSocket, user_id: int, username: str):
        self.websocket = websocket
        self.user_id = user_id
        self.username = username
        self.rooms: Set[int] = set()

    async def send(self, message: str):
        await self.websocket.send_text(message)


class ConnectionManager:
    """
    Fan-out of room events to joined sessions.

    The manager trusts any room id it is given; callers decide whether a
    session may join. Delivery is at most once per joined session with no
    replay, clients recover missed messages from the stored history.
    """

    def __init__(self):
        self.rooms: Dict[int, Set[RelaySession]] = {}
        self.sessions: Set[RelaySession] = set()

    async def connect(self, websocket: WebSocket, user_id: int, username: str) -> RelaySession:
        await websocket.accept()
        session = RelaySession(websocket, user_id, username)
        self.sessions.add(session)
        logger.info(f"User {user_id} connected")
        return session

    async def disconnect(self, session: RelaySession):
        for chat_id in list(session.rooms):
            self._unsubscribe(session, chat_id)
        self.sessions.discard(session)
        logger.info(f"User {session.user_id} disconnected")

    def join(self, session: RelaySession, chat_id: int):
        self.rooms.setdefault(chat_id, set()).add(session)
        session.rooms.add(chat_id)
        logger.debug(f"User {session.user_id} joined room {chat_id}")

    def leave(self, session: RelaySession, chat_id: int):
        self._unsubscribe(session, chat_id)

    def _unsubscribe(self, session: RelaySession, chat_id: int):
        session.rooms.discard(chat_id)
        members = self.rooms.get(chat_id)
        if members is None:
            return
        members.discard(session)
        if not members:
            del self.rooms[chat_id]

    async def send_personal_message(self, message: dict, session: RelaySession):
        try:
            await session.send(json.dumps(message))
        except Exception:
            logger.warning(f"Dropping session of user {session.user_id} after failed send", exc_info=True)
            await self.disconnect(session)

    async def publish(self, chat_id: int, event: dict):
        await self.deliver(chat_id, json.dumps(event))

    async def deliver(self, chat_id: int, message: str) -> int:
        """Send to every local session in the room; returns how many got it"""
        disconnected = []
        delivered = 0
        for session in list(self.rooms.get(chat_id, ())):
            try:
                await session.send(message)
                delivered += 1
            except Exception:
                logger.warning(f"Failed to deliver to user {session.user_id} in room {chat_id}", exc_info=True)
                disconnected.append(session)

        for session in disconnected:
            await self.disconnect(session)
        return delivered

    async def broadcast_new_message(self, message_data: dict, chat_id: int):
        await self.publish(chat_id, {"type": "new_message", "data": message_data})

    async def broadcast_messages_read(self, chat_id: int, reader_id: int, updated: int):
        await self.publish(chat_id, {
            "type": "messages_read",
            "data": {
                "chat_id": chat_id,
                "reader_id": reader_id,
                "updated": updated
            }
        })

    async def start(self):
        pass

    async def stop(self):
        for session in list(self.sessions):
            await self.disconnect(session)


class RedisConnectionManager(ConnectionManager):
    """
    Routes room events through Redis pub/sub so every worker process
    delivers them to its own sessions.
    """

    def __init__(self, redis_client: redis.Redis, channel_prefix: str):
        super().__init__()
        self.redis_client = redis_client
        self.channel_prefix = channel_prefix
        self._listener: Optional[asyncio.Task] = None

    def channel_for(self, chat_id: int) -> str:
        return f"{self.channel_prefix}:{chat_id}"

    async def publish(self, chat_id: int, event: dict):
        await self.redis_client.publish(self.channel_for(chat_id), json.dumps(event))

    async def start(self):
        pubsub = self.redis_client.pubsub()
        await pubsub.psubscribe(f"{self.channel_prefix}:*")
        self._listener = asyncio.create_task(self._listen(pubsub))

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await super().stop()
        await self.redis_client.aclose()

    async def _listen(self, pubsub):
        try:
            async for item in pubsub.listen():
                await self.dispatch(item)
        finally:
            await pubsub.aclose()

    async def dispatch(self, item: dict):
        if item.get("type") != "pmessage":
            return
        try:
            chat_id = int(item["channel"].rsplit(":", 1)[1])
        except (KeyError, IndexError, ValueError):
            logger.warning(f"Ignoring message on unexpected channel {item.get('channel')!r}")
            return
        await self.deliver(chat_id, item["data"])


def create_manager(settings) -> ConnectionManager:
    if settings.RELAY_BACKEND == "redis":
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisConnectionManager(client, settings.RELAY_CHANNEL_PREFIX)
    return ConnectionManager()
