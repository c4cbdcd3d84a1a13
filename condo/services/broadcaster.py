"""
Live push to connected administrator sessions.

The registry is owned by the application (created in the lifespan and kept on
``app.state``) and handed to whoever needs to push. Delivery is a
``put_nowait`` into each session's bounded queue, so a broadcast never waits
on a slow client; the stream endpoint drains the queue.
"""
import asyncio
import json
import logging
import uuid
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class AdminSession:
    def __init__(self, admin_id: int, queue_size: int = 100):
        self.id = uuid.uuid4().hex
        self.admin_id = admin_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    def send(self, event: str, payload: Any) -> None:
        self.queue.put_nowait((event, payload))

    async def next_event(self, timeout: Optional[float] = None) -> tuple[str, Any]:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def __repr__(self):
        return f"AdminSession(admin_id={self.admin_id}, id={self.id})"


class LiveBroadcaster:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._sessions: dict[int, set[AdminSession]] = {}

    def register(self, admin_id: int) -> AdminSession:
        session = AdminSession(admin_id, self.queue_size)
        self._sessions.setdefault(admin_id, set()).add(session)
        logger.info("Admin %s connected to live notifications (%d open)", admin_id, len(self._sessions[admin_id]))
        return session

    def deregister(self, session: AdminSession) -> None:
        sessions = self._sessions.get(session.admin_id)
        if not sessions or session not in sessions:
            return
        sessions.discard(session)
        if not sessions:
            del self._sessions[session.admin_id]
        logger.info("Admin %s disconnected from live notifications", session.admin_id)

    def sessions_for(self, admin_id: int) -> list[AdminSession]:
        return list(self._sessions.get(admin_id, ()))

    def is_connected(self, admin_id: int) -> bool:
        return bool(self._sessions.get(admin_id))

    def broadcast(self, admin_id: int, event: str, payload: Any) -> int:
        """Push to every open session of ``admin_id``. Returns how many accepted it."""
        delivered = 0
        # Copy: a stream may deregister while we iterate
        for session in self.sessions_for(admin_id):
            try:
                session.send(event, payload)
                delivered += 1
            except Exception as e:
                logger.warning("Push of %s to %r failed: %s", event, session, e)
        return delivered

    def broadcast_many(self, admin_ids: Iterable[int], event: str, payload: Any) -> int:
        return sum(self.broadcast(admin_id, event, payload) for admin_id in admin_ids)


def format_sse(event: str, payload: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, default=str)}\n\n"


KEEPALIVE_FRAME = ": keepalive\n\n"


async def stream_events(session: AdminSession, is_disconnected, keepalive_seconds: float):
    """
    Server-sent event frames for one session: ``connected`` first, then one
    frame per broadcast, with a keepalive comment whenever nothing arrived
    for ``keepalive_seconds``.
    """
    yield format_sse("connected", {"admin_id": session.admin_id, "session_id": session.id})
    while not await is_disconnected():
        try:
            event, payload = await session.next_event(timeout=keepalive_seconds)
        except asyncio.TimeoutError:
            yield KEEPALIVE_FRAME
            continue
        yield format_sse(event, payload)
