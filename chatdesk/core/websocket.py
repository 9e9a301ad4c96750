"""
WebSocket connection manager for real-time chat.

Tracks live connections and the rooms they joined (``company:{id}`` and
``chat:{id}``) so broadcasts reach every participant of a chat.
"""

from dataclasses import dataclass, field
from typing import Dict, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

AGENT = "agent"
VISITOR = "visitor"


def company_room(company_id: UUID | str) -> str:
    return f"company:{company_id}"


def chat_room(chat_id: UUID | str) -> str:
    return f"chat:{chat_id}"


@dataclass(eq=False)
class ChatConnection:
    """One authenticated socket: an agent (user) or a widget visitor."""

    websocket: WebSocket
    kind: str
    company_id: UUID
    user_id: UUID | None = None
    visitor_id: str | None = None
    rooms: Set[str] = field(default_factory=set)

    @property
    def is_agent(self) -> bool:
        return self.kind == AGENT

    async def send_json(self, message: dict) -> None:
        await self.websocket.send_text(json.dumps(message, default=str))


class ConnectionManager:
    """Manages WebSocket connections per room."""

    def __init__(self):
        # room -> set of connections
        self._rooms: Dict[str, Set[ChatConnection]] = {}
        # user_id -> set of connections (agents only)
        self._agents: Dict[UUID, Set[ChatConnection]] = {}
        self._lock = asyncio.Lock()

    async def register(self, conn: ChatConnection) -> None:
        """Track an accepted connection and join its company room."""
        async with self._lock:
            if conn.is_agent and conn.user_id:
                self._agents.setdefault(conn.user_id, set()).add(conn)
            self._join_locked(conn, company_room(conn.company_id))

    async def disconnect(self, conn: ChatConnection) -> int:
        """
        Remove a connection from every room.

        Returns the number of connections the same agent still holds
        (0 for visitors).
        """
        async with self._lock:
            for room in list(conn.rooms):
                self._leave_locked(conn, room)
            if conn.is_agent and conn.user_id in self._agents:
                self._agents[conn.user_id].discard(conn)
                if not self._agents[conn.user_id]:
                    del self._agents[conn.user_id]
                    return 0
                return len(self._agents[conn.user_id])
            return 0

    async def join(self, conn: ChatConnection, room: str) -> None:
        async with self._lock:
            self._join_locked(conn, room)

    async def leave(self, conn: ChatConnection, room: str) -> None:
        async with self._lock:
            self._leave_locked(conn, room)

    def _join_locked(self, conn: ChatConnection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(conn)
        conn.rooms.add(room)

    def _leave_locked(self, conn: ChatConnection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(conn)
            if not members:
                del self._rooms[room]
        conn.rooms.discard(room)

    async def broadcast(
        self,
        room: str,
        message: dict,
        exclude: ChatConnection | None = None,
    ) -> None:
        """Send a message to every connection in a room."""
        async with self._lock:
            connections = self._rooms.get(room, set()).copy()

        closed = []
        for conn in connections:
            if conn is exclude:
                continue
            try:
                await conn.send_json(message)
            except Exception as exc:
                # Socket already gone; drop it below
                logger.debug("Broadcast to %s failed: %s", room, exc)
                closed.append(conn)

        if closed:
            async with self._lock:
                for conn in closed:
                    self._leave_locked(conn, room)

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, set()))

    def get_agent_connection_count(self, user_id: UUID) -> int:
        return len(self._agents.get(user_id, set()))

    def get_total_connections(self) -> int:
        """Get total number of distinct live connections."""
        seen: Set[int] = set()
        for members in self._rooms.values():
            seen.update(id(c) for c in members)
        return len(seen)


# Singleton instance
manager = ConnectionManager()
