"""
Best-effort presence and chat-queue store backed by Redis.

The store is a hint layered over the database: every operation returns a
safe fallback when Redis is unavailable, and callers re-validate against
persisted state. Connection handling is an explicit state machine:

    disconnected -> connecting -> ready
         ^                          |
         +------ (any failure) -----+

While disconnected, a background task retries with capped exponential
backoff for a bounded number of attempts.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from redis.exceptions import RedisError

from chatdesk.core.config import settings
from chatdesk.core.redis_client import create_async_redis_client, get_redis_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class PresenceState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


def queue_key(company_id: UUID | str) -> str:
    """Set of pending chat ids awaiting an agent."""
    return f"chat:queue:{company_id}"


def online_key(company_id: UUID | str) -> str:
    """Set of agent user ids with a live realtime connection."""
    return f"online:{company_id}"


class PresenceStore:
    """Redis-backed set/key store that degrades to no-ops."""

    def __init__(
        self,
        client: Any = None,
        *,
        retry_base_seconds: float | None = None,
        retry_max_seconds: float | None = None,
        max_retries: int | None = None,
    ):
        self._client = client
        self._state = PresenceState.DISCONNECTED
        self._reconnect_task: asyncio.Task | None = None
        self._warned = False
        self._closed = False
        self.retry_base_seconds = (
            settings.PRESENCE_RETRY_BASE_SECONDS if retry_base_seconds is None else retry_base_seconds
        )
        self.retry_max_seconds = (
            settings.PRESENCE_RETRY_MAX_SECONDS if retry_max_seconds is None else retry_max_seconds
        )
        self.max_retries = settings.PRESENCE_MAX_RETRIES if max_retries is None else max_retries

    @classmethod
    def from_settings(cls) -> "PresenceStore":
        url = get_redis_url()
        client = create_async_redis_client(url) if url else None
        return cls(client)

    @property
    def state(self) -> PresenceState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def is_ready(self) -> bool:
        return self._state == PresenceState.READY

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Connect once; on failure hand off to the reconnect task."""
        self._closed = False
        if not self.enabled:
            logger.info("Presence store disabled (REDIS_URL not set)")
            return
        if await self._connect():
            return
        self._schedule_reconnect()

    async def stop(self) -> None:
        self._closed = True
        task = self._reconnect_task
        self._reconnect_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._client is not None:
            try:
                await self._client.aclose()
            except STORE_ERRORS as exc:
                logger.debug("Presence store close failed: %s", exc)
        self._state = PresenceState.DISCONNECTED

    async def _connect(self) -> bool:
        self._state = PresenceState.CONNECTING
        try:
            await self._client.ping()
        except STORE_ERRORS as exc:
            self._state = PresenceState.DISCONNECTED
            self._log_failure("connect", exc)
            return False
        self._state = PresenceState.READY
        self._warned = False
        logger.info("Presence store ready")
        return True

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based), capped."""
        return min(self.retry_base_seconds * (2 ** attempt), self.retry_max_seconds)

    def _schedule_reconnect(self) -> None:
        if self._closed or not self.enabled:
            return
        if self._reconnect_task and not self._reconnect_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._reconnect_task = loop.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        for attempt in range(self.max_retries):
            await asyncio.sleep(self.backoff_delay(attempt))
            if self._closed:
                return
            if await self._connect():
                logger.info("Presence store reconnected after %d attempt(s)", attempt + 1)
                return
        logger.error(
            "Presence store unavailable after %d retries; running without it",
            self.max_retries,
        )

    def _log_failure(self, operation: str, exc: BaseException) -> None:
        if not self._warned:
            logger.warning("Presence store %s failed: %s", operation, exc)
            self._warned = True
        else:
            logger.debug("Presence store %s failed: %s", operation, exc)

    async def _call(self, operation: str, fallback: T, fn: Callable[[], Awaitable[T]]) -> T:
        if not self.is_ready:
            return fallback
        try:
            return await fn()
        except STORE_ERRORS as exc:
            self._state = PresenceState.DISCONNECTED
            self._log_failure(operation, exc)
            self._schedule_reconnect()
            return fallback

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._call("get", None, lambda: self._client.get(key))

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        await self._call("set", None, lambda: self._client.set(key, value, ex=ex))

    async def delete(self, key: str) -> None:
        await self._call("delete", None, lambda: self._client.delete(key))

    async def sadd(self, key: str, *members: str) -> int:
        result = await self._call("sadd", 0, lambda: self._client.sadd(key, *members))
        return int(result or 0)

    async def srem(self, key: str, *members: str) -> int:
        result = await self._call("srem", 0, lambda: self._client.srem(key, *members))
        return int(result or 0)

    async def smembers(self, key: str) -> list[str]:
        members = await self._call("smembers", set(), lambda: self._client.smembers(key))
        return sorted(m.decode() if isinstance(m, bytes) else str(m) for m in members)


presence_store = PresenceStore.from_settings()
