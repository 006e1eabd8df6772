"""
Session and current-agent stores.

Two keyed stores back the conversation orchestrator:

    session:{tenant}:{agent}:{phone}   ConversationSession (JSON)
    session:{tenant}:{phone}           ... when there is no agent id
    current_agent:{tenant}:{phone}     id of the agent owning the conversation

get() never fails: a miss (or a backend error) yields a fresh value.
set() failures are logged and dropped. The Redis stores keep an in-memory
fallback so a Redis outage degrades to process-local state instead of
failing the turn.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from pydantic import ValidationError
from redis.exceptions import RedisError

from agent.state.schemas import ConversationSession
from shared.config import Settings, get_settings

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = logging.getLogger(__name__)


def session_key(tenant_id: str, phone: str, agent_id: str | None = None) -> str:
    if agent_id:
        return f"session:{tenant_id}:{agent_id}:{phone}"
    return f"session:{tenant_id}:{phone}"


def current_agent_key(tenant_id: str, phone: str) -> str:
    return f"current_agent:{tenant_id}:{phone}"


class SessionStore(Protocol):
    async def get(self, tenant_id: str, phone: str, agent_id: str | None = None) -> ConversationSession: ...

    async def set(
        self, tenant_id: str, phone: str, session: ConversationSession, agent_id: str | None = None
    ) -> None: ...


class CurrentAgentStore(Protocol):
    async def get(self, tenant_id: str, phone: str) -> str | None: ...

    async def set(self, tenant_id: str, phone: str, agent_id: str) -> None: ...

    async def clear(self, tenant_id: str, phone: str) -> None: ...


# =============================================================================
# In-memory
# =============================================================================


class InMemorySessionStore:
    """Process-local session store (sessions kept as JSON snapshots)."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, tenant_id: str, phone: str, agent_id: str | None = None) -> ConversationSession:
        raw = self._data.get(session_key(tenant_id, phone, agent_id))
        if raw is None:
            return ConversationSession()
        return ConversationSession.model_validate_json(raw)

    async def set(
        self, tenant_id: str, phone: str, session: ConversationSession, agent_id: str | None = None
    ) -> None:
        self._data[session_key(tenant_id, phone, agent_id)] = session.model_dump_json()


class InMemoryCurrentAgentStore:
    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, tenant_id: str, phone: str) -> str | None:
        return self._data.get(current_agent_key(tenant_id, phone))

    async def set(self, tenant_id: str, phone: str, agent_id: str) -> None:
        self._data[current_agent_key(tenant_id, phone)] = agent_id.strip().lower()

    async def clear(self, tenant_id: str, phone: str) -> None:
        self._data.pop(current_agent_key(tenant_id, phone), None)


# =============================================================================
# Redis
# =============================================================================


class RedisSessionStore:
    """
    Redis-backed session store (SETEX with TTL).

    Args:
        client: redis.asyncio client (decode_responses=True)
        ttl_seconds: Expiration of session keys
        fallback: Store used while Redis is unreachable
    """

    def __init__(
        self,
        client: "redis.Redis",
        ttl_seconds: int = 86400,
        fallback: InMemorySessionStore | None = None,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.fallback = fallback or InMemorySessionStore()

    async def get(self, tenant_id: str, phone: str, agent_id: str | None = None) -> ConversationSession:
        key = session_key(tenant_id, phone, agent_id)
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Redis session read failed, using memory fallback | key={key} | error={e}")
            return await self.fallback.get(tenant_id, phone, agent_id)

        if raw is None:
            return ConversationSession()
        try:
            return ConversationSession.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Corrupted session discarded | key={key} | error={e}")
            return ConversationSession()

    async def set(
        self, tenant_id: str, phone: str, session: ConversationSession, agent_id: str | None = None
    ) -> None:
        key = session_key(tenant_id, phone, agent_id)
        try:
            await self.client.setex(key, self.ttl_seconds, session.model_dump_json())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis session write failed, using memory fallback | key={key} | error={e}")
            await self.fallback.set(tenant_id, phone, session, agent_id)


class RedisCurrentAgentStore:
    def __init__(
        self,
        client: "redis.Redis",
        ttl_seconds: int = 86400,
        fallback: InMemoryCurrentAgentStore | None = None,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.fallback = fallback or InMemoryCurrentAgentStore()

    async def get(self, tenant_id: str, phone: str) -> str | None:
        key = current_agent_key(tenant_id, phone)
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Redis current-agent read failed | key={key} | error={e}")
            return await self.fallback.get(tenant_id, phone)
        return value or None

    async def set(self, tenant_id: str, phone: str, agent_id: str) -> None:
        key = current_agent_key(tenant_id, phone)
        try:
            await self.client.setex(key, self.ttl_seconds, agent_id.strip().lower())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis current-agent write failed | key={key} | error={e}")
            await self.fallback.set(tenant_id, phone, agent_id)

    async def clear(self, tenant_id: str, phone: str) -> None:
        key = current_agent_key(tenant_id, phone)
        await self.fallback.clear(tenant_id, phone)
        try:
            await self.client.delete(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Redis current-agent clear failed | key={key} | error={e}")


# =============================================================================
# Factory
# =============================================================================


@dataclass(frozen=True)
class Stores:
    sessions: SessionStore
    current_agents: CurrentAgentStore


def build_stores(settings: Settings | None = None) -> Stores:
    """Pick the store backend from SESSION_BACKEND ("redis" or "memory")."""
    settings = settings or get_settings()
    if settings.SESSION_BACKEND.strip().lower() == "redis":
        from shared.redis_client import get_redis_client

        client = get_redis_client()
        logger.info("Session backend: redis")
        return Stores(
            sessions=RedisSessionStore(client, settings.SESSION_TTL_SECONDS),
            current_agents=RedisCurrentAgentStore(client, settings.CURRENT_AGENT_TTL_SECONDS),
        )

    logger.info("Session backend: memory")
    return Stores(sessions=InMemorySessionStore(), current_agents=InMemoryCurrentAgentStore())
