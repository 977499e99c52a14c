import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional
import json
import logging
from .settings import settings
from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


async def init_redis():
    """Initialize Redis connection"""
    global redis_client
    redis_client = redis.from_url(
        settings.redis_url,
        decode_responses=True
    )

    # Test connection
    try:
        await redis_client.ping()
        logger.info("Redis connected")
    except RedisError as e:
        logger.error(f"Redis connection failed: {e}")
        redis_client = None


class SessionStore:
    """Authenticated sessions keyed by bearer token.

    The role is written once at authentication and never refreshed, so a role
    change only takes effect after the subscriber signs in again. Every
    operation raises StoreUnavailable when the cache cannot be reached.
    """

    def __init__(self, client: Optional[redis.Redis] = None, ttl: Optional[int] = None):
        self.redis = client if client is not None else redis_client
        self.ttl = ttl or settings.session_ttl_seconds

    def _client(self, operation: str) -> redis.Redis:
        if self.redis is None:
            logger.error(f"Session cache not connected during {operation}")
            raise StoreUnavailable(operation)
        return self.redis

    async def set_session(self, token: str, session_data: dict):
        client = self._client("set_session")
        try:
            await client.setex(
                f"session:{token}",
                self.ttl,
                json.dumps(session_data, default=str)
            )
        except RedisError as e:
            logger.error(f"Session cache failure during set_session: {e}")
            raise StoreUnavailable("set_session") from e

    async def get_session(self, token: str) -> Optional[dict]:
        client = self._client("get_session")
        try:
            data = await client.get(f"session:{token}")
        except RedisError as e:
            logger.error(f"Session cache failure during get_session: {e}")
            raise StoreUnavailable("get_session") from e

        if data:
            return json.loads(data)
        return None

    async def delete_session(self, token: str):
        client = self._client("delete_session")
        try:
            await client.delete(f"session:{token}")
        except RedisError as e:
            logger.error(f"Session cache failure during delete_session: {e}")
            raise StoreUnavailable("delete_session") from e
