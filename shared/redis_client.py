"""
Redis client singleton for real-time notification fan-out.

Notifications are published on a per-user pub/sub channel; the web socket
gateway subscribes to these channels and forwards events to connected
clients. Redis is not the source of truth for notifications (the database
is), so publishing is fire-and-forget.

Channel pattern:
    user:{user_id}:notifications
"""

import json
import logging
from functools import lru_cache
from typing import Any

import redis.asyncio as redis
from redis import ConnectionError as RedisConnectionError

from shared.config import get_settings

logger = logging.getLogger(__name__)


def user_channel(user_id: Any) -> str:
    """Pub/sub channel carrying real-time events for one user."""
    return f"user:{user_id}:notifications"


@lru_cache
def get_redis_client() -> "redis.Redis[str]":
    """
    Get cached Redis client instance with production-ready configuration.

    - Connection pooling (max 20 connections shared by api and workers)
    - Automatic retry on timeout for transient failures
    - Health check pings every 30 seconds

    Returns:
        Redis async client configured with connection pool and retry logic
    """
    settings = get_settings()

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )

        logger.info(
            f"Redis client initialized: {settings.REDIS_URL} "
            f"(max_connections=20, retry_on_timeout=True, health_check_interval=30s)"
        )
        return client

    except RedisConnectionError as e:
        logger.error(
            f"Redis connection failed: {e}. Real-time notifications unavailable.",
            exc_info=True
        )
        raise


async def publish_to_channel(
    channel: str,
    message: dict[str, Any],
    client: "redis.Redis[str] | None" = None,
) -> int:
    """
    Publish a message to a Redis pub/sub channel.

    Args:
        channel: Channel name
        message: Message dict to publish (will be JSON-serialized)
        client: Redis client (defaults to the cached singleton)

    Returns:
        Number of subscribers that received the message

    Raises:
        RedisConnectionError: If Redis is unreachable
    """
    client = client or get_redis_client()

    json_message = json.dumps(message, default=str)
    receivers = await client.publish(channel, json_message)

    logger.debug(f"Message published to channel '{channel}': {json_message[:100]}")
    return receivers


async def close_redis_client() -> None:
    """
    Close Redis connection gracefully.

    Note:
        Should be called during application shutdown.
    """
    try:
        client = get_redis_client()
        await client.aclose()
        logger.info("Redis client closed")
    except Exception as e:
        logger.warning(f"Error closing Redis client: {e}")


class RedisRealtimeEmitter:
    """
    Emits real-time events to a user's channel.

    Constructed once at startup and injected wherever notifications are
    created, so there is no process-wide socket singleton to initialize.
    """

    def __init__(self, client: "redis.Redis[str] | None" = None):
        self._client = client

    async def emit_to_user(self, user_id: Any, event: str, payload: dict[str, Any]) -> None:
        await publish_to_channel(
            user_channel(user_id),
            {"event": event, "data": payload},
            client=self._client,
        )
