"""
Redis client initialization and connection management.

The client is created during application startup, kept on app.state and
closed at shutdown. It backs token revocation.
"""

import redis.asyncio as redis
from fastapi import Request
from poultrymitra.app.core.config import Settings


def create_redis_client(settings: Settings) -> redis.Redis:
    """Build an async Redis client from settings (connects lazily)."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def get_redis(request: Request):
    """
    Get the Redis client created at startup.

    Used as a FastAPI dependency; tests override it.
    """
    return request.app.state.redis


async def ping_redis(client) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except Exception:
        return False
