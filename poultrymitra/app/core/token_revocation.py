"""
Token Revocation System using Redis.

Implements token blacklisting so a JWT stops working as soon as the user
logs out, instead of when it expires.
"""

import logging
from poultrymitra.app.core.config import settings

logger = logging.getLogger("poultrymitra.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(redis_client, token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        redis_client: Async Redis client
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens auto-expire anyway; keep the blacklist entry no longer than that
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis_client.set(f"{TOKEN_BLACKLIST_PREFIX}{token}", str(user_id), ex=ttl_seconds)
        return True
    except Exception as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(redis_client, token: str) -> bool:
    """
    Check if a token has been revoked.

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        exists = await redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception as e:
        # Fail open: an unreachable Redis should not lock every user out
        logger.warning("Error checking token revocation: %s", e)
        return False
