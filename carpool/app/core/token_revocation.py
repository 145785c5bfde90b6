"""
Token Revocation checks backed by Redis.

The identity service writes the revocation keys; this service reads them so a
revoked token or a blocked user is rejected immediately.
"""

import logging

from carpool.app.core.redis_client import redis_client

logger = logging.getLogger(__name__)

# Redis key prefixes shared with the identity service
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open: if Redis is unreachable the request is allowed.
    """
    try:
        exists = await redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception as e:
        logger.warning(f"Error checking token revocation: {e}")
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """
    Check if all tokens for a user have been revoked (user blocked).
    """
    try:
        exists = await redis_client.exists(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return exists > 0
    except Exception as e:
        logger.warning(f"Error checking user token revocation: {e}")
        return False
