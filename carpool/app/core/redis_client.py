"""
Redis client initialization.

Redis holds the token revocation flags checked on every authenticated request.
"""

import redis.asyncio as redis
from carpool.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)
