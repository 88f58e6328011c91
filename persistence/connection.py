import os
import logging
from functools import lru_cache

import redis.asyncio as redis
from redis.exceptions import RedisError

# Configure module-level logger
logger = logging.getLogger(__name__)

@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Creates a singleton async Redis client with a connection pool.

    Reads configuration from environment variables:
    - REDIS_HOST: Hostname (default: localhost)
    - REDIS_PORT: Port (default: 6379)
    - REDIS_PASSWORD: Password (REQUIRED)

    The pool connects lazily; call ping_redis() to verify connectivity.
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    password = os.getenv("REDIS_PASSWORD")

    if not password:
        logger.critical("REDIS_PASSWORD environment variable is not set.")
        raise ValueError("REDIS_PASSWORD is required for production security.")

    # Pool constraints match the container limits of the state backend
    pool = redis.ConnectionPool(
        host=host,
        port=port,
        password=password,
        decode_responses=True,  # Returns str instead of bytes
        max_connections=50,     # Cap connections to prevent resource exhaustion
        socket_timeout=5.0      # Fail fast if container is down
    )
    return redis.Redis(connection_pool=pool)


async def ping_redis(client: redis.Redis) -> None:
    """Health check: fail loudly if Redis is unreachable."""
    try:
        await client.ping()
        logger.info("Successfully connected to Redis")
    except RedisError as e:
        logger.critical(f"Could not connect to Redis: {e}")
        raise
