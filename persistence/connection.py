"""
FeedSteer Redis Connection

Process-wide Redis client used by the preference store.

Environment:
    REDIS_URL       Full connection URL; takes precedence when set
    REDIS_HOST      Hostname (default: localhost)
    REDIS_PORT      Port (default: 6379)
    REDIS_DB        Database index (default: 0)
    REDIS_PASSWORD  Password (optional for local development)
"""

import os
import logging
from functools import lru_cache

import redis
from redis.exceptions import RedisError, AuthenticationError

logger = logging.getLogger(__name__)

# Preference reads sit on the page's critical path
SOCKET_TIMEOUT_SECONDS = 2.0
MAX_CONNECTIONS = 10


def _build_pool() -> redis.ConnectionPool:
    url = os.getenv("REDIS_URL")
    if url:
        return redis.ConnectionPool.from_url(
            url,
            decode_responses=True,
            max_connections=MAX_CONNECTIONS,
            socket_timeout=SOCKET_TIMEOUT_SECONDS,
        )

    password = os.getenv("REDIS_PASSWORD")
    if not password:
        logger.warning("REDIS_PASSWORD is not set, connecting without authentication")

    return redis.ConnectionPool(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", 6379)),
        db=int(os.getenv("REDIS_DB", 0)),
        password=password or None,
        decode_responses=True,
        max_connections=MAX_CONNECTIONS,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
    )


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Shared Redis client, created on first use and pinged before it is returned.

    Raises:
        RedisError: The server is unreachable or rejected the credentials.
        ValueError: REDIS_PORT or REDIS_DB is not an integer.
    """
    pool = _build_pool()
    client = redis.Redis(connection_pool=pool)
    try:
        client.ping()
    except AuthenticationError:
        logger.critical("Redis authentication failed. Check REDIS_PASSWORD.")
        raise
    except RedisError as e:
        logger.critical(f"Could not connect to Redis: {e}")
        raise

    kwargs = pool.connection_kwargs
    logger.info(
        f"Connected to Redis at {kwargs.get('host', 'localhost')}:{kwargs.get('port', 6379)}"
        f"/{kwargs.get('db', 0)}"
    )
    return client
