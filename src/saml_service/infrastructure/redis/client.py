"""Redis Client for SAML Service

Provides the Redis connection used by the request-ID store when
InResponseTo correlation runs across several service instances.
"""

import logging
from typing import Optional

import redis

from saml_service.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper"""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize Redis client

        Args:
            settings: Settings providing the Redis URL (defaults to process settings)
        """
        self._settings = settings or get_settings()
        self._client: Optional[redis.Redis] = None

    def connect(self):
        """Establish Redis connection"""
        if not self._client:
            settings = self._settings
            self._client = redis.Redis.from_url(settings.redis_url)
            logger.info(f"Connected to Redis: {settings.redis_host}:{settings.redis_port}/{settings.redis_db}")

    def disconnect(self):
        """Close Redis connection"""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("Disconnected from Redis")

    def get_client(self) -> redis.Redis:
        """Get the underlying Redis client

        Returns:
            Redis client instance

        Raises:
            RuntimeError: If client not connected
        """
        if not self._client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


def get_redis_client(settings: Optional[Settings] = None) -> RedisClient:
    """Get or create global Redis client

    Returns:
        Connected RedisClient instance
    """
    global _redis_client
    if not _redis_client:
        _redis_client = RedisClient(settings)
        _redis_client.connect()
    return _redis_client


def close_redis_client():
    """Close global Redis client"""
    global _redis_client
    if _redis_client:
        _redis_client.disconnect()
        _redis_client = None
