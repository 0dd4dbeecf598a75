"""Redis-backed store for outstanding AuthnRequest IDs."""

import logging
from datetime import datetime

import redis

logger = logging.getLogger(__name__)


class RedisRequestStore:
    """Request store shared by all service instances.

    Keys expire after ttl_seconds (SETEX); consumption is atomic (GETDEL), so
    a request ID can be matched by at most one response.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 28800, prefix: str = "saml_request:"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, request_id: str) -> str:
        return f"{self.prefix}{request_id}"

    def save(self, request_id: str, issued_at: datetime) -> None:
        self.client.setex(self._key(request_id), self.ttl_seconds, issued_at.isoformat())

    def consume(self, request_id: str) -> bool:
        return self.client.getdel(self._key(request_id)) is not None
