"""Outstanding AuthnRequest ID store.

Only used when InResponseTo correlation is enabled
(SAML_VALIDATE_IN_RESPONSE_TO=ifPresent|always). The default posture is
stateless: no request IDs are kept and InResponseTo is never checked.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class RequestStore(Protocol):
    """Storage contract for outstanding request IDs."""

    def save(self, request_id: str, issued_at: datetime) -> None:
        """Remember a request ID until it is consumed or expires."""
        ...

    def consume(self, request_id: str) -> bool:
        """Remove a request ID; return True if it was outstanding."""
        ...


class InMemoryRequestStore:
    """Process-local request store with TTL.

    WARNING: Only works for single-instance deployments. With multiple
    instances behind a load balancer, use the Redis-backed store.
    """

    def __init__(self, ttl_seconds: int = 28800, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _purge_expired(self, now: float) -> None:
        expired = [request_id for request_id, expires_at in self._entries.items() if expires_at <= now]
        for request_id in expired:
            del self._entries[request_id]

    def save(self, request_id: str, issued_at: datetime) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._entries[request_id] = now + self.ttl_seconds

    def consume(self, request_id: str) -> bool:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            return self._entries.pop(request_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._entries)


def create_request_store(config, settings=None) -> Optional[RequestStore]:
    """Create the request store matching configuration.

    Args:
        config: ServiceProviderConfig
        settings: Settings (selects the backend; defaults to in-memory)

    Returns:
        RequestStore, or None when correlation is disabled
    """
    if config.validate_in_response_to == "never":
        return None

    backend = getattr(settings, "request_store_backend", "memory")
    if backend == "redis":
        from saml_service.infrastructure.redis.client import get_redis_client
        from saml_service.infrastructure.redis.request_store import RedisRequestStore

        logger.info("InResponseTo correlation enabled (redis request store)")
        return RedisRequestStore(get_redis_client(settings).get_client(), ttl_seconds=config.request_id_ttl_seconds)

    logger.info("InResponseTo correlation enabled (in-memory request store)")
    return InMemoryRequestStore(ttl_seconds=config.request_id_ttl_seconds)
