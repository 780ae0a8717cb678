import logging
from typing import Optional

import redis

import settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """Shared Redis client for the record store and health checks"""

    def __init__(
        self,
        redis_url: str = None,
        timeout: float = None,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url or settings.REDIS_URL
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS
        self.redis_client = client
        if self.redis_client is None:
            self._connect()

    def _connect(self):
        """Create the client; the first command opens the socket"""
        self.redis_client = redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
            health_check_interval=30,
        )
        logger.info(f"Configured Redis client for {self.redis_url}")

    @property
    def client(self) -> redis.Redis:
        return self.redis_client

    def ping(self) -> bool:
        """Test Redis connection"""
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self) -> None:
        try:
            self.redis_client.close()
        except redis.RedisError as e:
            logger.warning(f"Error closing Redis client: {e}")
