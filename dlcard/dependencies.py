"""Dependency injection with a singleton service manager.

The issuance coordinator, and the card cache and lock it owns, must be shared
by every request in the process, so they live on the ServiceManager singleton
together with the Redis client, the Metadata Store and the Link Issuer.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request

from dlcard.config import Settings, get_settings
from dlcard.coordinator import IssuanceCoordinator
from dlcard.links import RedisLinkIssuer
from dlcard.redis import close_redis, get_redis
from dlcard.store import RedisMetadataStore


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources."""

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self, cache: redis.Redis | None = None, settings: Settings | None = None) -> None:
        """Initialize shared resources once at startup.

        Args:
            cache: Redis client to use instead of the one built from REDIS_URL
            settings: Settings to use instead of the cached environment settings
        """
        if not self._initialized:
            self.settings = settings or get_settings()
            self.logger = self._setup_logger()
            self._owns_cache = cache is None
            self.cache = cache if cache is not None else await get_redis()
            self.store = RedisMetadataStore(self.cache, self.settings)
            self.link_issuer = RedisLinkIssuer(self.cache, self.settings)
            self.coordinator = IssuanceCoordinator(self.store, self.link_issuer, self.settings, self.logger)
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("dlcard")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if self._initialized and self._owns_cache:
            await close_redis()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking on top of the shared resources.

    Attributes:
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def coordinator(self) -> IssuanceCoordinator:
        return self.service_manager.coordinator

    @property
    def link_issuer(self) -> RedisLinkIssuer:
        return self.service_manager.link_issuer

    @property
    def store(self) -> RedisMetadataStore:
        return self.service_manager.store

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    client_ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

    return RequestContext(
        service_manager=manager,
        request_id=request_id,
        user_agent=user_agent,
        client_ip=client_ip,
    )
