"""
Service runtime for the greenhouse alert engine.

Provides structured logging setup and the ServiceRunner base class that
long-running services build on: configuration loading, storage connections,
signal handling and orderly shutdown.

Services:
    alert_engine: Reading subscription, threshold evaluation and alert dispatch

Example:
    >>> class MyService(ServiceRunner):
    ...     @property
    ...     def service_name(self) -> str:
    ...         return "my-service"
    ...
    ...     async def _initialize(self) -> None: ...
    ...     async def _run(self) -> None: ...
    >>>
    >>> await MyService("config").run()
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from greenhouse_alerts.config import AppConfig, LogFormat, load_config
from greenhouse_alerts.storage.postgres_client import PostgresClient
from greenhouse_alerts.storage.redis_client import RedisClient

logger = structlog.get_logger(__name__)


def setup_logging(
    level: str = "INFO",
    log_format: LogFormat | str = LogFormat.JSON,
) -> None:
    """
    Configure structlog over standard logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_format: ``json`` for one JSON object per line, ``text`` for the
            human-readable console renderer.
    """
    renderer: Any
    if LogFormat(log_format) == LogFormat.TEXT:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    # asyncpg and redis are chatty at DEBUG
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


class ServiceRunner(ABC):
    """
    Base class for long-running services.

    ``run()`` loads configuration, reconfigures logging from it, connects
    Redis and PostgreSQL, calls ``_initialize()`` and then ``_run()`` until
    it returns or a shutdown is requested (SIGINT/SIGTERM or
    ``request_shutdown()``). ``_cleanup()`` and the storage disconnects
    always run on the way out.

    Attributes:
        config_path: Configuration directory.
        config: Loaded application configuration.
        redis_client: Connected Redis client.
        postgres_client: Connected PostgreSQL client.
        shutdown_event: Set when the service should stop.
        logger: Logger bound to the service name.
    """

    def __init__(
        self,
        config_path: str = "config",
        config: Optional[AppConfig] = None,
    ) -> None:
        self.config_path = config_path
        self.config: Optional[AppConfig] = config
        self.redis_client: Optional[RedisClient] = None
        self.postgres_client: Optional[PostgresClient] = None
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Service name used in logs."""

    @abstractmethod
    async def _initialize(self) -> None:
        """Build service components once storage is connected."""

    @abstractmethod
    async def _run(self) -> None:
        """Main service loop."""

    async def _cleanup(self) -> None:
        """Release service components. Storage is disconnected afterwards."""

    def request_shutdown(self) -> None:
        """Ask the service to stop."""
        if not self.shutdown_event.is_set():
            self.logger.info("shutdown_requested", service=self.service_name)
            self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                pass

    async def _connect_storage(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration not loaded")

        self.redis_client = RedisClient(self.config.redis)
        await self.redis_client.connect()

        self.postgres_client = PostgresClient(self.config.postgres)
        await self.postgres_client.connect()

    async def _disconnect_storage(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.disconnect()
        if self.postgres_client is not None:
            await self.postgres_client.disconnect()

    async def run(self) -> None:
        """
        Run the service until its loop ends or shutdown is requested.

        Raises:
            ConfigLoadError: If configuration cannot be loaded.
            RedisConnectionException: If Redis is unreachable.
            PostgresConnectionException: If PostgreSQL is unreachable.
        """
        if self.config is None:
            self.config = load_config(self.config_path)

        setup_logging(self.config.logging.level.value, self.config.logging.format)
        self.logger = structlog.get_logger(self.service_name)
        self.logger.info(
            "service_starting",
            service=self.service_name,
            **self.config.summary(),
        )

        self._install_signal_handlers()

        try:
            await self._connect_storage()
            await self._initialize()

            run_task = asyncio.create_task(self._run())
            shutdown_task = asyncio.create_task(self.shutdown_event.wait())

            done, pending = await asyncio.wait(
                {run_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if run_task in done:
                run_task.result()

        finally:
            await self._cleanup()
            await self._disconnect_storage()
            self.logger.info("service_stopped", service=self.service_name)


__all__ = [
    "ServiceRunner",
    "setup_logging",
]
