"""
Threshold configuration lookup with caching and fallback.

This module provides the ThresholdConfigProvider class which resolves the
ThresholdConfig for a greenhouse before rule evaluation.

Resolution order:
    1. Settings stored for the greenhouse (Redis ``settings:thresholds:{id}``),
       merged over the configured thresholds
    2. Per-greenhouse override from alerts.yaml
    3. ``thresholds.defaults`` from alerts.yaml
    4. Built-in defaults (ThresholdConfig())

Resolved configs are cached per greenhouse for ``config_refresh_seconds``.
A failing or slow settings source never fails evaluation: the last cached
value, or else the configured fallback, is served and a warning is logged.

Example:
    >>> provider = ThresholdConfigProvider(redis_client, config.thresholds)
    >>> thresholds = await provider.get_config("gh-1")
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import structlog
from pydantic import ValidationError

from greenhouse_alerts.config.models import ThresholdsConfig
from greenhouse_alerts.models.thresholds import ThresholdConfig

logger = structlog.get_logger(__name__)


DEFAULT_REFRESH_SECONDS = 60
DEFAULT_SOURCE_TIMEOUT_SECONDS = 5.0


class ThresholdSource(Protocol):
    """Source of per-greenhouse threshold settings."""

    async def get_threshold_config(self, greenhouse_id: str) -> Optional[Dict[str, Any]]:
        """Return stored settings for the greenhouse, or None if unset."""
        ...


@dataclass
class _CacheEntry:
    config: ThresholdConfig
    loaded_at: float


class ThresholdConfigProvider:
    """
    Resolves and caches ThresholdConfig per greenhouse.

    Attributes:
        source: Settings source, or None to use only the configured thresholds.
        thresholds: Configured defaults and per-greenhouse overrides.
        refresh_seconds: Cache lifetime of a resolved config.
        timeout_seconds: Timeout for one source lookup.

    Example:
        >>> provider = ThresholdConfigProvider(
        ...     source=None,
        ...     thresholds=ThresholdsConfig(),
        ... )
        >>> (await provider.get_config("gh-1")).light_low
        200.0
    """

    def __init__(
        self,
        source: Optional[ThresholdSource],
        thresholds: Optional[ThresholdsConfig] = None,
        refresh_seconds: int = DEFAULT_REFRESH_SECONDS,
        timeout_seconds: float = DEFAULT_SOURCE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.thresholds = thresholds or ThresholdsConfig()
        self.refresh_seconds = refresh_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}

    async def get_config(self, greenhouse_id: str) -> ThresholdConfig:
        """
        Get the thresholds to evaluate a greenhouse's readings with.

        Args:
            greenhouse_id: Greenhouse identifier.

        Returns:
            ThresholdConfig: Resolved thresholds. Never raises for source
                errors.
        """
        now = self._clock()
        cached = self._cache.get(greenhouse_id)
        if cached is not None and now - cached.loaded_at < self.refresh_seconds:
            return cached.config

        configured = self.thresholds.get_thresholds(greenhouse_id)
        if self.source is None:
            self._cache[greenhouse_id] = _CacheEntry(configured, now)
            return configured

        try:
            stored = await asyncio.wait_for(
                self.source.get_threshold_config(greenhouse_id),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            fallback = cached.config if cached is not None else configured
            logger.warning(
                "threshold_lookup_failed",
                greenhouse_id=greenhouse_id,
                error=str(e) or type(e).__name__,
                serving="cached" if cached is not None else "configured",
            )
            return fallback

        config = self._merge(greenhouse_id, configured, stored)
        self._cache[greenhouse_id] = _CacheEntry(config, now)
        return config

    def _merge(
        self,
        greenhouse_id: str,
        configured: ThresholdConfig,
        stored: Optional[Dict[str, Any]],
    ) -> ThresholdConfig:
        """Overlay stored settings on the configured thresholds."""
        if not stored:
            return configured

        known = {
            name: value
            for name, value in stored.items()
            if name in ThresholdConfig.model_fields and value is not None
        }
        if not known:
            return configured

        try:
            return ThresholdConfig(**{**configured.model_dump(), **known})
        except ValidationError as e:
            logger.warning(
                "threshold_settings_invalid",
                greenhouse_id=greenhouse_id,
                error=str(e),
            )
            return configured

    def invalidate(self, greenhouse_id: Optional[str] = None) -> None:
        """
        Drop cached configs.

        Args:
            greenhouse_id: Greenhouse to drop, or None to clear everything.
        """
        if greenhouse_id is None:
            self._cache.clear()
        else:
            self._cache.pop(greenhouse_id, None)

    def get_cache_size(self) -> int:
        """Number of greenhouses with a cached config."""
        return len(self._cache)
