"""
Threshold evaluation and alert deduplication.

This module contains the rule set, the deduplication engine, threshold
lookup, alert storage and notification routing.

Components:
    rules: ThresholdRuleSet mapping a reading to candidate detections
    engine: AlertEngine for deduplication and alert admission
    thresholds: ThresholdConfigProvider with caching and fallback
    pipeline: AlertPipeline, the per-reading entry point
    storage: AlertStorage over PostgreSQL
    dispatcher: ChannelDispatcher for notification routing
    channels/: Alert notification channels (console, pubsub)

Example:
    >>> from greenhouse_alerts.detection import (
    ...     AlertEngine,
    ...     AlertPipeline,
    ...     AlertStorage,
    ...     ThresholdConfigProvider,
    ...     ThresholdRuleSet,
    ... )
    >>>
    >>> storage = AlertStorage(postgres_client)
    >>> pipeline = AlertPipeline(
    ...     rules=ThresholdRuleSet(),
    ...     engine=AlertEngine(storage),
    ...     thresholds=ThresholdConfigProvider(redis_client, config.thresholds),
    ... )
"""

from greenhouse_alerts.detection.rules import (
    LIGHT_LEVEL_LOW_SEVERITY,
    ThresholdRuleSet,
    create_rule_set,
)
from greenhouse_alerts.detection.storage import (
    AlertStorage,
    AlertStore,
    create_alert_storage,
)
from greenhouse_alerts.detection.engine import (
    COOLDOWN_WINDOW_SECONDS,
    AlertEngine,
    create_alert_engine,
)
from greenhouse_alerts.detection.thresholds import (
    ThresholdConfigProvider,
    ThresholdSource,
)
from greenhouse_alerts.detection.pipeline import AlertPipeline, create_pipeline
from greenhouse_alerts.detection.dispatcher import (
    DEFAULT_SEVERITY_CHANNELS,
    AlertChannel,
    ChannelDispatcher,
    create_dispatcher,
)

__all__ = [
    # Rules
    "ThresholdRuleSet",
    "create_rule_set",
    "LIGHT_LEVEL_LOW_SEVERITY",
    # Storage
    "AlertStore",
    "AlertStorage",
    "create_alert_storage",
    # Engine
    "AlertEngine",
    "create_alert_engine",
    "COOLDOWN_WINDOW_SECONDS",
    # Thresholds
    "ThresholdConfigProvider",
    "ThresholdSource",
    # Pipeline
    "AlertPipeline",
    "create_pipeline",
    # Dispatcher
    "AlertChannel",
    "ChannelDispatcher",
    "create_dispatcher",
    "DEFAULT_SEVERITY_CHANNELS",
]
