"""
Alert deduplication and emission engine.

This module provides the AlertEngine class which turns candidate detections
into persisted alerts, suppressing repeats of the same ongoing problem within
the cooldown window.

Key Features:
    - Deduplication by (greenhouse, condition type, device) within 10 minutes
    - Per-key serialization of the lookup-then-insert sequence
    - Per-candidate failure isolation: one failing store call never aborts
      the rest of the batch
    - Explicit lookup failure policy (fail the candidate, or assume no
      active alert and insert)
    - Timeouts on every store call

Concurrency:
    Each DedupKey has an asyncio.Lock held around its lookup and insert, so
    two concurrent evaluations of the same key cannot both insert. Locks are
    reference counted and dropped when no task holds or waits for them.
    Different keys never block each other. The locks are process-local: a
    given greenhouse must be handled by a single engine process.

Example:
    >>> engine = AlertEngine(storage)
    >>> result = await engine.process(detections, greenhouse_id="gh-1")
    >>> for event in result.events:
    ...     await dispatcher.dispatch(event)
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, Sequence

import structlog

from greenhouse_alerts.config.models import EngineSettings, LookupFailurePolicy
from greenhouse_alerts.detection.storage import AlertStore
from greenhouse_alerts.models.alerts import (
    Alert,
    CandidateDetection,
    CandidateFailure,
    ProcessResult,
)

logger = structlog.get_logger(__name__)


# Fixed cooldown window for repeat alerts
COOLDOWN_WINDOW_SECONDS = 600

DEFAULT_STORE_TIMEOUT_SECONDS = 5.0

STAGE_LOOKUP = "lookup"
STAGE_INSERT = "insert"


class AlertEngine:
    """
    Admits candidate detections as alerts, suppressing duplicates.

    For each candidate, in order:
    1. Look up an unresolved alert with the same DedupKey created within
       the cooldown window.
    2. If one exists, suppress the candidate.
    3. Otherwise build a new Alert and insert it.

    Attributes:
        store: Alert store used for lookup and insert.
        store_timeout_seconds: Timeout for each store call.
        lookup_failure_policy: Behaviour when the lookup fails.
        cooldown: Deduplication window.

    Example:
        >>> engine = AlertEngine(
        ...     store=storage,
        ...     lookup_failure_policy=LookupFailurePolicy.ASSUME_NONE,
        ... )
        >>> result = await engine.process(detections, "gh-1")
        >>> result.suppressed
        0
    """

    def __init__(
        self,
        store: AlertStore,
        store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS,
        lookup_failure_policy: LookupFailurePolicy = LookupFailurePolicy.FAIL_CANDIDATE,
    ) -> None:
        """
        Initialize the AlertEngine.

        Args:
            store: Alert store (find_active, insert).
            store_timeout_seconds: Timeout for each store call.
            lookup_failure_policy: Behaviour when the lookup fails or times out.
        """
        self.store = store
        self.store_timeout_seconds = store_timeout_seconds
        self.lookup_failure_policy = lookup_failure_policy
        self.cooldown = timedelta(seconds=COOLDOWN_WINDOW_SECONDS)

        # Per-key locks and the number of tasks holding or waiting on each
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

        # Lifetime counters
        self._admitted_count = 0
        self._suppressed_count = 0
        self._failed_count = 0

        logger.info(
            "alert_engine_initialized",
            cooldown_seconds=COOLDOWN_WINDOW_SECONDS,
            store_timeout_seconds=store_timeout_seconds,
            lookup_failure_policy=lookup_failure_policy.value,
        )

    async def process(
        self,
        detections: Sequence[CandidateDetection],
        greenhouse_id: str,
        timestamp: Optional[datetime] = None,
    ) -> ProcessResult:
        """
        Deduplicate, persist and report new alerts for one greenhouse.

        Candidates are handled sequentially in the given order; the admitted
        alerts keep that order. Store failures are reported per candidate in
        the result and never raised.

        Args:
            detections: Candidate detections from the rule set.
            greenhouse_id: Greenhouse the detections belong to.
            timestamp: Current time (defaults to now, UTC). Used as the new
                alerts' ``created_at`` and as the end of the cooldown window.

        Returns:
            ProcessResult: Admitted alerts, failures and suppressed count.

        Raises:
            ValueError: If a detection belongs to a different greenhouse.
                Raised before any store call.

        Example:
            >>> result = await engine.process(detections, "gh-1")
            >>> [a.condition_type.value for a in result.alerts]
            ['TEMPERATURE_HIGH']
        """
        for detection in detections:
            if detection.greenhouse_id != greenhouse_id:
                raise ValueError(
                    f"Detection for greenhouse {detection.greenhouse_id!r} "
                    f"passed to process() for greenhouse {greenhouse_id!r}"
                )

        if not detections:
            return ProcessResult()

        now = timestamp or datetime.now(timezone.utc)
        since = now - self.cooldown

        alerts: List[Alert] = []
        failures: List[CandidateFailure] = []
        suppressed = 0

        for detection in detections:
            key = str(detection.dedup_key)

            async with self._key_lock(key):
                try:
                    existing = await self._call_store(
                        self.store.find_active(detection.dedup_key, since)
                    )
                except Exception as e:
                    error = self._describe_error(e)
                    if self.lookup_failure_policy == LookupFailurePolicy.FAIL_CANDIDATE:
                        logger.error(
                            "alert_lookup_failed",
                            dedup_key=key,
                            error=error,
                        )
                        failures.append(
                            CandidateFailure(
                                detection=detection,
                                stage=STAGE_LOOKUP,
                                error=error,
                            )
                        )
                        continue

                    logger.warning(
                        "alert_lookup_failed_assuming_none",
                        dedup_key=key,
                        error=error,
                    )
                    existing = None

                if existing is not None:
                    suppressed += 1
                    logger.info(
                        "alert_suppressed",
                        dedup_key=key,
                        active_alert_id=existing.alert_id,
                        active_since=existing.created_at.isoformat(),
                    )
                    continue

                alert = Alert.from_detection(detection, created_at=now)

                try:
                    await self._call_store(self.store.insert(alert))
                except Exception as e:
                    error = self._describe_error(e)
                    logger.error(
                        "alert_insert_failed",
                        dedup_key=key,
                        alert_id=alert.alert_id,
                        error=error,
                    )
                    failures.append(
                        CandidateFailure(
                            detection=detection,
                            stage=STAGE_INSERT,
                            error=error,
                        )
                    )
                    continue

                alerts.append(alert)
                logger.info(
                    "alert_created",
                    alert_id=alert.alert_id,
                    dedup_key=key,
                    severity=alert.severity.value,
                    value=alert.value,
                    threshold=alert.threshold,
                )

        self._admitted_count += len(alerts)
        self._suppressed_count += suppressed
        self._failed_count += len(failures)

        return ProcessResult(
            alerts=alerts,
            failures=failures,
            suppressed=suppressed,
        )

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        """
        Hold the lock for one DedupKey.

        The lock entry is removed once the last holder or waiter leaves.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
            self._lock_users[key] = 0
        self._lock_users[key] += 1

        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _call_store(self, call: Awaitable[Any]) -> Any:
        """Await a store call with the configured timeout."""
        return await asyncio.wait_for(call, timeout=self.store_timeout_seconds)

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"store call timed out after {self.store_timeout_seconds}s"
        return str(error) or type(error).__name__

    def get_lock_count(self) -> int:
        """
        Get the number of DedupKey locks currently held or awaited.

        Returns:
            int: Number of live per-key locks.
        """
        return len(self._locks)

    def get_stats(self) -> Dict[str, int]:
        """
        Get lifetime engine counters.

        Returns:
            Dict[str, int]: Admitted, suppressed and failed candidate counts.
        """
        return {
            "admitted": self._admitted_count,
            "suppressed": self._suppressed_count,
            "failed": self._failed_count,
        }


async def create_alert_engine(
    store: AlertStore,
    settings: Optional[EngineSettings] = None,
) -> AlertEngine:
    """
    Factory function to create an AlertEngine.

    Args:
        store: Alert store for lookup and insert.
        settings: Engine settings (defaults to EngineSettings()).

    Returns:
        AlertEngine: A new engine instance.

    Example:
        >>> engine = await create_alert_engine(storage, config.engine)
    """
    settings = settings or EngineSettings()
    return AlertEngine(
        store=store,
        store_timeout_seconds=settings.store_timeout_seconds,
        lookup_failure_policy=settings.lookup_failure_policy,
    )
