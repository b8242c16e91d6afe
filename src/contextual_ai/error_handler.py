# contextual_ai/error_handler.py
"""
Structured error reporting.

Components report failures here instead of only logging them. Each report
becomes an ErrorRecord that is logged at a level derived from its severity,
counted per component, and forwarded to any callbacks registered for its
category.

The handler is an ordinary object: construct one per orchestrator (or share
one explicitly) and pass it to the components that report through it.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from contextual_ai.models import (
    ErrorCategory,
    ErrorRecord,
    ErrorSeverity,
    ErrorStatistics,
    RecoveryStrategy,
)

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[ErrorRecord], None]

SEVERITY_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.ERROR,
}

CATEGORY_STRATEGIES = {
    ErrorCategory.NETWORK: RecoveryStrategy.RETRY,
    ErrorCategory.CONTEXT: RecoveryStrategy.GRACEFUL_DEGRADATION,
    ErrorCategory.INFERENCE: RecoveryStrategy.FALLBACK,
    ErrorCategory.PRIVACY: RecoveryStrategy.DISABLE_FEATURE,
}


class ErrorHandler:
    """Collects ErrorRecords, with per-component thresholds and callbacks."""

    def __init__(
        self,
        error_threshold: int = 5,
        time_window: float = 300.0,
        max_records: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        self.error_threshold = error_threshold
        self.time_window = time_window
        self.max_records = max_records
        self._clock = clock
        self._records: OrderedDict[str, ErrorRecord] = OrderedDict()
        self._callbacks: dict[ErrorCategory, list[ErrorCallback]] = {}
        # component -> (count, first error timestamp)
        self._counts: dict[str, tuple[int, float]] = {}

    def handle_error(
        self,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        component: str,
        error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> ErrorRecord:
        """Record, log and dispatch one error report."""
        record = ErrorRecord(
            timestamp=self._clock(),
            category=category,
            severity=severity,
            component=component,
            message=message,
            error_type=type(error).__name__ if error is not None else None,
            context=context or {},
            recovery_strategy=self.recovery_strategy(category, severity),
        )

        self._records[record.id] = record
        while len(self._records) > self.max_records:
            self._records.popitem(last=False)
        self._bump_count(component, record.timestamp)

        suffix = f" ({record.error_type})" if record.error_type else ""
        logger.log(
            SEVERITY_LOG_LEVELS[severity],
            f"[{category.value.upper()}] {component}: {message}{suffix}",
        )

        for callback in self._callbacks.get(category, []):
            try:
                callback(record)
            except Exception:
                logger.exception(f"Error callback failed for {record.id}")

        return record

    @staticmethod
    def recovery_strategy(category: ErrorCategory, severity: ErrorSeverity) -> RecoveryStrategy:
        if severity == ErrorSeverity.CRITICAL:
            return RecoveryStrategy.RESTART_COMPONENT
        return CATEGORY_STRATEGIES.get(category, RecoveryStrategy.RETRY)

    def on_error(self, category: ErrorCategory, callback: ErrorCallback) -> None:
        self._callbacks.setdefault(category, []).append(callback)

    # =========================================================================
    # Thresholds
    # =========================================================================

    def _bump_count(self, component: str, now: float) -> None:
        count, first = self._counts.get(component, (0, now))
        if now - first > self.time_window:
            count, first = 0, now
        self._counts[component] = (count + 1, first)

    def should_disable_component(self, component: str) -> bool:
        """True once a component reached the threshold inside the time window."""
        if component not in self._counts:
            return False
        count, first = self._counts[component]
        return count >= self.error_threshold and self._clock() - first <= self.time_window

    def reset_error_count(self, component: str) -> None:
        self._counts.pop(component, None)

    # =========================================================================
    # Queries
    # =========================================================================

    def mark_resolved(self, error_id: str) -> bool:
        record = self._records.get(error_id)
        if record is None:
            return False
        record.resolved = True
        return True

    def get_recent_errors(self, component: str, time_window: float | None = None) -> list[ErrorRecord]:
        """Errors for ``component`` inside the window, newest first."""
        cutoff = self._clock() - (self.time_window if time_window is None else time_window)
        recent = [r for r in self._records.values() if r.component == component and r.timestamp >= cutoff]
        return sorted(recent, key=lambda r: r.timestamp, reverse=True)

    def get_statistics(self) -> ErrorStatistics:
        stats = ErrorStatistics(total=len(self._records))
        for record in self._records.values():
            stats.by_category[record.category.value] = stats.by_category.get(record.category.value, 0) + 1
            stats.by_severity[record.severity.value] = stats.by_severity.get(record.severity.value, 0) + 1
            stats.by_component[record.component] = stats.by_component.get(record.component, 0) + 1
            if record.resolved:
                stats.resolved += 1
        stats.recent = list(self._records.values())[-10:]
        return stats

    def cleanup_resolved(self, max_age: float = 3600.0) -> int:
        """Drop resolved records older than ``max_age`` seconds."""
        cutoff = self._clock() - max_age
        stale = [rid for rid, r in self._records.items() if r.resolved and r.timestamp < cutoff]
        for rid in stale:
            del self._records[rid]
        return len(stale)

    def clear(self) -> None:
        self._records.clear()
        self._counts.clear()
