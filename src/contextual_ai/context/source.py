# contextual_ai/context/source.py
"""
Context Source - the single entry point the chat layer uses for page context.

Wraps ContextAggregator + ContextFormatter behind two caches:

- aggregated context: TTL-bound; replaced early when the monitor pushes a
  new snapshot
- formatted context: keyed by snapshot and token budget, dropped whenever
  the privacy configuration changes (redaction depends on it)

Aggregation and formatting failures are logged and reported as "no
context" (None) so a broken page never blocks a chat message.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from contextual_ai.config import DEFAULT_CONTEXT_TTL, DEFAULT_MAX_CONTEXT_TOKENS, PRIVACY_FILTERED_MARKER
from contextual_ai.exceptions import ContextError
from contextual_ai.models import (
    AggregatedContext,
    ChatMessage,
    ContextSuggestion,
    DataFlowType,
    FormattedContext,
    PageSnapshot,
    PrivacyConfig,
)

from .aggregator import ContextAggregator
from .cache import ContextCache
from .formatter import ContextFormatter
from .privacy import PrivacyFilter, redact_text
from .protocols import PageMonitor, PrivacySettingsStore, SubscribablePageMonitor
from .suggestions import generate_suggestions, prompt_suggestions

logger = logging.getLogger(__name__)

_CURRENT = "current"


class ContextSource:
    """Cached, privacy-filtered page context for the chat UI and orchestrator."""

    def __init__(
        self,
        monitor: PageMonitor | None = None,
        *,
        aggregator: ContextAggregator | None = None,
        formatter: ContextFormatter | None = None,
        privacy_config: PrivacyConfig | None = None,
        privacy_store: PrivacySettingsStore | None = None,
        context_ttl: float = DEFAULT_CONTEXT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator or ContextAggregator(clock=clock)
        self.formatter = formatter or ContextFormatter()
        self.privacy = PrivacyFilter(privacy_config)
        self.privacy_store = privacy_store
        self._clock = clock
        self._aggregated: ContextCache[AggregatedContext] = ContextCache(ttl=context_ttl, max_entries=1, clock=clock)
        self._formatted: ContextCache[FormattedContext] = ContextCache(ttl=context_ttl, max_entries=16, clock=clock)
        self.monitor: PageMonitor | None = None
        if monitor is not None:
            self.initialize(monitor)

    def initialize(self, monitor: PageMonitor) -> None:
        """Attach the page monitor, subscribing to pushes when supported."""
        self.monitor = monitor
        if isinstance(monitor, SubscribablePageMonitor):
            monitor.subscribe(self.handle_snapshot)

    def is_ready(self) -> bool:
        return self.monitor is not None and self.monitor.is_active()

    # =========================================================================
    # Context
    # =========================================================================

    async def get_current_context(self) -> AggregatedContext | None:
        """Aggregated context for the current page, or None if unavailable."""
        if not self.is_ready():
            logger.warning("Context source not ready: page monitoring is not active")
            return None

        cached = self._aggregated.get(_CURRENT)
        if cached is not None:
            return cached

        try:
            snapshot = await self.monitor.get_snapshot()
        except Exception as e:
            logger.error(f"Failed to get page snapshot: {e}")
            return None
        if snapshot is None:
            return None

        return self._store_snapshot(snapshot)

    def handle_snapshot(self, snapshot: PageSnapshot) -> None:
        """Push handler: replace the cached context with a fresh snapshot."""
        self._store_snapshot(snapshot)

    def _store_snapshot(self, snapshot: PageSnapshot) -> AggregatedContext | None:
        try:
            aggregated = self.aggregator.aggregate(snapshot)
        except ContextError as e:
            logger.warning(f"Context aggregation failed, continuing without context: {e}")
            return None
        self._aggregated.put(_CURRENT, aggregated)
        return aggregated

    async def get_ai_formatted_context(
        self,
        query: str | None = None,
        max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
    ) -> FormattedContext | None:
        """Privacy-filtered, token-bounded context for a prompt."""
        aggregated = await self.get_current_context()
        if aggregated is None:
            return None

        await self._refresh_privacy_config()

        key = f"{aggregated.metadata.url}:{aggregated.metadata.timestamp}:{max_tokens}"
        cached = self._formatted.get(key)
        if cached is not None:
            return cached

        try:
            formatted = self.formatter.format_for_ai(aggregated, query, max_tokens, redact=self.privacy.apply)
        except ContextError as e:
            logger.warning(f"Context formatting failed, continuing without context: {e}")
            return None

        self._formatted.put(key, formatted)
        return formatted

    async def get_context_summary(self) -> str | None:
        """Short plain-text description of the page."""
        context = await self.get_current_context()
        if context is None:
            return None

        summary = context.summary
        parts = [f"Page Type: {summary.page_type.value}", f"URL: {context.metadata.url}"]

        if summary.primary_content:
            if self.privacy.is_excluded(context.metadata.url):
                parts.append(f"Content: {PRIVACY_FILTERED_MARKER}")
            else:
                preview = summary.primary_content[:200]
                if self.privacy.config.redact_sensitive_data:
                    preview = redact_text(preview)
                ellipsis = "..." if len(summary.primary_content) > 200 else ""
                parts.append(f"Content: {preview}{ellipsis}")

        if summary.key_elements:
            parts.append(f"Key Elements: {', '.join(summary.key_elements[:3])}")
        if summary.user_activity.recent_interactions > 0:
            parts.append(f"Recent Activity: {summary.user_activity.recent_interactions} interactions")

        api_calls = sum(1 for flow in summary.data_flows if flow.type == DataFlowType.API)
        if api_calls:
            parts.append(f"API Activity: {api_calls} recent calls")

        return "\n".join(parts)

    async def get_prompt_suggestions(self) -> list[str]:
        return prompt_suggestions(await self.get_current_context())

    async def generate_suggestions(self, history: list[ChatMessage] | None = None) -> list[ContextSuggestion]:
        context = await self.get_current_context()
        if context is None:
            return []
        return generate_suggestions(context, history)

    # =========================================================================
    # Configuration
    # =========================================================================

    async def _refresh_privacy_config(self) -> None:
        if self.privacy_store is None:
            return
        try:
            config = await self.privacy_store.get_privacy_config()
        except Exception as e:
            logger.warning(f"Could not read privacy settings, keeping current ones: {e}")
            return
        if config != self.privacy.config:
            self.update_privacy_config(config)

    def update_privacy_config(self, config: PrivacyConfig) -> None:
        self.privacy.update_config(config)
        self._formatted.invalidate_all()
        logger.info("Privacy configuration updated; formatted context cache cleared")

    def clear_cache(self) -> None:
        self._aggregated.invalidate_all()
        self._formatted.invalidate_all()
        self.aggregator.clear_cache()
