# contextual_ai/context/__init__.py
"""
Page context pipeline.

snapshot -> ContextAggregator -> AggregatedContext
         -> ContextFormatter  -> FormattedContext
         -> ContextSource (caches + privacy filter) -> orchestrator
"""

from .aggregator import AggregatorConfig, ContentPriority, ContextAggregator, is_static_resource
from .cache import CacheStats, ContextCache
from .formatter import ContextFormatter, estimate_tokens, is_api_request, sanitize_url
from .privacy import PII_PATTERNS, PrivacyFilter, redact_text
from .protocols import PageMonitor, PrivacySettingsStore, SubscribablePageMonitor
from .source import ContextSource
from .suggestions import detect_task_patterns, generate_suggestions, prompt_suggestions

__all__ = [
    # Aggregation
    "AggregatorConfig",
    "ContentPriority",
    "ContextAggregator",
    "is_static_resource",
    # Caching
    "CacheStats",
    "ContextCache",
    # Formatting
    "ContextFormatter",
    "estimate_tokens",
    "is_api_request",
    "sanitize_url",
    # Privacy
    "PII_PATTERNS",
    "PrivacyFilter",
    "redact_text",
    # Collaborators
    "PageMonitor",
    "PrivacySettingsStore",
    "SubscribablePageMonitor",
    # Source & suggestions
    "ContextSource",
    "detect_task_patterns",
    "generate_suggestions",
    "prompt_suggestions",
]
