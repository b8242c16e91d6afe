# contextual_ai/__init__.py
"""
Contextual AI - page-aware chat with local inference and graceful fallback.

Quick start:
    ```python
    from contextual_ai import ContextSource, ContextualAIService, InferenceEngine

    source = ContextSource(monitor)
    service = ContextualAIService(InferenceEngine(backend), source)
    reply = await service.send_contextual_message("Summarize this page", "conv-1")
    ```
"""

from contextual_ai.context import ContextAggregator, ContextFormatter, ContextSource, PrivacyFilter
from contextual_ai.error_handler import ErrorHandler
from contextual_ai.exceptions import (
    AggregationError,
    ContextError,
    ContextualAIError,
    FormattingError,
    InferenceError,
    ModelLoadError,
)
from contextual_ai.orchestrator import ContextualAIService, build_contextual_message
from contextual_ai.services import AIService, CannedResponseService, InferenceConfig, InferenceEngine

__version__ = "0.1.0"

__all__ = [
    # Context pipeline
    "ContextAggregator",
    "ContextFormatter",
    "ContextSource",
    "PrivacyFilter",
    # Services
    "AIService",
    "CannedResponseService",
    "InferenceConfig",
    "InferenceEngine",
    # Orchestration
    "ContextualAIService",
    "build_contextual_message",
    "ErrorHandler",
    # Errors
    "AggregationError",
    "ContextError",
    "ContextualAIError",
    "FormattingError",
    "InferenceError",
    "ModelLoadError",
]
