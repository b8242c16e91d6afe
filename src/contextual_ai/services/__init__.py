# contextual_ai/services/__init__.py
"""
AI services.

- InferenceEngine: primary, runs a local model tier through a ModelBackend
- CannedResponseService: fallback, always available
"""

from .base import AIService, ChunkCallback, stream_words
from .catalog import MODEL_TIERS, fallback_chain, smallest_tier, tiers_by_footprint
from .errors import classify_error
from .fallback import CannedResponseService
from .inference_engine import (
    InferenceConfig,
    InferenceEngine,
    LoadedModel,
    ModelBackend,
    extract_reply,
    format_prompt,
)

__all__ = [
    # Contract
    "AIService",
    "ChunkCallback",
    "stream_words",
    # Catalog
    "MODEL_TIERS",
    "fallback_chain",
    "smallest_tier",
    "tiers_by_footprint",
    # Errors
    "classify_error",
    # Services
    "CannedResponseService",
    "InferenceConfig",
    "InferenceEngine",
    "LoadedModel",
    "ModelBackend",
    "extract_reply",
    "format_prompt",
]
