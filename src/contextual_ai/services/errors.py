# contextual_ai/services/errors.py
"""
Failure classification for model loading and inference.

Rules are checked in order against the lowercased error text; the first
match wins:

    accelerator  -> ACCELERATOR_UNAVAILABLE (recoverable, cpu path exists)
    memory       -> MEMORY_ERROR (recoverable unless at the smallest tier)
    network      -> NETWORK_ERROR (recoverable)
    timeout      -> LOADING_TIMEOUT / INFERENCE_TIMEOUT (recoverable)
    unknown model-> INVALID_MODEL (not recoverable, no fallback)
    anything else-> MODEL_LOAD_FAILED / INFERENCE_FAILED (recoverable)
"""

from __future__ import annotations

import asyncio

from contextual_ai.exceptions import InferenceError
from contextual_ai.models import InferenceErrorCategory, InferencePhase

ACCELERATOR_MARKERS = ("webgpu", "gpu", "accelerator", "cuda")
MEMORY_MARKERS = ("memory", "oom")
NETWORK_MARKERS = ("network", "fetch", "connection", "download")
TIMEOUT_MARKERS = ("timeout", "timed out")
INVALID_MODEL_MARKERS = ("unknown model", "invalid model", "model not found")


def _matches(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def classify_error(
    exc: BaseException,
    phase: InferencePhase,
    *,
    at_smallest_tier: bool = False,
    tier_id: str | None = None,
) -> InferenceError:
    """Map any exception to a classified InferenceError; InferenceErrors pass through."""
    if isinstance(exc, InferenceError):
        if tier_id and exc.tier_id is None:
            exc.tier_id = tier_id
        return exc

    message = str(exc) or type(exc).__name__
    text = message.lower()

    if _matches(text, ACCELERATOR_MARKERS):
        return InferenceError(
            message,
            category=InferenceErrorCategory.ACCELERATOR,
            code="ACCELERATOR_UNAVAILABLE",
            tier_id=tier_id,
        )

    if _matches(text, MEMORY_MARKERS) or isinstance(exc, MemoryError):
        return InferenceError(
            message,
            category=InferenceErrorCategory.MEMORY,
            code="MEMORY_ERROR",
            recoverable=not at_smallest_tier,
            fallback_available=not at_smallest_tier,
            tier_id=tier_id,
        )

    if _matches(text, NETWORK_MARKERS) or isinstance(exc, ConnectionError):
        return InferenceError(
            message,
            category=InferenceErrorCategory.NETWORK,
            code="NETWORK_ERROR",
            tier_id=tier_id,
        )

    if _matches(text, TIMEOUT_MARKERS) or isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        if phase == InferencePhase.LOADING:
            return InferenceError(
                message,
                category=InferenceErrorCategory.NETWORK,
                code="LOADING_TIMEOUT",
                tier_id=tier_id,
            )
        return InferenceError(
            message,
            category=InferenceErrorCategory.INFERENCE,
            code="INFERENCE_TIMEOUT",
            tier_id=tier_id,
        )

    if _matches(text, INVALID_MODEL_MARKERS):
        return InferenceError(
            message,
            category=InferenceErrorCategory.MODEL_LOADING,
            code="INVALID_MODEL",
            recoverable=False,
            fallback_available=False,
            tier_id=tier_id,
        )

    if phase == InferencePhase.LOADING:
        return InferenceError(
            message,
            category=InferenceErrorCategory.MODEL_LOADING,
            code="MODEL_LOAD_FAILED",
            tier_id=tier_id,
        )
    return InferenceError(
        message,
        category=InferenceErrorCategory.INFERENCE,
        code="INFERENCE_FAILED",
        tier_id=tier_id,
    )
