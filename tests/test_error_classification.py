# tests/test_error_classification.py
"""Tests for classify_error: rule order and recoverability flags."""

import asyncio

import pytest

from contextual_ai.exceptions import InferenceError
from contextual_ai.models import InferenceErrorCategory, InferencePhase
from contextual_ai.services import classify_error

LOADING = InferencePhase.LOADING
INFERENCE = InferencePhase.INFERENCE


class TestClassifyError:
    @pytest.mark.parametrize(
        "message,code,category",
        [
            ("WebGPU adapter not found", "ACCELERATOR_UNAVAILABLE", InferenceErrorCategory.ACCELERATOR),
            ("CUDA out of memory", "ACCELERATOR_UNAVAILABLE", InferenceErrorCategory.ACCELERATOR),
            ("Out of memory while allocating", "MEMORY_ERROR", InferenceErrorCategory.MEMORY),
            ("Failed to fetch weights", "NETWORK_ERROR", InferenceErrorCategory.NETWORK),
            ("Model loading timeout after 120s", "LOADING_TIMEOUT", InferenceErrorCategory.NETWORK),
            ("Unknown model: huge", "INVALID_MODEL", InferenceErrorCategory.MODEL_LOADING),
            ("something odd", "MODEL_LOAD_FAILED", InferenceErrorCategory.MODEL_LOADING),
        ],
    )
    def test_loading_rules(self, message, code, category):
        error = classify_error(RuntimeError(message), LOADING)

        assert error.code == code
        assert error.category == category

    def test_first_rule_wins(self):
        # Mentions both the accelerator and memory
        error = classify_error(RuntimeError("GPU memory exhausted"), LOADING)
        assert error.code == "ACCELERATOR_UNAVAILABLE"

    def test_timeout_during_inference(self):
        error = classify_error(asyncio.TimeoutError(), INFERENCE)

        assert error.code == "INFERENCE_TIMEOUT"
        assert error.category == InferenceErrorCategory.INFERENCE
        assert error.recoverable is True

    def test_default_inference_failure(self):
        error = classify_error(ValueError("bad tensor shape"), INFERENCE, tier_id="small")

        assert error.code == "INFERENCE_FAILED"
        assert error.tier_id == "small"
        assert error.recoverable is True

    def test_memory_at_smallest_tier_is_terminal(self):
        error = classify_error(MemoryError(), INFERENCE, at_smallest_tier=True)

        assert error.code == "MEMORY_ERROR"
        assert error.recoverable is False
        assert error.fallback_available is False

    def test_memory_above_smallest_tier_is_recoverable(self):
        error = classify_error(RuntimeError("OOM"), LOADING, at_smallest_tier=False)

        assert error.recoverable is True
        assert error.fallback_available is True

    def test_invalid_model_is_not_recoverable(self):
        error = classify_error(RuntimeError("model not found on hub"), LOADING)

        assert error.recoverable is False
        assert error.fallback_available is False

    def test_connection_error_type(self):
        assert classify_error(ConnectionError(), LOADING).code == "NETWORK_ERROR"

    def test_inference_error_passes_through(self):
        original = InferenceError("empty", code="EMPTY_RESPONSE")
        classified = classify_error(original, INFERENCE, tier_id="medium")

        assert classified is original
        assert classified.tier_id == "medium"
