# contextual_ai/exceptions.py
"""
Exception hierarchy for the contextual AI core.

- ContextError and its subclasses are raised by the aggregation and
  formatting stages; the context source turns them into "no context".
- InferenceError carries the classification the orchestrator and the
  retry loop use to decide what to do next.
"""

from __future__ import annotations

from contextual_ai.models.enums import InferenceErrorCategory


class ContextualAIError(Exception):
    """Base class for all errors raised by this package."""


class ContextError(ContextualAIError):
    """Base class for context pipeline failures."""


class AggregationError(ContextError):
    """Raised when a page snapshot cannot be aggregated (e.g. missing content)."""


class FormattingError(ContextError):
    """Raised when a context cannot be rendered for the model."""


class InferenceError(ContextualAIError):
    """A classified model loading or inference failure."""

    def __init__(
        self,
        message: str,
        *,
        category: InferenceErrorCategory = InferenceErrorCategory.INFERENCE,
        code: str = "INFERENCE_FAILED",
        recoverable: bool = True,
        fallback_available: bool = True,
        tier_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.code = code
        self.recoverable = recoverable
        self.fallback_available = fallback_available
        self.tier_id = tier_id

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, category={self.category.value!r}, "
            f"recoverable={self.recoverable}, message={self.message!r})"
        )


class ModelLoadError(InferenceError):
    """Raised when every tier in a fallback chain failed to load."""

    def __init__(self, message: str, last_error: InferenceError, attempted: list[str]):
        super().__init__(
            message,
            category=last_error.category,
            code=last_error.code,
            recoverable=last_error.recoverable,
            fallback_available=False,
            tier_id=last_error.tier_id,
        )
        self.last_error = last_error
        self.attempted = attempted
