# contextual_ai/services/inference_engine.py
"""
Local Inference Engine - the primary AI service.

Lifecycle:  UNLOADED -> LOADING -> LOADED -> UNLOADED (unload / failure)

Loading walks a fallback chain (requested tier, then each smaller tier,
ending at the smallest). Each candidate gets a requirements check and a
bounded load; a candidate that fails is classified, logged and skipped.
Concurrent load_model() calls share one in-flight task.

Inference runs under a timeout and is retried with exponential backoff.
Memory and inference failures unload the model so the next attempt reloads
it. Timeouts cancel the underlying operation via asyncio.wait_for.

The model runtime itself is injected as a ModelBackend so the engine can
drive any local runtime (or a fake in tests).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field

from contextual_ai.config import (
    DEFAULT_INFERENCE_TIMEOUT,
    DEFAULT_MODEL_LOAD_TIMEOUT,
    DEFAULT_MODEL_TIER,
)
from contextual_ai.error_handler import ErrorHandler
from contextual_ai.exceptions import InferenceError, ModelLoadError
from contextual_ai.models import (
    AIServiceResponse,
    ChatMessage,
    Device,
    EngineHealth,
    EngineState,
    ErrorCategory,
    ErrorSeverity,
    InferenceErrorCategory,
    InferencePhase,
    MemoryUsage,
    MessageSender,
    ModelTier,
    ServiceInfo,
    TokenUsage,
)

from .base import AIService, ChunkCallback, stream_words
from .catalog import MODEL_TIERS, fallback_chain, smallest_tier, tiers_by_footprint
from .errors import classify_error

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = "You are a helpful AI assistant. Provide clear, concise, and accurate responses.\n\n"
ASSISTANT_MARKER = "Assistant:"
HUMAN_MARKER = "Human:"
HISTORY_TURNS = 5
MIN_RESPONSE_CHARS = 2
RUNTIME_UNSUPPORTED = "RUNTIME_UNSUPPORTED"


# =============================================================================
# Backend protocol
# =============================================================================


class LoadedModel(Protocol):
    """A model ready for generation. May also expose ``close()``."""

    async def generate(self, prompt: str, **params: Any) -> str: ...


class ModelBackend(Protocol):
    """Local model runtime the engine drives."""

    async def load(self, tier: ModelTier, device: Device) -> LoadedModel: ...

    async def probe_accelerator(self) -> bool: ...

    def runtime_available(self) -> bool: ...

    def available_memory_mb(self) -> int | None: ...


class InferenceConfig(BaseModel):
    model_tier: str = DEFAULT_MODEL_TIER
    prefer_accelerator: bool = True
    max_memory_mb: int = Field(default=2048, gt=0)

    # Generation
    max_new_tokens: int = Field(default=512, gt=0)
    temperature: float = Field(default=0.7, ge=0.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    repetition_penalty: float = Field(default=1.1, gt=0.0)

    # Timeouts (seconds)
    load_timeout: float = Field(default=DEFAULT_MODEL_LOAD_TIMEOUT, gt=0)
    inference_timeout: float = Field(default=DEFAULT_INFERENCE_TIMEOUT, gt=0)

    # Retry
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    retry_max_delay: float = Field(default=5.0, ge=0.0)

    stream_chunk_delay: float = Field(default=0.05, ge=0.0)

    def generation_params(self) -> dict[str, Any]:
        return {
            "max_new_tokens": self.max_new_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "repetition_penalty": self.repetition_penalty,
            "do_sample": True,
        }


# =============================================================================
# Prompt helpers
# =============================================================================


def format_prompt(message: str, history: list[ChatMessage] | None = None) -> str:
    """System preamble, the last few turns, then the new turn."""
    prompt = SYSTEM_PREAMBLE
    for turn in (history or [])[-HISTORY_TURNS:]:
        role = "Human" if turn.sender == MessageSender.USER else "Assistant"
        prompt += f"{role}: {turn.content}\n"
    return prompt + f"{HUMAN_MARKER} {message}\n{ASSISTANT_MARKER}"


def extract_reply(generated: str, prompt: str) -> str:
    """The continuation after the last assistant marker, cut at any invented next turn."""
    index = generated.rfind(ASSISTANT_MARKER)
    if index >= 0:
        reply = generated[index + len(ASSISTANT_MARKER) :]
    elif generated.startswith(prompt):
        reply = generated[len(prompt) :]
    else:
        reply = generated

    reply, _, _ = reply.partition(f"\n{HUMAN_MARKER}")
    return reply.strip()


# =============================================================================
# Engine
# =============================================================================


class InferenceEngine(AIService):
    """Runs a local model tier, falling back to smaller tiers when loading fails."""

    def __init__(
        self,
        backend: ModelBackend,
        config: InferenceConfig | None = None,
        error_handler: ErrorHandler | None = None,
        catalog: dict[str, ModelTier] | None = None,
    ):
        self.backend = backend
        self.config = config or InferenceConfig()
        self.error_handler = error_handler
        self.catalog = catalog if catalog is not None else MODEL_TIERS

        self.state = EngineState.UNLOADED
        self._model: LoadedModel | None = None
        self._tier: ModelTier | None = None
        self._device: Device | None = None
        self._last_error: InferenceError | None = None
        self._load_task: asyncio.Task[ModelTier] | None = None

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_model(self, tier_id: str | None = None) -> ModelTier:
        """
        Load ``tier_id`` (default: configured tier) or the best smaller tier.

        Returns the tier that ended up active.

        Raises:
            InferenceError: INVALID_MODEL for a tier id not in the catalog
            ModelLoadError: if every tier in the chain failed
        """
        if self._load_task is not None and not self._load_task.done():
            return await asyncio.shield(self._load_task)

        target = tier_id or self.config.model_tier
        if target not in self.catalog:
            error = InferenceError(
                f"Unknown model: {target}. Available models: {', '.join(self.catalog)}",
                category=InferenceErrorCategory.MODEL_LOADING,
                code="INVALID_MODEL",
                recoverable=False,
                fallback_available=False,
                tier_id=target,
            )
            self._record_failure(error, ErrorSeverity.HIGH)
            raise error

        if self.state == EngineState.LOADED and self._tier is not None and self._tier.id == target:
            return self._tier

        self._load_task = asyncio.create_task(self._load_chain(target))
        return await asyncio.shield(self._load_task)

    async def _load_chain(self, target: str) -> ModelTier:
        if self._model is not None:
            await self.unload_model()

        self.state = EngineState.LOADING
        chain = fallback_chain(target, self.catalog)
        smallest_id = chain[-1].id
        attempted: list[str] = []
        last_error: InferenceError | None = None

        for tier in chain:
            attempted.append(tier.id)
            try:
                device = await self._check_requirements(tier)
                model, device = await self._load_on(tier, device)
            except Exception as e:
                last_error = classify_error(
                    e, InferencePhase.LOADING, at_smallest_tier=tier.id == smallest_id, tier_id=tier.id
                )
                logger.warning(f"Failed to load {tier.name} ({last_error.code}): {last_error.message}")
                self._record_failure(last_error, ErrorSeverity.MEDIUM)
                # A missing runtime fails every tier the same way
                if last_error.code == RUNTIME_UNSUPPORTED:
                    break
                continue

            self._model, self._tier, self._device = model, tier, device
            self.state = EngineState.LOADED
            self._last_error = None
            if tier.id != target:
                logger.warning(f"Requested tier '{target}' unavailable; running '{tier.id}' instead")
            logger.info(f"Loaded {tier.name} on {device.value}")
            return tier

        self.state = EngineState.UNLOADED
        assert last_error is not None
        logger.error(f"Model loading failed for every tier tried: {', '.join(attempted)}")
        raise ModelLoadError(
            f"Failed to load model (tried {', '.join(attempted)}): {last_error.message}",
            last_error=last_error,
            attempted=attempted,
        )

    async def _load_on(self, tier: ModelTier, device: Device) -> tuple[LoadedModel, Device]:
        """Load on ``device``; an accelerator failure retries once on cpu."""
        try:
            return await self._bounded_load(tier, device), device
        except Exception as e:
            if device != Device.ACCELERATOR:
                raise
            error = classify_error(e, InferencePhase.LOADING, tier_id=tier.id)
            if error.category != InferenceErrorCategory.ACCELERATOR:
                raise
            logger.warning(f"Accelerator load failed for {tier.name}, retrying on cpu: {error.message}")
            return await self._bounded_load(tier, Device.CPU), Device.CPU

    async def _bounded_load(self, tier: ModelTier, device: Device) -> LoadedModel:
        timeout = self.config.load_timeout
        try:
            return await asyncio.wait_for(self.backend.load(tier, device), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Model loading timeout after {timeout}s ({tier.id})") from e

    async def _check_requirements(self, tier: ModelTier) -> Device:
        """Memory is advisory, the accelerator optional, the runtime mandatory."""
        available = self.backend.available_memory_mb()
        if available is not None and available < tier.memory_requirement_mb:
            logger.warning(
                f"System may not have enough memory for {tier.name}. "
                f"Required: {tier.memory_requirement_mb}MB, Available: ~{available}MB"
            )

        device = Device.CPU
        if self.config.prefer_accelerator:
            try:
                accelerated = await self.backend.probe_accelerator()
            except Exception as e:
                logger.debug(f"Accelerator probe failed: {e}")
                accelerated = False
            if accelerated:
                device = Device.ACCELERATOR
            elif tier.accelerator_required:
                logger.warning(f"Accelerator not available, falling back to cpu for {tier.name}")

        if tier.runtime_required and not self.backend.runtime_available():
            raise InferenceError(
                "Inference runtime not supported on this system",
                category=InferenceErrorCategory.MODEL_LOADING,
                code=RUNTIME_UNSUPPORTED,
                recoverable=False,
                fallback_available=False,
                tier_id=tier.id,
            )
        return device

    async def unload_model(self) -> None:
        """Release the current model; close() failures are logged, not raised."""
        model, self._model = self._model, None
        if model is not None:
            close = getattr(model, "close", None)
            if callable(close):
                try:
                    result = close()
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.warning(f"Error while releasing model: {e}")
            logger.info(f"Unloaded {self._tier.name if self._tier else 'model'}")
        self._tier = None
        self._device = None
        self.state = EngineState.UNLOADED

    # =========================================================================
    # AIService
    # =========================================================================

    async def send_message(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
    ) -> AIServiceResponse:
        """
        Generate a reply, retrying recoverable failures with backoff.

        Raises:
            ModelLoadError: if no tier could be loaded
            InferenceError: the last classified failure once retries run out
        """
        attempts = self.config.max_retries + 1
        tier_id = self._tier.id if self._tier else None
        last_error: InferenceError | None = None

        for attempt in range(attempts):
            if self.state != EngineState.LOADED or self._model is None:
                tier_id = (await self.load_model(tier_id)).id

            prompt = format_prompt(message, history)
            try:
                reply = await self._generate(prompt)
            except Exception as e:
                at_smallest = tier_id == smallest_tier(self.catalog).id
                last_error = classify_error(e, InferencePhase.INFERENCE, at_smallest_tier=at_smallest, tier_id=tier_id)
                self._record_failure(last_error, ErrorSeverity.MEDIUM, {"attempt": attempt + 1})

                if not last_error.recoverable or attempt == attempts - 1:
                    break

                if last_error.category in (InferenceErrorCategory.MEMORY, InferenceErrorCategory.INFERENCE):
                    await self.unload_model()

                delay = min(self.config.retry_base_delay * (2**attempt), self.config.retry_max_delay)
                logger.warning(
                    f"Inference failed (attempt {attempt + 1}/{attempts}, {last_error.code}). "
                    f"Waiting {delay:.2f}s before retry..."
                )
                if delay:
                    await asyncio.sleep(delay)
                continue

            self._last_error = None
            return AIServiceResponse(
                message=reply,
                usage=TokenUsage.estimate(prompt, reply),
                model=tier_id or "local",
                finish_reason="stop",
            )

        assert last_error is not None
        logger.error(f"Inference failed after {attempts} attempt(s): {last_error.message}")
        raise last_error

    async def _generate(self, prompt: str) -> str:
        timeout = self.config.inference_timeout
        try:
            generated = await asyncio.wait_for(
                self._model.generate(prompt, **self.config.generation_params()),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Inference timeout after {timeout}s") from e

        reply = extract_reply(generated or "", prompt)
        if len(reply) < MIN_RESPONSE_CHARS:
            raise InferenceError(
                "Model returned an empty response",
                category=InferenceErrorCategory.INFERENCE,
                code="EMPTY_RESPONSE",
                tier_id=self._tier.id if self._tier else None,
            )
        return reply

    async def send_message_stream(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> AIServiceResponse:
        response = await self.send_message(message, history)
        if on_chunk is not None and response.message:
            await stream_words(response.message, on_chunk, self.config.stream_chunk_delay)
        return response

    async def validate_config(self) -> bool:
        """Check the configured tier exists and its requirements are met, without loading."""
        tier = self.catalog.get(self.config.model_tier)
        if tier is None:
            return False
        try:
            await self._check_requirements(tier)
        except Exception as e:
            logger.warning(f"Inference engine validation failed: {e}")
            return False
        return True

    def get_service_info(self) -> ServiceInfo:
        tier = self._tier or self.catalog.get(self.config.model_tier)
        return ServiceInfo(
            name="Local Inference Engine",
            version="1.0.0",
            capabilities=["chat", "offline", "privacy-preserving", *(tier.capabilities if tier else ())],
        )

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self.state == EngineState.LOADED

    @property
    def active_tier(self) -> ModelTier | None:
        return self._tier

    def available_tiers(self) -> list[ModelTier]:
        return tiers_by_footprint(self.catalog)

    def get_last_error(self) -> InferenceError | None:
        return self._last_error

    def get_memory_usage(self) -> MemoryUsage:
        used = self._tier.memory_requirement_mb if self.is_loaded and self._tier else 0
        total = self.config.max_memory_mb
        return MemoryUsage(used_mb=used, total_mb=total, percentage=used / total * 100)

    def get_health_status(self) -> EngineHealth:
        error = self._last_error
        return EngineHealth(
            state=self.state,
            model_tier=self._tier.id if self._tier else None,
            device=self._device,
            last_error=error.message if error else None,
            last_error_code=error.code if error else None,
            has_error=error is not None,
            can_fallback=error.fallback_available if error else True,
            memory=self.get_memory_usage(),
        )

    def update_config(self, **changes: Any) -> None:
        self.config = self.config.model_copy(update=changes)

    def _record_failure(
        self,
        error: InferenceError,
        severity: ErrorSeverity,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._last_error = error
        if self.error_handler is None:
            return
        category = ErrorCategory.NETWORK if error.category == InferenceErrorCategory.NETWORK else ErrorCategory.INFERENCE
        self.error_handler.handle_error(
            category,
            severity,
            error.message,
            component="inference_engine",
            error=error,
            context={"code": error.code, "tier": error.tier_id, **(context or {})},
        )
