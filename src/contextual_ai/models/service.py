# contextual_ai/models/service.py
"""Models shared by the AI services and the orchestrator."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field

from contextual_ai.base_models import DictCompatModel

from .enums import (
    Device,
    EngineState,
    FootprintClass,
    ServiceKind,
    SuggestionType,
)


class TokenUsage(DictCompatModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def estimate(cls, prompt: str, completion: str) -> TokenUsage:
        """Rough usage from character counts (~4 chars per token)."""
        return cls(
            prompt_tokens=len(prompt) // 4,
            completion_tokens=len(completion) // 4,
            total_tokens=(len(prompt) + len(completion)) // 4,
        )


class AIServiceResponse(DictCompatModel):
    message: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = "unknown"
    finish_reason: str = "stop"


class ContextualResponse(AIServiceResponse):
    context_used: bool = False
    context_tokens: int = 0


class ServiceInfo(DictCompatModel):
    name: str
    version: str = "1.0.0"
    capabilities: list[str] = Field(default_factory=list)


class ModelTier(BaseModel):
    """Static catalog entry trading capability for resource footprint."""

    model_config = {"frozen": True}

    id: str
    name: str
    source: str = Field(..., description="Backend-specific model identifier")
    footprint_class: FootprintClass
    capabilities: tuple[str, ...] = ()
    memory_requirement_mb: int
    accelerator_required: bool = False
    runtime_required: bool = True


class MemoryUsage(DictCompatModel):
    used_mb: int = 0
    total_mb: int = 0
    percentage: float = 0.0


class EngineHealth(DictCompatModel):
    state: EngineState = EngineState.UNLOADED
    model_tier: str | None = None
    device: Device | None = None
    last_error: str | None = None
    last_error_code: str | None = None
    has_error: bool = False
    can_fallback: bool = True
    memory: MemoryUsage = Field(default_factory=MemoryUsage)

    @property
    def loaded(self) -> bool:
        return self.state == EngineState.LOADED


class ServiceHealthState(BaseModel):
    """
    Failover state owned by one orchestrator instance.

    Passed by reference so several components can observe the same
    record; never stored at module level.
    """

    using_fallback: bool = False
    active_model_tier: str | None = None
    last_error: str | None = None
    last_switch_at: float | None = None

    def switch_to(self, kind: ServiceKind) -> bool:
        """Flip the active service; returns True if the state changed."""
        target = kind == ServiceKind.FALLBACK
        if self.using_fallback == target:
            return False
        self.using_fallback = target
        self.last_switch_at = time.time()
        return True

    @property
    def active_service(self) -> ServiceKind:
        return ServiceKind.FALLBACK if self.using_fallback else ServiceKind.PRIMARY


class ServiceStatus(DictCompatModel):
    name: str
    available: bool
    error: str | None = None


class ServiceHealthReport(DictCompatModel):
    primary_service: ServiceStatus
    fallback_service: ServiceStatus
    currently_using: ServiceKind
    active_model_tier: str | None = None


class ContextSuggestion(DictCompatModel):
    type: SuggestionType
    title: str
    description: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    actionable: bool = True
    context: str = ""


class SuggestionReference(DictCompatModel):
    page_url: str = ""
    context_type: str = ""


class ContextualSuggestion(DictCompatModel):
    id: str
    type: str = Field(..., description="form-help | debug-assist | data-analysis | workflow")
    title: str
    description: str
    confidence: float = 0.5
    context: SuggestionReference = Field(default_factory=SuggestionReference)


class ContextSummaryInfo(DictCompatModel):
    has_context: bool = False
    page_title: str = "Unknown Page"
    page_url: str = ""
    context_types: list[str] = Field(default_factory=list)
    token_count: int = 0
    last_updated: float = Field(default_factory=time.time)
