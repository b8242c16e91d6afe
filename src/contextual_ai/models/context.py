# contextual_ai/models/context.py
"""Aggregated page context: the classified, prioritized view of a snapshot."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .enums import DataFlowType, PageType
from .snapshot import (
    ContentSnapshot,
    LayoutSnapshot,
    NetworkActivity,
    SemanticData,
    UserInteraction,
)


class ActivitySummary(BaseModel):
    recent_interactions: int = Field(default=0, description="Interactions within the last minute")
    active_elements: list[str] = Field(default_factory=list, description="Tags recently touched")
    form_activity: bool = False
    navigation_activity: bool = False


class DataFlowSummary(BaseModel):
    type: DataFlowType = DataFlowType.API
    endpoint: str | None = None
    method: str | None = None
    status: int | None = None
    timestamp: float = 0.0
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)


class ContextSummary(BaseModel):
    page_type: PageType = PageType.UNKNOWN
    primary_content: str = ""
    key_elements: list[str] = Field(default_factory=list)
    user_activity: ActivitySummary = Field(default_factory=ActivitySummary)
    data_flows: list[DataFlowSummary] = Field(default_factory=list, description="Sorted by relevance, descending")
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)


class DataQuality(BaseModel):
    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    freshness: float = Field(default=0.0, ge=0.0, le=1.0)
    accuracy: float = Field(default=0.9, ge=0.0, le=1.0)
    relevance: float = Field(default=0.0, ge=0.0, le=1.0)


class ContextMetadata(BaseModel):
    timestamp: float
    url: str
    title: str = ""
    aggregation_time_ms: float = 0.0
    cache_hit: bool = False
    data_quality: DataQuality = Field(default_factory=DataQuality)


class PerformanceMetrics(BaseModel):
    response_time_ms: float = 0.0
    data_size: int = 0
    cache_hit: bool = False
    processing_time_ms: float = 0.0


class AggregatedContext(BaseModel):
    summary: ContextSummary
    content: ContentSnapshot
    network: NetworkActivity | None = None
    layout: LayoutSnapshot | None = None
    interactions: list[UserInteraction] | None = None
    semantics: SemanticData | None = None
    metadata: ContextMetadata
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
