# contextual_ai/context/aggregator.py
"""
Context Aggregator - reduces a raw page snapshot to a classified,
prioritized AggregatedContext.

Pipeline per call:
1. Look up the cache by URL + page shape
2. Classify the page type (URL rules, then structure, then schema.org)
3. Build the summary: primary content, key elements, activity, data flows
4. Cap every content list by its priority weight
5. Attach the optional sections enabled in the config

The cache key only looks at the URL, text length, heading count and form
count. Two pages at the same URL with the same shape but different text
share a cache entry until the TTL expires.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from contextual_ai.config import DEFAULT_CONTEXT_TTL
from contextual_ai.exceptions import AggregationError
from contextual_ai.models import (
    STATIC_EXTENSIONS,
    ActivitySummary,
    AggregatedContext,
    ContentSnapshot,
    ContextMetadata,
    ContextSummary,
    DataFlowSummary,
    DataFlowType,
    DataQuality,
    InteractionType,
    MUTATING_METHODS,
    NetworkActivity,
    NetworkRequest,
    PageSnapshot,
    PageType,
    PerformanceMetrics,
    UserInteraction,
)

from .cache import ContextCache

logger = logging.getLogger(__name__)

# Per-list caps before priority weighting
BASE_CAPS = {
    "headings": 10,
    "links": 20,
    "images": 10,
    "forms": 5,
    "tables": 3,
    "text": 2000,
}

RECENT_ACTIVITY_WINDOW = 60.0
RELEVANCE_ACTIVITY_WINDOW = 300.0
FRESHNESS_HORIZON = 300.0
DATA_FLOW_SAMPLE = 10


def is_static_resource(url: str) -> bool:
    """True when the URL path ends in a static asset extension."""
    path = urlsplit(url).path.lower()
    return path.endswith(STATIC_EXTENSIONS)


class ContentPriority(BaseModel):
    """Weights applied to the base caps; a list keeps ceil(cap * weight) items."""

    headings: float = Field(default=1.0, ge=0.0)
    forms: float = Field(default=0.9, ge=0.0)
    tables: float = Field(default=0.8, ge=0.0)
    links: float = Field(default=0.6, ge=0.0)
    images: float = Field(default=0.4, ge=0.0)
    text: float = Field(default=0.7, ge=0.0)

    def cap(self, section: str) -> int:
        return math.ceil(BASE_CAPS[section] * getattr(self, section))


class AggregatorConfig(BaseModel):
    include_network_data: bool = True
    include_layout_data: bool = True
    include_interaction_data: bool = True
    include_semantic_data: bool = True
    max_network_requests: int = Field(default=20, ge=0)
    max_interactions: int = Field(default=10, ge=0)
    content_priority: ContentPriority = Field(default_factory=ContentPriority)
    cache_ttl: float = Field(default=DEFAULT_CONTEXT_TTL, gt=0, description="Seconds")


class ContextAggregator:
    """Turns PageSnapshots into AggregatedContexts, with a TTL cache."""

    def __init__(
        self,
        config: AggregatorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or AggregatorConfig()
        self._clock = clock
        self._cache: ContextCache[AggregatedContext] = ContextCache(ttl=self.config.cache_ttl, clock=clock)
        self._performance = PerformanceMetrics()

    # =========================================================================
    # Public API
    # =========================================================================

    def aggregate(self, snapshot: PageSnapshot) -> AggregatedContext:
        """
        Aggregate a snapshot.

        Raises:
            AggregationError: if the snapshot has no content or a stage fails
        """
        started = time.perf_counter()

        if snapshot.content is None:
            raise AggregationError(f"Snapshot for {snapshot.url} has no content")

        key = self.cache_key(snapshot)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Aggregation cache hit for {snapshot.url}")
            elapsed = (time.perf_counter() - started) * 1000
            self._performance = self._performance.model_copy(update={"cache_hit": True, "response_time_ms": elapsed})
            return cached.model_copy(
                update={
                    "metadata": cached.metadata.model_copy(update={"cache_hit": True}),
                    "performance": cached.performance.model_copy(update={"cache_hit": True}),
                }
            )

        try:
            context = self._build(snapshot, started)
        except AggregationError:
            raise
        except Exception as e:
            logger.error(f"Context aggregation failed for {snapshot.url}: {e}")
            raise AggregationError(f"Failed to aggregate context: {e}") from e

        self._cache.put(key, context)
        self._performance = context.performance
        return context

    def update_config(self, **changes) -> None:
        """Apply config changes; a TTL change drops every cached entry."""
        self.config = self.config.model_copy(update=changes)
        if "cache_ttl" in changes:
            self._cache.ttl = self.config.cache_ttl
            self._cache.invalidate_all()

    def clear_cache(self) -> None:
        self._cache.invalidate_all()

    def get_performance_metrics(self) -> PerformanceMetrics:
        return self._performance.model_copy()

    @property
    def cache(self) -> ContextCache[AggregatedContext]:
        return self._cache

    @staticmethod
    def cache_key(snapshot: PageSnapshot) -> str:
        """URL plus the page shape: text length, heading count and form count."""
        content = snapshot.content or ContentSnapshot()
        return f"{snapshot.url}:{len(content.text)}:{len(content.headings)}:{len(content.forms)}"

    # =========================================================================
    # Build
    # =========================================================================

    def _build(self, snapshot: PageSnapshot, started: float) -> AggregatedContext:
        content = snapshot.content
        now = self._clock()

        summary = ContextSummary(
            page_type=self.classify_page_type(snapshot),
            primary_content=self._primary_content(content),
            key_elements=self._key_elements(content),
            user_activity=self._summarize_activity(snapshot.interactions, now),
            data_flows=self._summarize_data_flows(snapshot.network, now),
            relevance_score=self._relevance_score(snapshot, now),
        )

        aggregation_ms = (time.perf_counter() - started) * 1000
        context = AggregatedContext(
            summary=summary,
            content=self._prioritize(content),
            metadata=ContextMetadata(
                timestamp=snapshot.timestamp,
                url=snapshot.url,
                title=snapshot.title,
                aggregation_time_ms=aggregation_ms,
                cache_hit=False,
                data_quality=self._assess_quality(snapshot, now),
            ),
        )

        if self.config.include_network_data:
            context.network = self._filter_network(snapshot.network)
        if self.config.include_layout_data and snapshot.layout is not None:
            context.layout = snapshot.layout
        if self.config.include_interaction_data:
            context.interactions = self._filter_interactions(snapshot.interactions)
        if self.config.include_semantic_data and snapshot.semantics is not None:
            context.semantics = snapshot.semantics

        processing_ms = (time.perf_counter() - started) * 1000
        context.performance = PerformanceMetrics(
            response_time_ms=processing_ms,
            processing_time_ms=processing_ms,
            cache_hit=False,
            data_size=len(context.model_dump_json()),
        )
        return context

    # =========================================================================
    # Classification
    # =========================================================================

    @staticmethod
    def classify_page_type(snapshot: PageSnapshot) -> PageType:
        url = snapshot.url
        content = snapshot.content or ContentSnapshot()

        if "/search" in url or "?q=" in url:
            return PageType.SEARCH
        if "/product/" in url or "/item/" in url:
            return PageType.ECOMMERCE
        if "/docs/" in url or "/documentation/" in url:
            return PageType.DOCUMENTATION

        if len(content.forms) > 2:
            return PageType.FORM
        if len(content.tables) > 3 and len(content.forms) > 0:
            return PageType.DASHBOARD
        if len(content.headings) > 5 and len(content.text) > 1000:
            return PageType.ARTICLE

        if snapshot.semantics is not None:
            schema_types = {item.type.lower() for item in snapshot.semantics.schema_org}
            if schema_types & {"product", "offer"}:
                return PageType.ECOMMERCE
            if schema_types & {"article", "blogposting"}:
                return PageType.ARTICLE

        return PageType.UNKNOWN

    # =========================================================================
    # Summary pieces
    # =========================================================================

    @staticmethod
    def _primary_content(content: ContentSnapshot) -> str:
        parts = [h.text for h in content.headings if h.level <= 2][:3]

        preview = content.text[:500]
        if preview.strip():
            parts.append(preview)

        if content.forms:
            parts.append(
                "; ".join(
                    f"Form with fields: {', '.join(f.name for f in form.fields)}" for form in content.forms[:2]
                )
            )

        return "\n\n".join(parts).strip()

    @staticmethod
    def _key_elements(content: ContentSnapshot) -> list[str]:
        elements = [f"H{h.level}: {h.text}" for h in content.headings if h.level <= 3][:5]
        elements += [f"Link: {link.text}" for link in content.links if 3 < len(link.text) < 50][:5]
        for form in content.forms:
            elements += [f"Field: {field.name} ({field.type})" for field in form.fields[:3]]
        for index, table in enumerate(content.tables[:2], start=1):
            elements.append(f"Table {index}: {', '.join(table.headers)}")
        return elements

    @staticmethod
    def _summarize_activity(interactions: list[UserInteraction], now: float) -> ActivitySummary:
        recent = sum(1 for i in interactions if now - i.timestamp < RECENT_ACTIVITY_WINDOW)

        # Unique tags, first-seen order
        active = list(dict.fromkeys(i.element.tag_name.lower() for i in interactions[-10:]))

        return ActivitySummary(
            recent_interactions=recent,
            active_elements=active,
            form_activity=any(i.type in (InteractionType.INPUT, InteractionType.SUBMIT) for i in interactions),
            navigation_activity=any(
                i.type == InteractionType.CLICK and i.element.tag_name.lower() == "a" for i in interactions
            ),
        )

    def _summarize_data_flows(self, network: NetworkActivity, now: float) -> list[DataFlowSummary]:
        flows = [
            DataFlowSummary(
                type=DataFlowType.FORM if request.method.upper() in MUTATING_METHODS else DataFlowType.API,
                endpoint=request.url,
                method=request.method,
                status=request.status,
                timestamp=request.timestamp,
                relevance=self.request_relevance(request, now),
            )
            for request in network.recent_requests[-DATA_FLOW_SAMPLE:]
            if self.is_relevant_request(request)
        ]
        flows.sort(key=lambda flow: flow.relevance, reverse=True)
        return flows

    @staticmethod
    def request_relevance(request: NetworkRequest, now: float) -> float:
        relevance = 0.5
        if "/api/" in request.url:
            relevance += 0.3
        if ".json" in request.url:
            relevance += 0.2

        age = now - request.timestamp
        if age < RECENT_ACTIVITY_WINDOW:
            relevance += 0.2
        elif age < RELEVANCE_ACTIVITY_WINDOW:
            relevance += 0.1

        if request.status is not None and 200 <= request.status < 300:
            relevance += 0.1

        return min(1.0, relevance)

    @staticmethod
    def _relevance_score(snapshot: PageSnapshot, now: float) -> float:
        content = snapshot.content or ContentSnapshot()
        interactions = snapshot.interactions
        signals = (
            len(content.text) > 100,
            bool(content.headings),
            bool(content.forms),
            bool(interactions),
            any(now - i.timestamp < RELEVANCE_ACTIVITY_WINDOW for i in interactions),
            bool(snapshot.network.recent_requests),
        )
        return min(1.0, 0.5 + 0.1 * sum(signals))

    def _assess_quality(self, snapshot: PageSnapshot, now: float) -> DataQuality:
        content = snapshot.content or ContentSnapshot()
        age = now - snapshot.timestamp

        present = (
            len(content.text) > 100,
            bool(content.headings),
            bool(snapshot.network.recent_requests),
            bool(snapshot.interactions),
            snapshot.semantics is not None,
        )

        return DataQuality(
            completeness=min(1.0, 0.5 + 0.1 * sum(present)),
            freshness=min(1.0, max(0.0, 1 - age / FRESHNESS_HORIZON)),
            accuracy=0.9,
            relevance=self._relevance_score(snapshot, now),
        )

    # =========================================================================
    # Filtering / prioritization
    # =========================================================================

    def _prioritize(self, content: ContentSnapshot) -> ContentSnapshot:
        priority = self.config.content_priority
        return content.model_copy(
            update={
                "headings": content.headings[: priority.cap("headings")],
                "links": content.links[: priority.cap("links")],
                "images": content.images[: priority.cap("images")],
                "forms": content.forms[: priority.cap("forms")],
                "tables": content.tables[: priority.cap("tables")],
                "text": content.text[: priority.cap("text")],
            }
        )

    def _filter_network(self, network: NetworkActivity) -> NetworkActivity:
        window = network.recent_requests[-self.config.max_network_requests :] if self.config.max_network_requests else []
        return network.model_copy(update={"recent_requests": [r for r in window if self.is_relevant_request(r)]})

    def _filter_interactions(self, interactions: list[UserInteraction]) -> list[UserInteraction]:
        window = interactions[-self.config.max_interactions :] if self.config.max_interactions else []
        return [i for i in window if self.is_relevant_interaction(i)]

    @staticmethod
    def is_relevant_request(request: NetworkRequest) -> bool:
        url = request.url
        if is_static_resource(url):
            return False
        if "/api/" in url or ".json" in url:
            return True
        method = request.method.upper()
        return method in MUTATING_METHODS or method == "GET"

    @staticmethod
    def is_relevant_interaction(interaction: UserInteraction) -> bool:
        if interaction.type in (InteractionType.INPUT, InteractionType.SUBMIT):
            return True
        if interaction.type == InteractionType.CLICK:
            return interaction.element.tag_name.lower() in ("button", "a", "input")
        return False
