# contextual_ai/models/snapshot.py
"""
Raw page snapshot as produced by the page-monitoring collaborator.

These models are read-only inputs to the pipeline: the core never mutates
a snapshot, it only derives aggregated and formatted views from it.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from .enums import InteractionType


class ElementInfo(BaseModel):
    tag_name: str
    id: str | None = None
    class_name: str | None = None
    selector: str = ""


class Heading(BaseModel):
    level: int = Field(..., ge=1, le=6)
    text: str
    id: str | None = None


class Link(BaseModel):
    href: str
    text: str = ""
    title: str | None = None


class Image(BaseModel):
    src: str
    alt: str | None = None
    title: str | None = None


class FormField(BaseModel):
    name: str
    type: str = "text"
    value: str | None = None
    placeholder: str | None = None
    required: bool = False


class Form(BaseModel):
    action: str | None = None
    method: str | None = None
    fields: list[FormField] = Field(default_factory=list)


class Table(BaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    caption: str | None = None


class PageMetadata(BaseModel):
    title: str = ""
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    author: str | None = None
    canonical: str | None = None
    language: str | None = None


class ContentSnapshot(BaseModel):
    """Visible content of the page."""

    text: str = ""
    headings: list[Heading] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    images: list[Image] = Field(default_factory=list)
    forms: list[Form] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)
    metadata: PageMetadata = Field(default_factory=PageMetadata)


class NetworkRequest(BaseModel):
    url: str
    method: str = "GET"
    status: int | None = None
    type: str = Field(default="unknown", description="Request kind: xhr, fetch, script, image, ...")
    timestamp: float = Field(default_factory=time.time)
    response_time_ms: float | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class NetworkActivity(BaseModel):
    recent_requests: list[NetworkRequest] = Field(default_factory=list)
    total_requests: int = 0
    total_data_transferred: int = 0
    average_response_time: float = 0.0


class InteractionContext(BaseModel):
    page_url: str = ""
    element_path: str = ""
    surrounding_text: str | None = None


class UserInteraction(BaseModel):
    type: InteractionType
    element: ElementInfo
    timestamp: float = Field(default_factory=time.time)
    context: InteractionContext = Field(default_factory=InteractionContext)


class SchemaOrgData(BaseModel):
    type: str
    properties: dict[str, Any] = Field(default_factory=dict)


class OpenGraphData(BaseModel):
    title: str | None = None
    description: str | None = None
    image: str | None = None
    url: str | None = None
    type: str | None = None
    site_name: str | None = None


class SemanticData(BaseModel):
    schema_org: list[SchemaOrgData] = Field(default_factory=list)
    json_ld: list[dict[str, Any]] = Field(default_factory=list)
    open_graph: OpenGraphData = Field(default_factory=OpenGraphData)
    twitter: dict[str, Any] = Field(default_factory=dict)


class LayoutSnapshot(BaseModel):
    """Opaque layout data; passed through to the aggregated context untouched."""

    viewport: dict[str, Any] = Field(default_factory=dict)
    scroll_position: dict[str, Any] = Field(default_factory=dict)
    modals: list[dict[str, Any]] = Field(default_factory=list)
    overlays: list[dict[str, Any]] = Field(default_factory=list)


class PageSnapshot(BaseModel):
    """A point-in-time view of the page the user is looking at."""

    url: str
    title: str = ""
    timestamp: float = Field(default_factory=time.time)
    content: ContentSnapshot | None = Field(default_factory=ContentSnapshot)
    layout: LayoutSnapshot | None = None
    network: NetworkActivity = Field(default_factory=NetworkActivity)
    interactions: list[UserInteraction] = Field(default_factory=list)
    semantics: SemanticData | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
