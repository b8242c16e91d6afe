# contextual_ai/models/formatted.py
"""Text-shaped projection of page context, sized for a model prompt."""

from __future__ import annotations

from pydantic import BaseModel, Field


class FormFieldInfo(BaseModel):
    name: str
    type: str = "text"
    value: str | None = None

    def render(self) -> str:
        if self.value:
            return f"{self.name} ({self.type}) = {self.value}"
        return f"{self.name} ({self.type})"


class FormInfo(BaseModel):
    action: str | None = None
    method: str | None = None
    field_count: int = 0
    fields: list[FormFieldInfo] = Field(default_factory=list)


class TableInfo(BaseModel):
    headers: list[str] = Field(default_factory=list)
    row_count: int = 0
    caption: str | None = None


class LinkInfo(BaseModel):
    text: str = ""
    href: str
    is_external: bool = False


class FormattedContent(BaseModel):
    title: str = ""
    url: str = ""
    main_content: str = ""
    forms: list[FormInfo] = Field(default_factory=list)
    tables: list[TableInfo] = Field(default_factory=list)
    links: list[LinkInfo] = Field(default_factory=list)


class NetworkRequestSummary(BaseModel):
    url: str
    method: str = "GET"
    status: int | None = None
    type: str = "unknown"
    timestamp: str = ""


class FormattedNetwork(BaseModel):
    recent_requests: list[NetworkRequestSummary] = Field(default_factory=list)
    api_endpoints: list[str] = Field(default_factory=list)


class UserActionSummary(BaseModel):
    type: str
    element: str
    timestamp: str = ""


class ElementSummary(BaseModel):
    tag_name: str
    text: str = ""
    selector: str = ""


class FormattedInteractions(BaseModel):
    recent_actions: list[UserActionSummary] = Field(default_factory=list)
    focused_elements: list[ElementSummary] = Field(default_factory=list)


class SemanticSummary(BaseModel):
    has_structured_data: bool = False
    schema_types: list[str] = Field(default_factory=list)
    open_graph_title: str | None = None
    description: str | None = None


class FormattedMetadata(BaseModel):
    page_type: str = "general"
    technologies: list[str] = Field(default_factory=list)
    semantic_data: SemanticSummary = Field(default_factory=SemanticSummary)


class FormattedContext(BaseModel):
    """
    Prompt-ready page context.

    ``token_count`` is the estimate for the rendered text. ``trim_history``
    holds the estimate after each trimming pass; it is non-increasing.
    """

    summary: str = ""
    content: FormattedContent = Field(default_factory=FormattedContent)
    network: FormattedNetwork = Field(default_factory=FormattedNetwork)
    interactions: FormattedInteractions = Field(default_factory=FormattedInteractions)
    metadata: FormattedMetadata = Field(default_factory=FormattedMetadata)
    token_count: int = 0
    trim_history: list[int] = Field(default_factory=list)
    privacy_filtered: bool = False
