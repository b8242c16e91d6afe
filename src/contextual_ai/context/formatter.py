# contextual_ai/context/formatter.py
"""
Context Formatter - turns page context into a token-bounded FormattedContext.

The formatted context is rendered to Markdown-ish text by ``format_as_text``;
that rendering is what the model sees and what the token estimate is based
on (~4 characters per token).

When the estimate exceeds the budget a fixed degradation ladder runs:

    main content -> 200 chars
    main content -> 100 chars
    network requests -> 3
    recent actions -> 1
    links -> 2
    tables -> none
    forms -> 1

The budget is re-checked after every step. A full pass over the ladder is
one iteration; at most 10 iterations run and the best-effort result is
returned even if it is still over budget.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import unquote_plus, urlsplit, urlunsplit

from pydantic import BaseModel, Field

from contextual_ai.config import DEFAULT_MAX_CONTEXT_TOKENS, REDACTION_MARKER
from contextual_ai.exceptions import FormattingError
from contextual_ai.models import (
    API_PATTERNS,
    AggregatedContext,
    ContentSnapshot,
    ElementSummary,
    FormattedContent,
    FormattedContext,
    FormattedInteractions,
    FormattedMetadata,
    FormattedNetwork,
    FormFieldInfo,
    FormInfo,
    InteractionType,
    LinkInfo,
    NetworkActivity,
    NetworkRequestSummary,
    PageSnapshot,
    SemanticData,
    SemanticSummary,
    TableInfo,
    UserActionSummary,
    UserInteraction,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
MAX_CONTENT_LENGTH = 2000
MAX_NETWORK_REQUESTS = 10
MAX_RECENT_ACTIONS = 5
MAX_FOCUSED_ELEMENTS = 3
MAX_LINKS = 10
SUMMARY_PREVIEW_LENGTH = 200
MAX_TRIM_ITERATIONS = 10

SENSITIVE_URL_PARAMS = frozenset({"token", "key", "password", "secret", "auth", "session"})
STATIC_REQUEST_TYPES = frozenset({"image", "stylesheet", "script", "font", "media"})
SCRIPTED_REQUEST_TYPES = frozenset({"xhr", "fetch"})


# =============================================================================
# Helpers
# =============================================================================


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def sanitize_url(url: str) -> str:
    """
    Replace the values of sensitive query parameters with the redaction marker.

    Parameters not in SENSITIVE_URL_PARAMS are left byte-for-byte untouched.
    Unparseable input is returned as-is.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.query:
        return url

    pairs = []
    for pair in parts.query.split("&"):
        name, sep, _value = pair.partition("=")
        if unquote_plus(name) in SENSITIVE_URL_PARAMS:
            pairs.append(f"{name}={REDACTION_MARKER}")
        else:
            pairs.append(pair)
    return urlunsplit(parts._replace(query="&".join(pairs)))


def is_external_link(href: str, page_url: str) -> bool:
    try:
        link_host = urlsplit(href).hostname
        page_host = urlsplit(page_url).hostname
    except ValueError:
        return False
    # Relative links resolve to the page host
    if not link_host:
        return False
    return link_host != page_host


def is_api_request(url: str, request_type: str) -> bool:
    if request_type in STATIC_REQUEST_TYPES:
        return False
    return any(pattern in url for pattern in API_PATTERNS) or request_type in SCRIPTED_REQUEST_TYPES


def summarize_text(text: str, limit: int = MAX_CONTENT_LENGTH) -> str:
    """Keep short text verbatim; otherwise keep the head and tail around a marker."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    head = text[: int(limit * 0.7)].strip()
    tail = text[len(text) - int(limit * 0.3) :].strip()
    return f"{head}...\n\n[Content truncated]\n\n...{tail}"


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit + 3:
        return text
    return text[:limit] + "..."


class _PageView(BaseModel):
    """Common shape of a PageSnapshot and an AggregatedContext."""

    url: str
    title: str = ""
    content: ContentSnapshot = Field(default_factory=ContentSnapshot)
    network: NetworkActivity = Field(default_factory=NetworkActivity)
    interactions: list[UserInteraction] = Field(default_factory=list)
    semantics: SemanticData | None = None

    @classmethod
    def of(cls, source: PageSnapshot | AggregatedContext) -> _PageView:
        if isinstance(source, AggregatedContext):
            return cls(
                url=source.metadata.url,
                title=source.metadata.title,
                content=source.content,
                network=source.network or NetworkActivity(),
                interactions=source.interactions or [],
                semantics=source.semantics,
            )
        if source.content is None:
            raise FormattingError(f"Snapshot for {source.url} has no content")
        return cls(
            url=source.url,
            title=source.title,
            content=source.content,
            network=source.network,
            interactions=source.interactions,
            semantics=source.semantics,
        )


# =============================================================================
# Formatter
# =============================================================================


class ContextFormatter:
    """Builds FormattedContexts and renders them as prompt text."""

    def format_for_ai(
        self,
        source: PageSnapshot | AggregatedContext,
        query: str | None = None,
        max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        *,
        redact: Callable[[FormattedContext], FormattedContext] | None = None,
    ) -> FormattedContext:
        """
        Format page context for a model prompt.

        ``query`` is accepted for callers that pass the user's question; the
        current layout does not reorder sections by it.

        ``redact`` is applied to the full context before it is measured and
        trimmed, so the budget holds for the redacted text.

        Raises:
            FormattingError: if the source cannot be formatted
        """
        try:
            view = _PageView.of(source)
            formatted = FormattedContext(
                summary=self._summary(view),
                content=self._content(view),
                network=self._network(view),
                interactions=self._interactions(view),
                metadata=self._metadata(view),
            )
        except FormattingError:
            raise
        except Exception as e:
            raise FormattingError(f"Failed to format context: {e}") from e

        if redact is not None:
            formatted = redact(formatted)

        formatted.token_count = self.estimate_token_count(formatted)
        formatted.trim_history = [formatted.token_count]
        if formatted.token_count > max_tokens:
            formatted = self.trim_to_token_limit(formatted, max_tokens)

        if query:
            logger.debug(f"Formatted context for query {query[:40]!r}: {formatted.token_count} tokens")
        return formatted

    def estimate_token_count(self, formatted: FormattedContext) -> int:
        return estimate_tokens(self.format_as_text(formatted))

    # =========================================================================
    # Trimming
    # =========================================================================

    def _ladder(self) -> list[Callable[[FormattedContext], bool]]:
        def main_content(limit: int) -> Callable[[FormattedContext], bool]:
            def step(f: FormattedContext) -> bool:
                trimmed = _truncate(f.content.main_content, limit)
                changed = trimmed != f.content.main_content
                f.content.main_content = trimmed
                return changed

            return step

        def requests(f: FormattedContext) -> bool:
            if len(f.network.recent_requests) <= 3:
                return False
            f.network.recent_requests = f.network.recent_requests[:3]
            return True

        def actions(f: FormattedContext) -> bool:
            if len(f.interactions.recent_actions) <= 1:
                return False
            f.interactions.recent_actions = f.interactions.recent_actions[:1]
            return True

        def links(f: FormattedContext) -> bool:
            if len(f.content.links) <= 2:
                return False
            f.content.links = f.content.links[:2]
            return True

        def tables(f: FormattedContext) -> bool:
            if not f.content.tables:
                return False
            f.content.tables = []
            return True

        def forms(f: FormattedContext) -> bool:
            if len(f.content.forms) <= 1:
                return False
            f.content.forms = f.content.forms[:1]
            return True

        return [main_content(200), main_content(100), requests, actions, links, tables, forms]

    def trim_to_token_limit(self, formatted: FormattedContext, max_tokens: int) -> FormattedContext:
        """
        Apply the degradation ladder to a copy until within ``max_tokens``.

        Never raises; returns the best effort after at most
        MAX_TRIM_ITERATIONS passes.
        """
        trimmed = formatted.model_copy(deep=True)
        history = list(trimmed.trim_history) or [self.estimate_token_count(trimmed)]
        tokens = history[-1]

        for _ in range(MAX_TRIM_ITERATIONS):
            if tokens <= max_tokens:
                break
            changed = False
            for step in self._ladder():
                if step(trimmed):
                    changed = True
                    tokens = self.estimate_token_count(trimmed)
                    if tokens <= max_tokens:
                        break
            if not changed:
                break
            history.append(tokens)

        if tokens > max_tokens:
            logger.debug(f"Context still over budget after trimming: {tokens} > {max_tokens} tokens")

        trimmed.token_count = tokens
        trimmed.trim_history = history
        return trimmed

    # =========================================================================
    # Sections
    # =========================================================================

    @staticmethod
    def _summary(view: _PageView) -> str:
        content = view.content
        summary = f'Page: "{view.title}" at {view.url}'

        if content.text:
            preview = content.text[:SUMMARY_PREVIEW_LENGTH].strip()
            ellipsis = "..." if len(content.text) > SUMMARY_PREVIEW_LENGTH else ""
            summary += f"\nContent: {preview}{ellipsis}"
        if content.forms:
            summary += f"\nForms: {len(content.forms)} form(s) detected"
        if view.network.recent_requests:
            summary += f"\nNetwork: {len(view.network.recent_requests)} recent requests"

        return summary

    @staticmethod
    def _content(view: _PageView) -> FormattedContent:
        content = view.content
        return FormattedContent(
            title=view.title,
            url=view.url,
            main_content=summarize_text(content.text),
            forms=[
                FormInfo(
                    action=form.action,
                    method=form.method,
                    field_count=len(form.fields),
                    fields=[FormFieldInfo(name=f.name, type=f.type, value=f.value) for f in form.fields],
                )
                for form in content.forms
            ],
            tables=[
                TableInfo(headers=list(table.headers), row_count=len(table.rows), caption=table.caption)
                for table in content.tables
            ],
            links=[
                LinkInfo(text=link.text, href=link.href, is_external=is_external_link(link.href, view.url))
                for link in content.links[:MAX_LINKS]
            ],
        )

    @staticmethod
    def _network(view: _PageView) -> FormattedNetwork:
        requests = [
            NetworkRequestSummary(
                url=sanitize_url(request.url),
                method=request.method or "GET",
                status=request.status,
                type=request.type or "unknown",
                timestamp=iso_timestamp(request.timestamp),
            )
            for request in view.network.recent_requests[:MAX_NETWORK_REQUESTS]
        ]

        endpoints = dict.fromkeys(r.url for r in requests if is_api_request(r.url, r.type))
        return FormattedNetwork(recent_requests=requests, api_endpoints=list(endpoints))

    @staticmethod
    def _interactions(view: _PageView) -> FormattedInteractions:
        actions = [
            UserActionSummary(
                type=i.type.value,
                element=i.element.tag_name + (f"#{i.element.id}" if i.element.id else ""),
                timestamp=iso_timestamp(i.timestamp),
            )
            for i in view.interactions[:MAX_RECENT_ACTIONS]
        ]

        focus_types = (InteractionType.FOCUS, InteractionType.CLICK, InteractionType.INPUT)
        focused = [
            ElementSummary(
                tag_name=i.element.tag_name,
                text=i.context.surrounding_text or "",
                selector=i.element.selector,
            )
            for i in view.interactions
            if i.type in focus_types
        ][:MAX_FOCUSED_ELEMENTS]

        return FormattedInteractions(recent_actions=actions, focused_elements=focused)

    def _metadata(self, view: _PageView) -> FormattedMetadata:
        semantics = view.semantics
        return FormattedMetadata(
            page_type=self.detect_page_type(view),
            technologies=self._technologies(view),
            semantic_data=SemanticSummary(
                has_structured_data=bool(semantics and (semantics.schema_org or semantics.json_ld)),
                schema_types=[s.type for s in semantics.schema_org] if semantics else [],
                open_graph_title=semantics.open_graph.title if semantics else None,
                description=view.content.metadata.description
                or (semantics.open_graph.description if semantics else None),
            ),
        )

    @staticmethod
    def detect_page_type(view: _PageView | PageSnapshot) -> str:
        url = view.url
        content = view.content or ContentSnapshot()

        if "/product/" in url or "/item/" in url:
            return "product"
        if "/article/" in url or "/blog/" in url:
            return "article"
        if "/search" in url:
            return "search"
        if "/checkout" in url or "/cart" in url:
            return "ecommerce"
        if "/docs/" in url or "/documentation" in url:
            return "documentation"

        if any(field.type == "email" for form in content.forms for field in form.fields):
            return "form"
        if content.tables:
            return "data"
        if len(content.headings) > 5:
            return "article"
        return "general"

    @staticmethod
    def _technologies(view: _PageView) -> list[str]:
        technologies = []
        if view.semantics and any(ld.get("@type") == "WebApplication" for ld in view.semantics.json_ld):
            technologies.append("WebApp")
        if view.content.metadata.description and "React" in view.content.metadata.description:
            technologies.append("React")
        return technologies

    # =========================================================================
    # Rendering
    # =========================================================================

    @staticmethod
    def format_as_text(formatted: FormattedContext) -> str:
        """Render a FormattedContext as the Markdown text handed to the model."""
        content = formatted.content
        lines = ["# Page Context", "", "## Summary", formatted.summary, ""]

        lines += ["## Content", f"**Title:** {content.title}", f"**URL:** {content.url}", ""]
        if content.main_content:
            lines += ["**Main Content:**", content.main_content, ""]

        if content.forms:
            lines.append("**Forms:**")
            for i, form in enumerate(content.forms, start=1):
                fields = ", ".join(field.render() for field in form.fields)
                lines.append(f"- Form {i}: {form.field_count} fields ({fields})")
            lines.append("")

        if content.tables:
            lines.append("**Tables:**")
            for i, table in enumerate(content.tables, start=1):
                lines.append(f"- Table {i}: {table.row_count} rows, headers: {', '.join(table.headers)}")
            lines.append("")

        if content.links:
            lines.append("**Links:**")
            lines += [f"- {link.text} ({link.href})" for link in content.links]
            lines.append("")

        network = formatted.network
        if network.recent_requests:
            lines += ["## Network Activity", "**Recent Requests:**"]
            lines += [f"- {r.method} {r.url} ({r.status or 'pending'})" for r in network.recent_requests]
            lines.append("")

        if network.api_endpoints:
            lines.append("**API Endpoints:**")
            lines += [f"- {endpoint}" for endpoint in network.api_endpoints]
            lines.append("")

        if formatted.interactions.recent_actions:
            lines.append("## User Interactions")
            lines += [f"- {a.type} on {a.element}" for a in formatted.interactions.recent_actions]
            lines.append("")

        metadata = formatted.metadata
        lines += ["## Metadata", f"**Page Type:** {metadata.page_type}"]
        if metadata.technologies:
            lines.append(f"**Technologies:** {', '.join(metadata.technologies)}")
        if metadata.semantic_data.description:
            lines.append(f"**Description:** {metadata.semantic_data.description}")

        return "\n".join(lines) + "\n"
