# contextual_ai/context/suggestions.py
"""
Suggestion generation from aggregated page context.

Two flavours:
- prompt_suggestions: short ready-to-send prompts for the chat input (max 4)
- generate_suggestions: typed ContextSuggestions with a confidence, used by
  the orchestrator to build UI suggestion cards (top 8 by confidence)
"""

from __future__ import annotations

from urllib.parse import urlsplit

from contextual_ai.models import (
    AggregatedContext,
    ChatMessage,
    ContextSuggestion,
    MessageSender,
    PageType,
    SuggestionType,
)

MAX_PROMPT_SUGGESTIONS = 4
MAX_CONTEXT_SUGGESTIONS = 8
SLOW_REQUEST_MS = 2000

NO_CONTEXT_PROMPTS = [
    "What can you help me with?",
    "Explain this page to me",
    "What should I do next?",
]

GENERIC_PROMPTS = [
    "What's on this page?",
    "Help me understand this content",
    "What can I do here?",
]

PAGE_TYPE_PROMPTS: dict[PageType, list[str]] = {
    PageType.FORM: [
        "Help me fill out this form",
        "What information is required here?",
        "Check if I've filled everything correctly",
    ],
    PageType.ECOMMERCE: [
        "Tell me about this product",
        "Compare this with similar items",
        "Is this a good deal?",
    ],
    PageType.ARTICLE: [
        "Summarize this article for me",
        "What are the key points?",
        "Explain the main concepts",
    ],
    PageType.DASHBOARD: [
        "Explain this dashboard",
        "What do these metrics mean?",
        "Help me analyze this data",
    ],
}

TASK_KEYWORDS: dict[str, tuple[str, ...]] = {
    "form filling": ("fill", "form", "complete", "submit"),
    "data analysis": ("analyze", "data", "table", "chart"),
    "debugging": ("error", "debug", "fix", "problem"),
    "navigation": ("find", "go to", "navigate", "search"),
}


def prompt_suggestions(context: AggregatedContext | None) -> list[str]:
    """Ready-to-send prompts for the current page; a fixed list without context."""
    if context is None:
        return list(NO_CONTEXT_PROMPTS)

    summary = context.summary
    suggestions = list(PAGE_TYPE_PROMPTS.get(summary.page_type, []))

    if summary.user_activity.form_activity:
        suggestions.append("Help me with this form")
    if summary.data_flows:
        suggestions.append("Explain the recent API activity")

    if not suggestions:
        suggestions = list(GENERIC_PROMPTS)

    return suggestions[:MAX_PROMPT_SUGGESTIONS]


def generate_suggestions(
    context: AggregatedContext,
    history: list[ChatMessage] | None = None,
) -> list[ContextSuggestion]:
    """Typed suggestions for the page, highest confidence first."""
    suggestions = [
        *_form_suggestions(context),
        *_data_suggestions(context),
        *_network_suggestions(context),
        *_error_suggestions(context),
        *_content_suggestions(context),
        *_workflow_suggestions(context, history or []),
    ]
    suggestions.sort(key=lambda s: s.confidence, reverse=True)
    return suggestions[:MAX_CONTEXT_SUGGESTIONS]


# =============================================================================
# Per-area generators
# =============================================================================


def _form_suggestions(context: AggregatedContext) -> list[ContextSuggestion]:
    forms = context.content.forms
    if not forms:
        return []

    total_fields = sum(len(form.fields) for form in forms)
    suggestions = [
        ContextSuggestion(
            type=SuggestionType.FORM_ASSISTANCE,
            title="Smart Form Assistant",
            description=f"Help with {total_fields} form field(s) across {len(forms)} form(s)",
            confidence=0.9,
            context="Forms: " + ", ".join(f"{len(form.fields)} fields" for form in forms),
        )
    ]

    required = [field.name for form in forms for field in form.fields if field.required]
    if required:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.FORM_ASSISTANCE,
                title="Required Field Checker",
                description=f"Validate {len(required)} required field(s)",
                confidence=0.8,
                context=f"Required fields: {', '.join(required)}",
            )
        )
    return suggestions


def _data_suggestions(context: AggregatedContext) -> list[ContextSuggestion]:
    tables = context.content.tables
    if not tables:
        return []

    total_rows = sum(len(table.rows) for table in tables)
    suggestions = [
        ContextSuggestion(
            type=SuggestionType.DATA_ANALYSIS,
            title="Data Table Analyzer",
            description=f"Analyze {total_rows} rows across {len(tables)} table(s)",
            confidence=0.8,
            context="Tables with headers: " + "; ".join(", ".join(t.headers) for t in tables),
        )
    ]
    if any(len(table.headers) > 3 for table in tables):
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.DATA_ANALYSIS,
                title="Advanced Data Operations",
                description="Sort, filter, and export table data",
                confidence=0.7,
                context="Complex tables detected with multiple columns",
            )
        )
    return suggestions


def _network_suggestions(context: AggregatedContext) -> list[ContextSuggestion]:
    if context.network is None or not context.network.recent_requests:
        return []
    requests = context.network.recent_requests

    api_requests = [
        r
        for r in requests
        if "/api/" in r.url or ".json" in r.url or "application/json" in r.headers.get("content-type", "")
    ]

    suggestions = []
    if api_requests:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.API_INSIGHTS,
                title="API Activity Monitor",
                description=f"Monitor {len(api_requests)} API call(s) and responses",
                confidence=0.8,
                context="API endpoints: " + ", ".join(urlsplit(r.url).path or r.url for r in api_requests),
            )
        )
    else:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.API_INSIGHTS,
                title="Network Activity Analysis",
                description=f"Analyze {len(requests)} network request(s)",
                confidence=0.6,
                context="Network requests detected",
            )
        )

    slow = [r for r in requests if r.response_time_ms and r.response_time_ms > SLOW_REQUEST_MS]
    if slow:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.API_INSIGHTS,
                title="Performance Analysis",
                description=f"Analyze {len(slow)} slow request(s)",
                confidence=0.9,
                context="Slow network requests detected (>2s response time)",
            )
        )
    return suggestions


def _error_suggestions(context: AggregatedContext) -> list[ContextSuggestion]:
    if context.network is None:
        return []

    failed = [r for r in context.network.recent_requests if r.status is not None and r.status >= 400]
    if not failed:
        return []

    classes = sorted({r.status // 100 for r in failed})
    return [
        ContextSuggestion(
            type=SuggestionType.ERROR_DIAGNOSIS,
            title="Error Diagnostic Assistant",
            description=f"Diagnose {len(failed)} HTTP error(s)",
            confidence=0.95,
            context="Error types: " + ", ".join(f"{c}xx" for c in classes),
        )
    ]


def _content_suggestions(context: AggregatedContext) -> list[ContextSuggestion]:
    content = context.content
    suggestions = []

    if len(content.text) > 2000:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.CONTENT_SUMMARY,
                title="Content Summarizer",
                description="Get a concise summary of this page",
                confidence=0.7,
                context=f"{round(len(content.text) / 100) * 100}+ characters of content",
            )
        )

    if len(content.headings) > 5:
        sections = ", ".join(h.text for h in content.headings[:3])
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.NAVIGATION_HELP,
                title="Page Navigation Assistant",
                description=f"Navigate through {len(content.headings)} sections",
                confidence=0.6,
                context=f"Sections: {sections}...",
            )
        )
    return suggestions


def _workflow_suggestions(context: AggregatedContext, history: list[ChatMessage]) -> list[ContextSuggestion]:
    suggestions = []

    recent = [m.content.lower() for m in history if m.sender == MessageSender.USER][-3:]
    patterns = detect_task_patterns(recent)
    if patterns:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.WORKFLOW_OPTIMIZATION,
                title="Workflow Automation",
                description="Automate repetitive tasks you've been doing",
                confidence=0.8,
                context=f"Detected patterns: {', '.join(patterns)}",
            )
        )

    if context.summary.page_type == PageType.ECOMMERCE:
        suggestions.append(
            ContextSuggestion(
                type=SuggestionType.WORKFLOW_OPTIMIZATION,
                title="Shopping Assistant",
                description="Compare prices, find deals, track items",
                confidence=0.7,
                context="E-commerce page detected",
            )
        )
    return suggestions


def detect_task_patterns(messages: list[str]) -> list[str]:
    """Task names mentioned in at least two of the given (lowercased) messages."""
    return [
        task
        for task, keywords in TASK_KEYWORDS.items()
        if sum(1 for msg in messages if any(k in msg for k in keywords)) >= 2
    ]
