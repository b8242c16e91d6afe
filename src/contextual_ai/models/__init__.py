# contextual_ai/models/__init__.py
"""
Data contracts for the contextual AI core.

- snapshot: raw page snapshots from the page monitor (read-only input)
- context: aggregated, classified page context
- formatted: prompt-ready, token-bounded page context
- conversation: per-conversation chat state
- service: AI service responses, tiers and health
"""

from .context import (
    ActivitySummary,
    AggregatedContext,
    ContextMetadata,
    ContextSummary,
    DataFlowSummary,
    DataQuality,
    PerformanceMetrics,
)
from .conversation import ChatMessage, ContextualMessageOptions, ConversationContext
from .enums import (
    API_PATTERNS,
    MUTATING_METHODS,
    STATIC_EXTENSIONS,
    DataFlowType,
    Device,
    EngineState,
    ErrorCategory,
    ErrorSeverity,
    FootprintClass,
    InferenceErrorCategory,
    InferencePhase,
    InteractionType,
    MessageSender,
    PageType,
    RecoveryStrategy,
    ServiceKind,
    SuggestionType,
)
from .errors import ErrorRecord, ErrorStatistics
from .formatted import (
    ElementSummary,
    FormattedContent,
    FormattedContext,
    FormattedInteractions,
    FormattedMetadata,
    FormattedNetwork,
    FormFieldInfo,
    FormInfo,
    LinkInfo,
    NetworkRequestSummary,
    SemanticSummary,
    TableInfo,
    UserActionSummary,
)
from .privacy import PrivacyConfig
from .service import (
    AIServiceResponse,
    ContextSuggestion,
    ContextSummaryInfo,
    ContextualResponse,
    ContextualSuggestion,
    EngineHealth,
    MemoryUsage,
    ModelTier,
    ServiceHealthReport,
    ServiceHealthState,
    ServiceInfo,
    ServiceStatus,
    SuggestionReference,
    TokenUsage,
)
from .snapshot import (
    ContentSnapshot,
    ElementInfo,
    Form,
    FormField,
    Heading,
    Image,
    InteractionContext,
    LayoutSnapshot,
    Link,
    NetworkActivity,
    NetworkRequest,
    OpenGraphData,
    PageMetadata,
    PageSnapshot,
    SchemaOrgData,
    SemanticData,
    Table,
    UserInteraction,
)

__all__ = [
    # Enums & constants
    "API_PATTERNS",
    "MUTATING_METHODS",
    "STATIC_EXTENSIONS",
    "DataFlowType",
    "Device",
    "EngineState",
    "ErrorCategory",
    "ErrorSeverity",
    "FootprintClass",
    "InferenceErrorCategory",
    "InferencePhase",
    "InteractionType",
    "MessageSender",
    "PageType",
    "RecoveryStrategy",
    "ServiceKind",
    "SuggestionType",
    # Snapshot
    "ContentSnapshot",
    "ElementInfo",
    "Form",
    "FormField",
    "Heading",
    "Image",
    "InteractionContext",
    "LayoutSnapshot",
    "Link",
    "NetworkActivity",
    "NetworkRequest",
    "OpenGraphData",
    "PageMetadata",
    "PageSnapshot",
    "SchemaOrgData",
    "SemanticData",
    "Table",
    "UserInteraction",
    # Aggregated context
    "ActivitySummary",
    "AggregatedContext",
    "ContextMetadata",
    "ContextSummary",
    "DataFlowSummary",
    "DataQuality",
    "PerformanceMetrics",
    # Formatted context
    "ElementSummary",
    "FormattedContent",
    "FormattedContext",
    "FormattedInteractions",
    "FormattedMetadata",
    "FormattedNetwork",
    "FormFieldInfo",
    "FormInfo",
    "LinkInfo",
    "NetworkRequestSummary",
    "SemanticSummary",
    "TableInfo",
    "UserActionSummary",
    # Conversation
    "ChatMessage",
    "ContextualMessageOptions",
    "ConversationContext",
    # Privacy
    "PrivacyConfig",
    # Errors
    "ErrorRecord",
    "ErrorStatistics",
    # Services
    "AIServiceResponse",
    "ContextSuggestion",
    "ContextSummaryInfo",
    "ContextualResponse",
    "ContextualSuggestion",
    "EngineHealth",
    "MemoryUsage",
    "ModelTier",
    "ServiceHealthReport",
    "ServiceHealthState",
    "ServiceInfo",
    "ServiceStatus",
    "SuggestionReference",
    "TokenUsage",
]
