# contextual_ai/models/enums.py
"""Enums and constants shared across the context pipeline and AI services."""

from enum import Enum

# =============================================================================
# Page context
# =============================================================================


class PageType(str, Enum):
    """Page classification produced by the aggregator."""

    UNKNOWN = "unknown"
    ARTICLE = "article"
    ECOMMERCE = "ecommerce"
    FORM = "form"
    DASHBOARD = "dashboard"
    SEARCH = "search"
    SOCIAL = "social"
    DOCUMENTATION = "documentation"
    APPLICATION = "application"


class InteractionType(str, Enum):
    """Kinds of user interaction reported by the page monitor."""

    CLICK = "click"
    INPUT = "input"
    SUBMIT = "submit"
    SCROLL = "scroll"
    HOVER = "hover"
    FOCUS = "focus"
    BLUR = "blur"


class DataFlowType(str, Enum):
    """Classification of a network data flow."""

    API = "api"
    FORM = "form"
    NAVIGATION = "navigation"


class SuggestionType(str, Enum):
    """Suggestion categories derived from page context."""

    FORM_ASSISTANCE = "form_assistance"
    DATA_ANALYSIS = "data_analysis"
    ERROR_DIAGNOSIS = "error_diagnosis"
    WORKFLOW_OPTIMIZATION = "workflow_optimization"
    CONTENT_SUMMARY = "content_summary"
    API_INSIGHTS = "api_insights"
    NAVIGATION_HELP = "navigation_help"


# =============================================================================
# Inference
# =============================================================================


class FootprintClass(str, Enum):
    """Relative resource footprint of a model tier."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def rank(self) -> int:
        return _FOOTPRINT_RANK[self]


_FOOTPRINT_RANK = {
    FootprintClass.SMALL: 0,
    FootprintClass.MEDIUM: 1,
    FootprintClass.LARGE: 2,
}


class Device(str, Enum):
    """Execution device for a loaded model."""

    ACCELERATOR = "accelerator"
    CPU = "cpu"


class EngineState(str, Enum):
    """Lifecycle of the primary inference engine."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


class InferenceErrorCategory(str, Enum):
    """Failure categories for model loading and inference."""

    MODEL_LOADING = "model_loading"
    INFERENCE = "inference"
    MEMORY = "memory"
    ACCELERATOR = "accelerator"
    NETWORK = "network"


class InferencePhase(str, Enum):
    """Which engine operation an error came from."""

    LOADING = "loading"
    INFERENCE = "inference"


# =============================================================================
# Error reporting & service health
# =============================================================================


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Component area an error report belongs to."""

    CONTEXT = "context"
    INFERENCE = "inference"
    NETWORK = "network"
    PRIVACY = "privacy"
    UNKNOWN = "unknown"


class RecoveryStrategy(str, Enum):
    RETRY = "retry"
    FALLBACK = "fallback"
    GRACEFUL_DEGRADATION = "graceful_degradation"
    RESTART_COMPONENT = "restart_component"
    DISABLE_FEATURE = "disable_feature"
    NO_ACTION = "no_action"


class ServiceKind(str, Enum):
    """Which AI service is currently answering."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class MessageSender(str, Enum):
    USER = "user"
    AI = "ai"


# =============================================================================
# Constants
# =============================================================================

# Request URL fragments that mark static resources
STATIC_EXTENSIONS: tuple[str, ...] = (".css", ".js", ".png", ".jpg", ".gif", ".ico", ".woff")

# Request URL fragments that mark API traffic
API_PATTERNS: tuple[str, ...] = ("/api/", "/v1/", "/v2/", "/graphql", "/rest/", ".json")

MUTATING_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})
