# contextual_ai/orchestrator.py
"""
ContextualAIService - chat entry point that folds page context into prompts.

This module provides the ContextualAIService class which offers:
- Per-conversation history (last 10 messages)
- Page context injection, gated by per-message options
- Primary/fallback failover that always returns a response
- Contextual suggestions and a context summary for the UI
- Manual service switching and health reporting
"""

from __future__ import annotations

import logging
from typing import Any

from contextual_ai.context.source import ContextSource
from contextual_ai.error_handler import ErrorHandler
from contextual_ai.models import (
    AIServiceResponse,
    ChatMessage,
    ContextSummaryInfo,
    ContextualMessageOptions,
    ContextualResponse,
    ContextualSuggestion,
    ConversationContext,
    ErrorCategory,
    ErrorSeverity,
    FormattedContext,
    ModelTier,
    ServiceHealthReport,
    ServiceHealthState,
    ServiceInfo,
    ServiceKind,
    ServiceStatus,
    SuggestionReference,
    SuggestionType,
    TokenUsage,
)
from contextual_ai.services.base import AIService, ChunkCallback, emit_chunk
from contextual_ai.services.fallback import CannedResponseService

logger = logging.getLogger(__name__)

COMPONENT = "contextual_ai_service"

FALLBACK_NOTICE = "\n\n*Note: I'm currently running in fallback mode with limited capabilities.*"

UNAVAILABLE_MESSAGE = (
    "I'm sorry, but I'm currently unable to process your request due to technical difficulties. "
    "Please try again later."
)

CONTEXT_INSTRUCTION = "Please answer the user's question using the page context above when relevant."

# Number of network requests listed in an augmented message
MAX_PROMPT_REQUESTS = 3

SUGGESTION_TYPE_MAP = {
    SuggestionType.FORM_ASSISTANCE: "form-help",
    SuggestionType.ERROR_DIAGNOSIS: "debug-assist",
    SuggestionType.DATA_ANALYSIS: "data-analysis",
}


def build_contextual_message(
    message: str,
    context: FormattedContext,
    options: ContextualMessageOptions,
) -> str:
    """Prefix the user's message with a markdown rendering of the page context."""
    content = context.content
    parts = [
        "# Current Page Context\n\n",
        f"**Page:** {content.title}\n",
        f"**URL:** {content.url}\n\n",
    ]

    if content.main_content:
        parts.append(f"**Content Summary:**\n{content.main_content}\n\n")

    if options.include_dom_changes and content.forms:
        parts.append("**Forms on page:**\n")
        for i, form in enumerate(content.forms, 1):
            parts.append(f"- Form {i}: {form.field_count} fields\n")
        parts.append("\n")

    if options.include_network_data and context.network.recent_requests:
        parts.append("**Recent Network Activity:**\n")
        for request in context.network.recent_requests[:MAX_PROMPT_REQUESTS]:
            parts.append(f"- {request.method} {request.url}\n")
        parts.append("\n")

    if options.include_interactions and context.interactions.recent_actions:
        parts.append("**Recent User Actions:**\n")
        for action in context.interactions.recent_actions:
            parts.append(f"- {action.type} on {action.element}\n")
        parts.append("\n")

    parts.append("---\n\n")
    parts.append(f"**User Question:** {message}\n\n")
    parts.append(CONTEXT_INSTRUCTION)
    return "".join(parts)


class ContextualAIService:
    """
    Context-aware chat over a primary AI service with an always-available
    fallback.

    The failover boundary in ``send_contextual_message`` never raises for
    collaborator failures: when both services fail the caller gets an
    apology response with ``model="error-fallback"``.

    Examples:
        ```python
        source = ContextSource(monitor)
        service = ContextualAIService(InferenceEngine(backend), source)
        reply = await service.send_contextual_message("What is this form for?", "conv-1")
        ```
    """

    def __init__(
        self,
        ai_service: AIService,
        context_source: ContextSource,
        *,
        fallback_service: AIService | None = None,
        error_handler: ErrorHandler | None = None,
        health: ServiceHealthState | None = None,
        default_options: ContextualMessageOptions | None = None,
    ):
        self.ai_service = ai_service
        self.context_source = context_source
        self.fallback_service = fallback_service or CannedResponseService()
        self.error_handler = error_handler or ErrorHandler()
        self.health = health or ServiceHealthState()
        self.default_options = default_options or ContextualMessageOptions()
        self._conversations: dict[str, ConversationContext] = {}

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send_contextual_message(
        self,
        message: str,
        conversation_id: str,
        options: ContextualMessageOptions | dict | None = None,
    ) -> ContextualResponse:
        """Answer ``message`` with the current page context folded into the prompt."""
        conversation, prompt, context = await self._prepare(message, conversation_id, options)
        response = await self._send_with_fallback(prompt, list(conversation.messages), conversation_id)
        return self._finish(conversation, message, response, context)

    async def send_contextual_message_stream(
        self,
        message: str,
        conversation_id: str,
        on_chunk: ChunkCallback,
        options: ContextualMessageOptions | dict | None = None,
    ) -> ContextualResponse:
        """Streaming variant of :meth:`send_contextual_message`."""
        conversation, prompt, context = await self._prepare(message, conversation_id, options)
        response = await self._send_with_fallback(
            prompt, list(conversation.messages), conversation_id, on_chunk=on_chunk
        )
        return self._finish(conversation, message, response, context)

    async def _prepare(
        self,
        message: str,
        conversation_id: str,
        options: ContextualMessageOptions | dict | None,
    ) -> tuple[ConversationContext, str, FormattedContext | None]:
        merged = self.default_options.merged(options)
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            conversation = self._create_conversation(conversation_id, merged)

        context: FormattedContext | None = None
        prompt = message
        if merged.use_context and self.context_source.is_ready():
            try:
                context = await self.context_source.get_ai_formatted_context(message, merged.max_context_tokens)
            except Exception as e:
                logger.warning(f"Failed to get page context, proceeding without: {e}")
                context = None
            if context is not None:
                prompt = build_contextual_message(message, context, merged)
                conversation.page_context = context

        return conversation, prompt, context

    def _finish(
        self,
        conversation: ConversationContext,
        message: str,
        response: AIServiceResponse,
        context: FormattedContext | None,
    ) -> ContextualResponse:
        conversation.append_exchange(message, response.message)
        return ContextualResponse(
            **response.model_dump(),
            context_used=context is not None,
            context_tokens=context.token_count if context is not None else 0,
        )

    async def _send_with_fallback(
        self,
        prompt: str,
        history: list[ChatMessage],
        conversation_id: str,
        on_chunk: ChunkCallback | None = None,
    ) -> AIServiceResponse:
        streaming = on_chunk is not None
        try:
            if streaming:
                response = await self.ai_service.send_message_stream(prompt, history, on_chunk)
            else:
                response = await self.ai_service.send_message(prompt, history)
        except Exception as primary_error:
            self.health.last_error = str(primary_error)
            self.error_handler.handle_error(
                ErrorCategory.CONTEXT,
                ErrorSeverity.MEDIUM,
                f"Primary AI service failed: {primary_error}",
                COMPONENT,
                error=primary_error,
                context={
                    "conversation_id": conversation_id,
                    "streaming": streaming,
                    "using_fallback": self.health.using_fallback,
                },
            )
            return await self._send_to_fallback(prompt, history, conversation_id, on_chunk, primary_error)

        if self.health.switch_to(ServiceKind.PRIMARY):
            logger.info("Primary AI service recovered, switching back from fallback")
        self._sync_active_tier()
        return response

    async def _send_to_fallback(
        self,
        prompt: str,
        history: list[ChatMessage],
        conversation_id: str,
        on_chunk: ChunkCallback | None,
        primary_error: Exception,
    ) -> AIServiceResponse:
        if self.health.switch_to(ServiceKind.FALLBACK):
            logger.warning("Primary AI service failed, switching to fallback service")

        try:
            if on_chunk is not None:
                response = await self.fallback_service.send_message_stream(prompt, history, on_chunk)
            else:
                response = await self.fallback_service.send_message(prompt, history)
        except Exception as fallback_error:
            self.error_handler.handle_error(
                ErrorCategory.CONTEXT,
                ErrorSeverity.HIGH,
                "Both primary and fallback AI services failed",
                COMPONENT,
                error=fallback_error,
                context={
                    "conversation_id": conversation_id,
                    "streaming": on_chunk is not None,
                    "primary_error": str(primary_error),
                    "fallback_error": str(fallback_error),
                },
            )
            if on_chunk is not None:
                try:
                    await emit_chunk(on_chunk, UNAVAILABLE_MESSAGE)
                except Exception as e:
                    logger.warning(f"Could not deliver apology chunk: {e}")
            return AIServiceResponse(
                message=UNAVAILABLE_MESSAGE,
                usage=TokenUsage(),
                model="error-fallback",
                finish_reason="error",
            )

        return response.model_copy(
            update={
                "message": response.message + FALLBACK_NOTICE,
                "model": f"{response.model or 'fallback'} (fallback mode)",
            }
        )

    def _sync_active_tier(self) -> None:
        tier = getattr(self.ai_service, "active_tier", None)
        if isinstance(tier, ModelTier):
            self.health.active_model_tier = tier.id

    # =========================================================================
    # Context for the UI
    # =========================================================================

    async def generate_contextual_suggestions(self) -> list[ContextualSuggestion]:
        if not self.context_source.is_ready():
            return []

        try:
            context = await self.context_source.get_current_context()
            suggestions = await self.context_source.generate_suggestions()
        except Exception as e:
            logger.error(f"Failed to generate contextual suggestions: {e}")
            return []

        page_url = context.metadata.url if context is not None else ""
        return [
            ContextualSuggestion(
                id=f"suggestion-{index}",
                type=SUGGESTION_TYPE_MAP.get(suggestion.type, "workflow"),
                title=suggestion.title,
                description=suggestion.description,
                confidence=suggestion.confidence,
                context=SuggestionReference(page_url=page_url, context_type=suggestion.type.value),
            )
            for index, suggestion in enumerate(suggestions)
        ]

    async def get_context_summary(self) -> ContextSummaryInfo:
        """What the chat UI shows about the page context it is using."""
        if not self.context_source.is_ready():
            return ContextSummaryInfo()

        try:
            context = await self.context_source.get_ai_formatted_context(
                max_tokens=self.default_options.max_context_tokens
            )
        except Exception as e:
            logger.error(f"Failed to get context summary: {e}")
            return ContextSummaryInfo()
        if context is None:
            return ContextSummaryInfo()

        context_types = []
        if context.content.main_content:
            context_types.append("content")
        if context.content.forms:
            context_types.append("forms")
        if context.network.recent_requests:
            context_types.append("network")
        if context.interactions.recent_actions:
            context_types.append("interactions")

        return ContextSummaryInfo(
            has_context=True,
            page_title=context.content.title or "Unknown Page",
            page_url=context.content.url,
            context_types=context_types,
            token_count=context.token_count,
        )

    # =========================================================================
    # Configuration & conversations
    # =========================================================================

    def set_context_options(self, options: ContextualMessageOptions | dict[str, Any]) -> None:
        self.default_options = self.default_options.merged(options)

    def set_ai_service(self, ai_service: AIService) -> None:
        self.ai_service = ai_service

    def get_ai_service_info(self) -> ServiceInfo:
        return self.ai_service.get_service_info()

    def _create_conversation(
        self, conversation_id: str, options: ContextualMessageOptions
    ) -> ConversationContext:
        conversation = ConversationContext(id=conversation_id, context_options=options)
        self._conversations[conversation_id] = conversation
        return conversation

    def get_conversation(self, conversation_id: str) -> ConversationContext | None:
        return self._conversations.get(conversation_id)

    def clear_conversation(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)

    # =========================================================================
    # Service health
    # =========================================================================

    def is_using_fallback(self) -> bool:
        return self.health.using_fallback

    async def get_service_health_status(self) -> ServiceHealthReport:
        primary_available = False
        primary_error: str | None = None
        try:
            primary_available = bool(await self.ai_service.validate_config())
        except Exception as e:
            primary_error = str(e)

        return ServiceHealthReport(
            primary_service=ServiceStatus(
                name=self.ai_service.get_service_info().name,
                available=primary_available,
                error=primary_error,
            ),
            fallback_service=ServiceStatus(
                name=self.fallback_service.get_service_info().name,
                available=True,
            ),
            currently_using=self.health.active_service,
            active_model_tier=self.health.active_model_tier,
        )

    def switch_to_fallback(self) -> None:
        """Force fallback mode; the next send still tries the primary first."""
        self.health.switch_to(ServiceKind.FALLBACK)
        logger.info("Manually switched to fallback AI service")

    async def try_primary_service(self) -> bool:
        """Re-validate the primary service and switch back to it if it is usable."""
        try:
            valid = await self.ai_service.validate_config()
        except Exception as e:
            logger.warning(f"Primary service still not available: {e}")
            return False

        if not valid:
            return False
        self.health.switch_to(ServiceKind.PRIMARY)
        logger.info("Switched back to primary AI service")
        return True
