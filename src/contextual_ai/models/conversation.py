# contextual_ai/models/conversation.py
"""Conversation state kept by the orchestrator, one per conversation id."""

from __future__ import annotations

import time
import uuid

from pydantic import BaseModel, Field

from contextual_ai.config import DEFAULT_MAX_CONTEXT_TOKENS, MAX_HISTORY_MESSAGES

from .enums import MessageSender
from .formatted import FormattedContext


def _message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:12]}"


class ChatMessage(BaseModel):
    id: str = Field(default_factory=_message_id)
    content: str
    sender: MessageSender
    timestamp: float = Field(default_factory=time.time)


class ContextualMessageOptions(BaseModel):
    """Per-message switches for how page context is folded into the prompt."""

    use_context: bool = True
    include_network_data: bool = True
    include_dom_changes: bool = True
    include_interactions: bool = True
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS

    def merged(self, overrides: ContextualMessageOptions | dict | None) -> ContextualMessageOptions:
        """Return a copy with the explicitly-set fields of ``overrides`` applied."""
        if overrides is None:
            return self.model_copy()
        if isinstance(overrides, ContextualMessageOptions):
            overrides = overrides.model_dump(exclude_unset=True)
        return self.model_copy(update=overrides)


class ConversationContext(BaseModel):
    id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    page_context: FormattedContext | None = None
    last_updated: float = Field(default_factory=time.time)
    context_options: ContextualMessageOptions = Field(default_factory=ContextualMessageOptions)

    def append_exchange(self, user_message: str, ai_response: str) -> None:
        """Record one user/assistant pair, keeping only the newest messages."""
        now = time.time()
        self.messages.append(ChatMessage(content=user_message, sender=MessageSender.USER, timestamp=now))
        self.messages.append(ChatMessage(content=ai_response, sender=MessageSender.AI, timestamp=now))
        if len(self.messages) > MAX_HISTORY_MESSAGES:
            self.messages = self.messages[-MAX_HISTORY_MESSAGES:]
        self.last_updated = now
