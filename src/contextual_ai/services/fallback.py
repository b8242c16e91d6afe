# contextual_ai/services/fallback.py
"""
Canned Response Service - the always-available fallback.

Answers from fixed templates so the chat keeps working when the local
model cannot load or answer. Agent-style requests ("help me ...", "do this
task") get agent templates; everything else gets question templates. Each
call advances a shared cursor so consecutive replies differ.

It never raises: any internal problem turns into a plain apology reply.
"""

from __future__ import annotations

import asyncio
import logging

from contextual_ai.models import AIServiceResponse, ChatMessage, ServiceInfo, TokenUsage

from .base import AIService, ChunkCallback, stream_words

logger = logging.getLogger(__name__)

MODEL_NAME = "mock-ai-model-v1"

ASK = "ai-ask"
AGENT = "ai-agent"

RESPONSE_TEMPLATES: dict[str, list[str]] = {
    ASK: [
        "I understand your question. Here's a helpful response based on what you're asking about.",
        "That's an interesting question! Let me provide you with some insights.",
        "Based on your query, here's what I can tell you:",
        "Great question! Here's my analysis of what you're asking about.",
    ],
    AGENT: [
        "As your AI agent, I'm here to help you accomplish this task efficiently.",
        "I'll assist you with this request. Let me break down what we need to do:",
        "Perfect! I can help you with that. Here's my recommended approach:",
        "I'm ready to help you tackle this challenge. Let's work through it together:",
    ],
}

AGENT_KEYWORDS = ("help me", "assist", "do this", "task")

APOLOGY = "I'm sorry, I couldn't put together a response just now. Please try again."


class CannedResponseService(AIService):
    """Template responder implementing the AIService contract."""

    def __init__(self, response_delay: float = 0.0, stream_chunk_delay: float = 0.0):
        self.response_delay = response_delay
        self.stream_chunk_delay = stream_chunk_delay
        self._cursor = 0

    @staticmethod
    def workflow_type(message: str, history: list[ChatMessage] | None = None) -> str:
        if history and "agent" in history[-1].content.lower():
            return AGENT
        lowered = message.lower()
        if any(keyword in lowered for keyword in AGENT_KEYWORDS):
            return AGENT
        return ASK

    async def send_message(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
    ) -> AIServiceResponse:
        try:
            if self.response_delay:
                await asyncio.sleep(self.response_delay)

            templates = RESPONSE_TEMPLATES[self.workflow_type(message, history)]
            template = templates[self._cursor % len(templates)]
            self._cursor += 1

            excerpt = message[:50] + ("..." if len(message) > 50 else "")
            reply = f'{template} Regarding "{excerpt}":' if excerpt else template
        except Exception as e:
            logger.warning(f"Canned response generation failed: {e}")
            reply = APOLOGY

        return AIServiceResponse(
            message=reply,
            usage=TokenUsage.estimate(message, reply),
            model=MODEL_NAME,
            finish_reason="stop",
        )

    async def send_message_stream(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> AIServiceResponse:
        response = await self.send_message(message, history)
        if on_chunk is not None:
            try:
                await stream_words(response.message, on_chunk, self.stream_chunk_delay)
            except Exception as e:
                logger.warning(f"Streaming canned response failed: {e}")
        return response

    async def validate_config(self) -> bool:
        return True

    def get_service_info(self) -> ServiceInfo:
        return ServiceInfo(
            name="Canned Response Service",
            version="1.0.0",
            capabilities=["chat", "streaming", "context-aware"],
        )
