# contextual_ai/services/base.py
"""
AI service contract shared by the primary inference engine and the
always-available fallback responder.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from contextual_ai.models import AIServiceResponse, ChatMessage, ServiceInfo

# Receives each streamed chunk; may be a plain function or a coroutine function
ChunkCallback = Callable[[str], None] | Callable[[str], Awaitable[None]]


class AIService(ABC):
    """Four-method contract every chat backend implements."""

    @abstractmethod
    async def send_message(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
    ) -> AIServiceResponse:
        """Generate a complete reply."""

    @abstractmethod
    async def send_message_stream(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> AIServiceResponse:
        """Generate a reply, delivering it through ``on_chunk`` as it is produced."""

    @abstractmethod
    async def validate_config(self) -> bool:
        """True if the service can currently answer requests."""

    @abstractmethod
    def get_service_info(self) -> ServiceInfo: ...


async def emit_chunk(on_chunk: ChunkCallback, chunk: str) -> None:
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


async def stream_words(text: str, on_chunk: ChunkCallback, delay: float = 0.0) -> None:
    """Send ``text`` word by word; every chunk after the first has a leading space."""
    for index, word in enumerate(text.split(" ")):
        if delay:
            await asyncio.sleep(delay)
        await emit_chunk(on_chunk, word if index == 0 else f" {word}")
