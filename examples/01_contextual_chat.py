# examples/01_contextual_chat.py
"""
🧭 CONTEXTUAL CHAT: Page-aware answers with graceful fallback

A static page monitor and a toy model backend stand in for the browser
and the local model runtime. The second half breaks the backend to show
the orchestrator switching to the canned fallback service.
"""

import asyncio
import time

from contextual_ai import ContextSource, ContextualAIService, InferenceConfig, InferenceEngine
from contextual_ai.models import (
    ContentSnapshot,
    Form,
    FormField,
    Heading,
    NetworkActivity,
    NetworkRequest,
    PageSnapshot,
)


class StaticPageMonitor:
    """Always returns the same checkout page."""

    def __init__(self):
        now = time.time()
        self.snapshot = PageSnapshot(
            url="https://shop.example.com/cart",
            title="Your Cart",
            timestamp=now,
            content=ContentSnapshot(
                text="2 items in your cart. Standard shipping is free over $50. Contact: help@example.com",
                headings=[Heading(level=1, text="Cart")],
                forms=[
                    Form(
                        action="/cart/coupon",
                        method="POST",
                        fields=[FormField(name="coupon_code"), FormField(name="card_number", value="4111 1111")],
                    )
                ],
            ),
            network=NetworkActivity(
                recent_requests=[
                    NetworkRequest(url="https://shop.example.com/api/cart", method="GET", status=200, timestamp=now),
                    NetworkRequest(url="https://shop.example.com/api/coupon", method="POST", status=404, timestamp=now),
                ],
                total_requests=2,
            ),
        )

    async def get_snapshot(self):
        return self.snapshot

    def is_active(self) -> bool:
        return True


class EchoModel:
    async def generate(self, prompt: str, **params) -> str:
        return prompt + " I can see your cart page; shipping is free over $50."


class ToyBackend:
    """Model runtime that loads instantly, or never when ``broken``."""

    def __init__(self):
        self.broken = False

    async def load(self, tier, device):
        if self.broken:
            raise RuntimeError("Failed to fetch model weights")
        return EchoModel()

    async def probe_accelerator(self) -> bool:
        return False

    def runtime_available(self) -> bool:
        return True

    def available_memory_mb(self):
        return 4096


async def main():
    backend = ToyBackend()
    engine = InferenceEngine(backend, InferenceConfig(retry_base_delay=0.0, stream_chunk_delay=0.0))
    service = ContextualAIService(engine, ContextSource(StaticPageMonitor()))

    print("📄 Page context:")
    summary = await service.get_context_summary()
    print(f"  {summary.page_title} ({summary.page_url})")
    print(f"  Context types: {', '.join(summary.context_types)}  (~{summary.token_count} tokens)")

    print("\n💡 Suggestions:")
    for suggestion in await service.generate_contextual_suggestions():
        print(f"  [{suggestion.type}] {suggestion.title} ({suggestion.confidence:.2f})")

    print("\n💬 Primary service:")
    reply = await service.send_contextual_message("Is shipping free?", "demo")
    print(f"  {reply.model}: {reply.message}")
    print(f"  Context used: {reply.context_used} ({reply.context_tokens} tokens)")

    print("\n🛟 Breaking the model backend...")
    await engine.unload_model()
    backend.broken = True

    chunks = []
    reply = await service.send_contextual_message_stream("Why did my coupon fail?", "demo", chunks.append)
    print(f"  Streamed {len(chunks)} chunks from {reply.model}")
    print(f"  {reply.message}")

    health = await service.get_service_health_status()
    print("\n🩺 Health:")
    print(f"  Primary available: {health.primary_service.available}")
    print(f"  Currently using: {health.currently_using.value}")

    conversation = service.get_conversation("demo")
    print(f"\n🗂️ History: {len(conversation.messages)} messages")


if __name__ == "__main__":
    asyncio.run(main())
