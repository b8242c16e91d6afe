# tests/test_inference_engine.py
"""
Tests for the local InferenceEngine.

Tests cover:
- Loading: fallback chain, requirement checks, timeouts, de-duplication
- Inference: prompt building, reply extraction, retries with backoff
- Status: health, memory usage, validation
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from conftest import FakeBackend

from contextual_ai.error_handler import ErrorHandler
from contextual_ai.exceptions import InferenceError, ModelLoadError
from contextual_ai.models import ChatMessage, Device, EngineState, MessageSender
from contextual_ai.services import InferenceEngine, extract_reply, format_prompt


class AcceleratorFailingBackend(FakeBackend):
    """Fails every accelerated load; cpu loads succeed."""

    async def load(self, tier, device):
        if device == Device.ACCELERATOR:
            self.loads.append((tier.id, device.value))
            raise RuntimeError("WebGPU device lost")
        return await super().load(tier, device)


class SlowBackend(FakeBackend):
    async def load(self, tier, device):
        self.loads.append((tier.id, device.value))
        await asyncio.sleep(5)


class SlowModel:
    async def generate(self, prompt, **params):
        await asyncio.sleep(5)
        return prompt + " late"


# =============================================================================
# Prompt helpers
# =============================================================================


class TestPromptHelpers:
    def test_format_prompt_keeps_last_five_turns(self):
        history = [
            ChatMessage(content=f"turn {i}", sender=MessageSender.USER if i % 2 == 0 else MessageSender.AI)
            for i in range(8)
        ]

        prompt = format_prompt("new question", history)

        assert prompt.startswith("You are a helpful AI assistant.")
        assert "turn 2" not in prompt
        assert "Assistant: turn 3\nHuman: turn 4\n" in prompt
        assert prompt.endswith("Human: new question\nAssistant:")

    def test_extract_reply_after_assistant_marker(self):
        prompt = format_prompt("hi")
        assert extract_reply(prompt + " Hello there!\nHuman: and you?", prompt) == "Hello there!"

    def test_extract_reply_strips_prompt_prefix(self):
        assert extract_reply("PROMPT continuation", "PROMPT") == "continuation"

    def test_extract_reply_raw_output(self):
        assert extract_reply("  just text ", "something else") == "just text"


# =============================================================================
# Loading
# =============================================================================


class TestLoadModel:
    @pytest.mark.asyncio
    async def test_loads_requested_tier_on_accelerator(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        tier = await engine.load_model("small")

        assert tier.id == "small"
        assert engine.state == EngineState.LOADED
        assert backend.loads == [("small", "accelerator")]
        assert engine.get_health_status().device == Device.ACCELERATOR

    @pytest.mark.asyncio
    async def test_chain_ends_at_smallest_after_three_loads(self, fast_config):
        backend = FakeBackend(
            load_failures={
                "large": RuntimeError("download interrupted"),
                "medium": RuntimeError("download interrupted"),
            }
        )
        engine = InferenceEngine(backend, fast_config)

        tier = await engine.load_model("large")

        assert tier.id == "small"
        assert [tier_id for tier_id, _ in backend.loads] == ["large", "medium", "small"]
        assert engine.active_tier.id == "small"
        assert engine.get_last_error() is None

    @pytest.mark.asyncio
    async def test_missing_weights_on_larger_tier_moves_down_the_chain(self, fast_config):
        backend = FakeBackend(load_failures={"large": RuntimeError("Model not found: phi-3 weights missing")})
        engine = InferenceEngine(backend, fast_config)

        tier = await engine.load_model("large")

        assert tier.id == "medium"
        assert [tier_id for tier_id, _ in backend.loads] == ["large", "medium"]
        assert engine.active_tier.id == "medium"
        assert engine.state == EngineState.LOADED

    @pytest.mark.asyncio
    async def test_accelerator_failure_retries_on_cpu(self, fast_config):
        backend = AcceleratorFailingBackend()
        engine = InferenceEngine(backend, fast_config)

        tier = await engine.load_model("medium")

        assert tier.id == "medium"
        assert backend.loads == [("medium", "accelerator"), ("medium", "cpu")]
        assert engine.get_health_status().device == Device.CPU

    @pytest.mark.asyncio
    async def test_missing_accelerator_downgrades_silently(self, fast_config):
        backend = FakeBackend(accelerator=False)
        engine = InferenceEngine(backend, fast_config)

        await engine.load_model("large")

        assert backend.loads == [("large", "cpu")]

    @pytest.mark.asyncio
    async def test_low_memory_only_warns(self, fast_config):
        backend = FakeBackend(memory_mb=512)
        engine = InferenceEngine(backend, fast_config)

        assert (await engine.load_model("small")).id == "small"

    @pytest.mark.asyncio
    async def test_missing_runtime_stops_the_chain(self, fast_config):
        backend = FakeBackend(runtime=False)
        engine = InferenceEngine(backend, fast_config)

        with pytest.raises(ModelLoadError) as exc_info:
            await engine.load_model("large")

        assert exc_info.value.attempted == ["large"]
        assert exc_info.value.last_error.code == "RUNTIME_UNSUPPORTED"
        assert backend.loads == []
        assert engine.state == EngineState.UNLOADED

    @pytest.mark.asyncio
    async def test_every_tier_failing_raises_aggregate_error(self, fast_config):
        failure = RuntimeError("connection reset")
        backend = FakeBackend(load_failures={"large": failure, "medium": failure, "small": failure})
        handler = ErrorHandler()
        engine = InferenceEngine(backend, fast_config, error_handler=handler)

        with pytest.raises(ModelLoadError) as exc_info:
            await engine.load_model("large")

        error = exc_info.value
        assert error.attempted == ["large", "medium", "small"]
        assert error.code == "NETWORK_ERROR"
        assert error.fallback_available is False
        assert engine.get_health_status().has_error is True
        assert handler.get_statistics().by_component == {"inference_engine": 3}

    @pytest.mark.asyncio
    async def test_unknown_tier(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        with pytest.raises(InferenceError) as exc_info:
            await engine.load_model("huge")

        assert exc_info.value.code == "INVALID_MODEL"
        assert exc_info.value.recoverable is False

    @pytest.mark.asyncio
    async def test_load_timeout(self, fast_config):
        backend = SlowBackend()
        engine = InferenceEngine(backend, fast_config.model_copy(update={"load_timeout": 0.01}))

        with pytest.raises(ModelLoadError) as exc_info:
            await engine.load_model("small")

        assert exc_info.value.code == "LOADING_TIMEOUT"

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_task(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        first, second = await asyncio.gather(engine.load_model("small"), engine.load_model("small"))

        assert first is second
        assert len(backend.loads) == 1

    @pytest.mark.asyncio
    async def test_loading_same_tier_again_is_a_noop(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        await engine.load_model("small")
        await engine.load_model("small")

        assert len(backend.loads) == 1

    @pytest.mark.asyncio
    async def test_switching_tier_unloads_previous_model(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        await engine.load_model("small")
        await engine.load_model("medium")

        assert backend.models[0].closed is True
        assert engine.active_tier.id == "medium"

    @pytest.mark.asyncio
    async def test_unload(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)
        await engine.load_model()

        await engine.unload_model()

        assert engine.state == EngineState.UNLOADED
        assert engine.active_tier is None
        assert backend.models[0].closed is True


# =============================================================================
# Inference
# =============================================================================


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_lazy_load_and_reply(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)
        history = [ChatMessage(content="earlier question", sender=MessageSender.USER)]

        response = await engine.send_message("hi", history)

        assert response.message == "Hello from the model"
        assert response.model == "small"
        assert response.finish_reason == "stop"
        assert response.usage.total_tokens > 0
        assert "Human: earlier question\nHuman: hi\nAssistant:" in backend.models[0].prompts[0]

    @pytest.mark.asyncio
    async def test_inference_failure_reloads_and_retries(self, fast_config):
        backend = FakeBackend(outputs=[RuntimeError("kernel crashed"), "Recovered answer"])
        engine = InferenceEngine(backend, fast_config)

        response = await engine.send_message("hi")

        assert response.message == "Recovered answer"
        assert len(backend.loads) == 2
        assert backend.models[0].closed is True

    @pytest.mark.asyncio
    async def test_empty_output_is_retried(self, fast_config):
        backend = FakeBackend(outputs=["", "Real answer"])
        engine = InferenceEngine(backend, fast_config)

        assert (await engine.send_message("hi")).message == "Real answer"

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self, fast_config):
        backend = FakeBackend(outputs=[RuntimeError("kernel crashed")] * 4)
        handler = ErrorHandler()
        engine = InferenceEngine(backend, fast_config, error_handler=handler)

        with pytest.raises(InferenceError) as exc_info:
            await engine.send_message("hi")

        assert exc_info.value.code == "INFERENCE_FAILED"
        assert handler.get_statistics().total == 4
        assert engine.get_last_error() is exc_info.value

    @pytest.mark.asyncio
    async def test_backoff_is_exponential_and_capped(self, fast_config):
        backend = FakeBackend(outputs=[RuntimeError("network glitch")] * 4)
        config = fast_config.model_copy(update={"retry_base_delay": 1.0, "retry_max_delay": 3.0})
        engine = InferenceEngine(backend, config)

        with patch("contextual_ai.services.inference_engine.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(InferenceError):
                await engine.send_message("hi")

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0]
        # Network failures keep the model loaded
        assert len(backend.loads) == 1

    @pytest.mark.asyncio
    async def test_memory_error_at_smallest_tier_is_not_retried(self, fast_config):
        backend = FakeBackend(outputs=[MemoryError(), "never reached"])
        engine = InferenceEngine(backend, fast_config)

        with pytest.raises(InferenceError) as exc_info:
            await engine.send_message("hi")

        assert exc_info.value.code == "MEMORY_ERROR"
        assert backend.outputs == ["never reached"]

    @pytest.mark.asyncio
    async def test_inference_timeout(self, backend, fast_config):
        config = fast_config.model_copy(update={"inference_timeout": 0.01, "max_retries": 0})
        engine = InferenceEngine(backend, config)
        await engine.load_model()
        engine._model = SlowModel()

        with pytest.raises(InferenceError) as exc_info:
            await engine.send_message("hi")

        assert exc_info.value.code == "INFERENCE_TIMEOUT"

    @pytest.mark.asyncio
    async def test_load_failure_propagates(self, fast_config):
        failure = RuntimeError("download failed")
        backend = FakeBackend(load_failures={"small": failure})
        engine = InferenceEngine(backend, fast_config)

        with pytest.raises(ModelLoadError):
            await engine.send_message("hi")

    @pytest.mark.asyncio
    async def test_streaming_delivers_words(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)
        chunks = []

        response = await engine.send_message_stream("hi", on_chunk=chunks.append)

        assert "".join(chunks) == response.message
        assert chunks[0] == "Hello"
        assert chunks[1] == " from"


# =============================================================================
# Status
# =============================================================================


class TestEngineStatus:
    @pytest.mark.asyncio
    async def test_validate_config_does_not_load(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        assert await engine.validate_config() is True
        assert backend.loads == []

    @pytest.mark.asyncio
    async def test_validate_config_fails_without_runtime(self, fast_config):
        engine = InferenceEngine(FakeBackend(runtime=False), fast_config)
        assert await engine.validate_config() is False

    @pytest.mark.asyncio
    async def test_validate_config_unknown_tier(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config.model_copy(update={"model_tier": "huge"}))
        assert await engine.validate_config() is False

    @pytest.mark.asyncio
    async def test_health_and_memory(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)
        assert engine.get_health_status().loaded is False

        await engine.load_model("small")
        health = engine.get_health_status()

        assert health.loaded is True
        assert health.model_tier == "small"
        assert health.memory.used_mb == 1024
        assert health.memory.percentage == 50.0
        assert health.can_fallback is True

    def test_service_info_and_tiers(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)

        info = engine.get_service_info()

        assert info.name == "Local Inference Engine"
        assert "offline" in info.capabilities
        assert [t.id for t in engine.available_tiers()] == ["small", "medium", "large"]

    def test_update_config(self, backend, fast_config):
        engine = InferenceEngine(backend, fast_config)
        engine.update_config(temperature=0.2)

        assert engine.config.generation_params()["temperature"] == 0.2
