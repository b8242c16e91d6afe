# tests/test_fallback_service.py
"""Tests for the always-available CannedResponseService."""

from unittest.mock import patch

import pytest

from contextual_ai.models import ChatMessage, MessageSender
from contextual_ai.services import CannedResponseService
from contextual_ai.services.fallback import AGENT, APOLOGY, ASK, MODEL_NAME, RESPONSE_TEMPLATES


class TestWorkflowType:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("What is this page about?", ASK),
            ("Help me book a table", AGENT),
            ("Can you assist with checkout", AGENT),
            ("Please do this for me", AGENT),
        ],
    )
    def test_keywords(self, message, expected):
        assert CannedResponseService.workflow_type(message) == expected

    def test_agent_history(self):
        history = [ChatMessage(content="Switching to agent mode", sender=MessageSender.AI)]
        assert CannedResponseService.workflow_type("what now?", history) == AGENT


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_reply_quotes_the_message(self):
        response = await CannedResponseService().send_message("What is this page about?")

        assert response.message == f'{RESPONSE_TEMPLATES[ASK][0]} Regarding "What is this page about?":'
        assert response.model == MODEL_NAME
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_long_messages_are_shortened(self):
        response = await CannedResponseService().send_message("x" * 80)
        assert f'Regarding "{"x" * 50}...":' in response.message

    @pytest.mark.asyncio
    async def test_replies_cycle_through_templates(self):
        service = CannedResponseService()

        first = await service.send_message("hello")
        second = await service.send_message("hello")

        assert first.message != second.message
        assert second.message.startswith(RESPONSE_TEMPLATES[ASK][1])

    @pytest.mark.asyncio
    async def test_never_raises(self):
        service = CannedResponseService()

        with patch.object(CannedResponseService, "workflow_type", side_effect=RuntimeError("boom")):
            response = await service.send_message("hello")

        assert response.message == APOLOGY

    @pytest.mark.asyncio
    async def test_streaming(self):
        chunks = []

        async def on_chunk(chunk):
            chunks.append(chunk)

        response = await CannedResponseService().send_message_stream("Help me please", on_chunk=on_chunk)

        assert "".join(chunks) == response.message
        assert response.message.startswith(RESPONSE_TEMPLATES[AGENT][0])

    @pytest.mark.asyncio
    async def test_always_valid(self):
        service = CannedResponseService()

        assert await service.validate_config() is True
        assert service.get_service_info().name == "Canned Response Service"
