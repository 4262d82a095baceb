"""
Tests for the chat completion service and JSON reply parsing.
"""
import pytest
from types import SimpleNamespace
from chartpilot.core.config import Settings
from chartpilot.services.ai_service import (
    AIServiceError,
    ChatRequest,
    GroqGeminiService,
    chat_json,
    parse_json_content,
    strip_code_fences,
)
from conftest import FakeAIService


def request():
    return ChatRequest.single("sales were 10 and 20", "Return JSON")


@pytest.mark.unit
def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


@pytest.mark.unit
def test_parse_json_content_tolerates_chatter():
    assert parse_json_content('Sure! Here it is: {"chartType": "bar"} Hope this helps.') == {"chartType": "bar"}
    assert parse_json_content('```\n[1, 2]\n```') == [1, 2]


@pytest.mark.unit
@pytest.mark.parametrize("content", ["", "no json here", "{broken"])
def test_parse_json_content_rejects_garbage(content):
    with pytest.raises(AIServiceError):
        parse_json_content(content)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_chat_json_returns_parsed_reply():
    service = FakeAIService([{"rows": [{"x": 1}]}])

    assert await chat_json(service, request(), timeout=1.0) == {"rows": [{"x": 1}]}
    assert service.requests[0].system_prompt == "Return JSON"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_chat_json_timeout_is_service_error():
    service = FakeAIService([{"rows": []}], delay=0.5)

    with pytest.raises(AIServiceError, match="timed out"):
        await chat_json(service, request(), timeout=0.01)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_chat_json_wraps_unexpected_errors():
    service = FakeAIService([ConnectionError("socket closed")])

    with pytest.raises(AIServiceError, match="socket closed"):
        await chat_json(service, request(), timeout=None)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unconfigured_service():
    service = GroqGeminiService(Settings())

    assert service.configured is False
    assert await service.validate_connection() is False
    with pytest.raises(AIServiceError):
        await service.chat(request())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_groq_failure_falls_back_to_gemini():
    async def rate_limited(**kwargs):
        raise RuntimeError("429 rate limit reached")

    async def gemini_reply(prompt, generation_config):
        assert prompt.startswith("Return JSON")
        return SimpleNamespace(text='{"ok": true}')

    service = GroqGeminiService(Settings())
    service._groq_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=rate_limited)))
    service._gemini_model = SimpleNamespace(generate_content_async=gemini_reply)

    response = await service.chat(request())

    assert response.provider == "gemini"
    assert response.content == '{"ok": true}'
