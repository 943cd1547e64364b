import asyncio
import json

import httpx
import pytest

from fakes import ScriptedLLMClient, build_understanding
from xeyla.infra.llm import (
    ChatCompletionAPIError,
    ChatCompletionClient,
    LLMAPIError,
    parse_json_payload,
    strip_code_fence,
)


def test_strip_code_fence_removes_json_fence() -> None:
    assert strip_code_fence("```json\n{\"a\": 1}\n```") == "{\"a\": 1}"
    assert strip_code_fence(None) == ""


def test_parse_json_payload_handles_null_and_noise() -> None:
    assert parse_json_payload("null") is None
    assert parse_json_payload("  ") is None
    assert parse_json_payload(None) is None
    assert parse_json_payload("not json at all") is None
    assert parse_json_payload("Here you go: {\"id\": 3}") == {"id": 3}
    assert parse_json_payload("```json\n[{\"task\": \"a\"}]\n```") == [{"task": "a"}]


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_chat_completion_client_posts_openai_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("{\"domain\": \"finance\"}"))

    client = ChatCompletionClient(
        api_key="secret",
        model="test-model",
        base_url="https://llm.example/v1/",
        transport=httpx.MockTransport(handler),
    )

    result = asyncio.run(
        client.create_chat_completion(
            messages=[{"role": "user", "content": "hi"}],
            temperature=0.1,
        )
    )

    assert result == {"content": "{\"domain\": \"finance\"}"}
    request = seen[0]
    assert str(request.url) == "https://llm.example/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["temperature"] == 0.1
    assert "max_tokens" not in body


def test_chat_completion_client_raises_api_error_on_4xx() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="invalid key")

    client = ChatCompletionClient(api_key="bad", transport=httpx.MockTransport(handler))

    with pytest.raises(ChatCompletionAPIError) as excinfo:
        asyncio.run(client.create_chat_completion(messages=[{"role": "user", "content": "hi"}]))

    assert excinfo.value.status_code == 401
    assert "invalid key" in str(excinfo.value)


def test_chat_completion_client_retries_server_errors() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=_completion("ok"))

    client = ChatCompletionClient(api_key="k", max_retries=1, transport=httpx.MockTransport(handler))

    result = asyncio.run(client.create_chat_completion(messages=[{"role": "user", "content": "hi"}]))

    assert result == {"content": "ok"}
    assert calls["count"] == 2


def test_understanding_returns_none_on_failures() -> None:
    api_error = build_understanding(
        ScriptedLLMClient(classify=LLMAPIError(status_code=500, message="boom"))
    )
    crash = build_understanding(ScriptedLLMClient(classify=RuntimeError("network down")))
    empty = build_understanding(ScriptedLLMClient(classify="   "))
    missing = build_understanding(None)

    instruction = "Role: Strict Intent Classifier."
    assert asyncio.run(api_error.extract(instruction, "hi")) is None
    assert asyncio.run(crash.extract(instruction, "hi")) is None
    assert asyncio.run(empty.extract(instruction, "hi")) is None
    assert asyncio.run(missing.extract(instruction, "hi")) is None
    assert missing.enabled is False


def test_understanding_times_out() -> None:
    class SlowClient:
        api_key = "k"

        async def create_chat_completion(self, **kwargs):
            await asyncio.sleep(1)
            return {"content": "late"}

    from xeyla.core.understanding import LanguageUnderstandingClient

    understanding = LanguageUnderstandingClient(SlowClient(), timeout_seconds=0.01)

    assert asyncio.run(understanding.reply("", "hi")) is None


def test_understanding_uses_temperatures_and_omits_empty_instruction() -> None:
    llm = ScriptedLLMClient(advice="saran", classify="{\"domain\": \"schedule\"}")
    understanding = build_understanding(llm)

    asyncio.run(understanding.extract("Role: Strict Intent Classifier.", "hi"))
    asyncio.run(understanding.reply("", "data"))

    (route_a, messages_a, temp_a), (route_b, messages_b, temp_b) = llm.calls
    assert (route_a, temp_a) == ("classify", 0.1)
    assert messages_a[0]["role"] == "system"
    assert (route_b, temp_b) == ("advice", 0.5)
    assert messages_b == [{"role": "user", "content": "data"}]


def test_chat_completion_client_retries_connection_errors() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_completion("ok"))

    client = ChatCompletionClient(api_key="k", max_retries=1, transport=httpx.MockTransport(handler))

    result = asyncio.run(client.create_chat_completion(messages=[{"role": "user", "content": "hi"}]))

    assert result == {"content": "ok"}
    assert calls["count"] == 2


def test_chat_completion_client_does_not_retry_client_errors() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(401, text="invalid key")

    client = ChatCompletionClient(api_key="bad", max_retries=3, transport=httpx.MockTransport(handler))

    with pytest.raises(ChatCompletionAPIError):
        asyncio.run(client.create_chat_completion(messages=[{"role": "user", "content": "hi"}]))

    assert calls["count"] == 1


def test_chat_completion_client_reports_timeouts_after_retries() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ReadTimeout("slow", request=request)

    client = ChatCompletionClient(api_key="k", max_retries=1, transport=httpx.MockTransport(handler))

    with pytest.raises(RuntimeError, match="timed out"):
        asyncio.run(client.create_chat_completion(messages=[{"role": "user", "content": "hi"}]))

    assert calls["count"] == 2
