"""Google provider characterization tests.

Requests go through ``pytest-httpx`` so the exact JSON bodies and URLs sent
to the Generative Language API are pinned without network access.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import pytest

from promptrelay.cache import MemoryCacheStore
from promptrelay.config import GoogleConfig
from promptrelay.models import CallApiContext, CallApiOptions
from promptrelay.providers.google import DEFAULT_API_HOST, GoogleChatProvider
from tests.helpers import FakeGateway, gateway_reply

pytestmark = pytest.mark.contract

GEMINI_URL = (
    f"https://{DEFAULT_API_HOST}/v1beta/models/gemini-pro:generateContent?key=test-key"
)
BISON_URL = (
    f"https://{DEFAULT_API_HOST}/v1beta3/models/chat-bison-001:generateMessage"
    "?key=test-key"
)


def _gemini(config: GoogleConfig | None = None, **kwargs: Any) -> GoogleChatProvider:
    return GoogleChatProvider(
        "gemini-pro", config=config or GoogleConfig(api_key="test-key"), **kwargs
    )


def _gemini_reply(text: str = "hello", **extra: Any) -> dict[str, Any]:
    return {
        "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}],
        **extra,
    }


def _sent_body(httpx_mock: Any) -> dict[str, Any]:
    return json.loads(httpx_mock.get_request().content)


# =============================================================================
# Identity and resolution
# =============================================================================


def test_id_and_str() -> None:
    provider = _gemini()
    assert provider.id() == "google:gemini-pro"
    assert str(provider) == "[Google AI Studio Provider gemini-pro]"
    assert GoogleChatProvider("gemini-pro", id="custom").id() == "custom"


def test_unknown_model_is_accepted_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="promptrelay.providers.google"):
        provider = GoogleChatProvider("gemini-9-ultra")
    assert provider.model_name == "gemini-9-ultra"
    assert "Using unknown Google chat model: gemini-9-ultra" in caplog.text


def test_api_key_resolution_order(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PALM_API_KEY", "process-palm")
    provider = GoogleChatProvider("gemini-pro")
    assert provider.get_api_key() == "process-palm"

    monkeypatch.setenv("GOOGLE_API_KEY", "process-google")
    assert provider.get_api_key() == "process-google"

    overridden = GoogleChatProvider("gemini-pro", env={"PALM_API_KEY": "override"})
    assert overridden.get_api_key() == "override"

    explicit = GoogleChatProvider(
        "gemini-pro",
        config=GoogleConfig(api_key="explicit"),
        env={"GOOGLE_API_KEY": "override"},
    )
    assert explicit.get_api_key() == "explicit"


def test_api_host_resolution(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _gemini().get_api_host() == DEFAULT_API_HOST

    monkeypatch.setenv("PALM_API_HOST", "palm.example.com")
    assert _gemini().get_api_host() == "palm.example.com"

    monkeypatch.setenv("GOOGLE_API_HOST", "google.example.com")
    assert _gemini().get_api_host() == "google.example.com"

    configured = _gemini(GoogleConfig(api_key="test-key", api_host="cfg.example.com"))
    assert configured.get_api_host() == "cfg.example.com"


@pytest.mark.asyncio
async def test_missing_api_key_returns_error_without_network(httpx_mock: Any) -> None:
    result = await GoogleChatProvider("gemini-pro").call_api("hi")

    assert result.output is None
    assert result.error is not None
    assert "API key is not set" in result.error
    assert httpx_mock.get_requests() == []


# =============================================================================
# Gemini generateContent
# =============================================================================


@pytest.mark.asyncio
async def test_gemini_success_returns_output(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply("hello"))

    result = await _gemini().call_api("Say hello")

    assert result.output == "hello"
    assert result.error is None
    assert _sent_body(httpx_mock)["contents"] == [{"parts": [{"text": "Say hello"}]}]


@pytest.mark.asyncio
async def test_gemini_body_characterizes_config_shape(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply())
    config = GoogleConfig(
        api_key="test-key",
        temperature=0.2,
        top_p=0.9,
        top_k=40,
        stop_sequences=["END"],
        max_output_tokens=64,
        generation_config={"candidateCount": 1},
        safety_settings=[
            {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"}
        ],
        system_prompt="Be brief.",
    )

    await _gemini(config).call_api("Hi")

    assert _sent_body(httpx_mock) == {
        "contents": [{"parts": [{"text": "Hi"}]}],
        "generationConfig": {
            "temperature": 0.2,
            "topP": 0.9,
            "topK": 40,
            "stopSequences": ["END"],
            "maxOutputTokens": 64,
            "candidateCount": 1,
        },
        "safetySettings": [
            {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"}
        ],
        "systemInstruction": {"parts": [{"text": "Be brief."}]},
    }


@pytest.mark.asyncio
async def test_gemini_concatenates_parts_and_maps_usage(httpx_mock: Any) -> None:
    httpx_mock.add_response(
        url=GEMINI_URL,
        json={
            "candidates": [{"content": {"parts": [{"text": "Hel"}, {"text": "lo"}]}}],
            "usageMetadata": {
                "promptTokenCount": 3,
                "candidatesTokenCount": 2,
                "totalTokenCount": 5,
            },
        },
    )

    result = await _gemini().call_api("hi")

    assert result.output == "Hello"
    assert result.token_usage is not None
    assert (result.token_usage.total, result.token_usage.prompt) == (5, 3)
    assert result.token_usage.completion == 2


@pytest.mark.asyncio
async def test_gemini_structured_prompt_is_sent_verbatim(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply())
    turns = [
        {"role": "user", "parts": [{"text": "Hi"}]},
        {"role": "model", "parts": [{"text": "Hello"}]},
        {"role": "user", "parts": [{"text": "Bye"}]},
    ]

    await _gemini().call_api(json.dumps(turns))

    assert _sent_body(httpx_mock)["contents"] == turns


@pytest.mark.asyncio
async def test_gemini_zero_candidates_embeds_raw_response(httpx_mock: Any) -> None:
    raw = {"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}}
    httpx_mock.add_response(url=GEMINI_URL, json=raw)

    result = await _gemini().call_api("hi")

    assert result.output is None
    assert result.error == (
        f"API did not return any candidate responses: {json.dumps(raw)}"
    )


@pytest.mark.asyncio
async def test_gemini_malformed_candidate_is_response_error(httpx_mock: Any) -> None:
    raw = {"candidates": [{"finishReason": "SAFETY"}]}
    httpx_mock.add_response(url=GEMINI_URL, json=raw)

    result = await _gemini().call_api("hi")

    assert result.error is not None
    assert result.error.startswith("API response error: ")
    assert result.error.endswith(json.dumps(raw))


@pytest.mark.asyncio
async def test_gemini_http_error_is_api_call_error(httpx_mock: Any) -> None:
    httpx_mock.add_response(
        url=GEMINI_URL, status_code=400, json={"error": {"message": "bad"}}
    )

    result = await _gemini().call_api("hi")

    assert result.error is not None
    assert result.error.startswith("API call error: 400 Bad Request:")
    assert "bad" in result.error


@pytest.mark.asyncio
async def test_gemini_transport_error_is_api_call_error(httpx_mock: Any) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=GEMINI_URL)

    result = await _gemini().call_api("hi")

    assert result.error == "API call error: connection refused"


@pytest.mark.asyncio
async def test_invalid_json_prompt_is_error_result(httpx_mock: Any) -> None:
    result = await _gemini().call_api("[{not json")

    assert result.error is not None
    assert "not a valid JSON string" in result.error
    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_gemini_function_call_invokes_callback(httpx_mock: Any) -> None:
    httpx_mock.add_response(
        url=GEMINI_URL,
        json={
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {
                                "functionCall": {
                                    "name": "get_weather",
                                    "args": {"city": "Paris"},
                                }
                            }
                        ]
                    }
                }
            ]
        },
    )
    seen: list[str] = []

    async def get_weather(arguments: str) -> str:
        seen.append(arguments)
        return "sunny"

    config = GoogleConfig(
        api_key="test-key",
        tools=[{"functionDeclarations": [{"name": "get_weather"}]}],
        function_tool_callbacks={"get_weather": get_weather},
    )

    result = await _gemini(config).call_api("Weather in Paris?")

    assert seen == ['{"city": "Paris"}']
    assert result.tool_calls == [
        {
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
        }
    ]
    assert result.output == (
        json.dumps(result.tool_calls) + "\n\n[Function Result: sunny]"
    )
    assert _sent_body(httpx_mock)["tools"] == [
        {"functionDeclarations": [{"name": "get_weather"}]}
    ]


# =============================================================================
# Caching
# =============================================================================


@pytest.mark.asyncio
async def test_second_identical_call_is_served_from_cache(httpx_mock: Any) -> None:
    httpx_mock.add_response(
        url=GEMINI_URL,
        json=_gemini_reply(usageMetadata={"totalTokenCount": 7}),
    )
    provider = _gemini(cache=MemoryCacheStore())

    first = await provider.call_api("hi")
    second = await provider.call_api("hi")

    assert len(httpx_mock.get_requests()) == 1
    assert first.cached is False
    assert second.cached is True
    assert second.output == "hello"
    assert second.token_usage is not None
    assert second.token_usage.cached == second.token_usage.total == 7


@pytest.mark.asyncio
async def test_bust_cache_skips_lookup(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply())
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply())
    provider = _gemini(cache=MemoryCacheStore())

    await provider.call_api("hi")
    result = await provider.call_api("hi", options=CallApiOptions(bust_cache=True))

    assert len(httpx_mock.get_requests()) == 2
    assert result.cached is False


@pytest.mark.asyncio
async def test_errors_are_not_cached(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json={"candidates": []})
    cache = MemoryCacheStore()

    result = await _gemini(cache=cache).call_api("hi")

    assert result.error is not None
    assert len(cache) == 0


# =============================================================================
# Legacy generateMessage
# =============================================================================


@pytest.mark.asyncio
async def test_legacy_model_uses_generate_message(httpx_mock: Any) -> None:
    httpx_mock.add_response(
        url=BISON_URL, json={"candidates": [{"author": "1", "content": "hi there"}]}
    )
    provider = GoogleChatProvider(
        "chat-bison-001", config=GoogleConfig(api_key="test-key", temperature=0.5)
    )

    result = await provider.call_api("hello")

    assert provider.is_gemini is False
    assert result.output == "hi there"
    assert _sent_body(httpx_mock) == {
        "prompt": {"messages": [{"content": "hello"}]},
        "temperature": 0.5,
    }


@pytest.mark.asyncio
async def test_legacy_zero_candidates_embeds_raw_response(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=BISON_URL, json={"filters": [{"reason": "OTHER"}]})
    provider = GoogleChatProvider(
        "chat-bison-001", config=GoogleConfig(api_key="test-key")
    )

    result = await provider.call_api("hello")

    assert result.error == (
        'API did not return any candidate responses: {"filters": [{"reason": "OTHER"}]}'
    )


# =============================================================================
# Gateway delegation
# =============================================================================


@pytest.mark.asyncio
async def test_gateway_success_skips_direct_call(httpx_mock: Any) -> None:
    gateway = FakeGateway(
        models={"google": ["gemini-pro"]},
        reply=gateway_reply(_gemini_reply("from gateway")),
    )

    result = await _gemini(cache=MemoryCacheStore()).call_api(
        "Hi", context=CallApiContext(gateway=gateway)
    )

    assert result.output == "from gateway"
    assert result.gateway_error is None
    assert httpx_mock.get_requests() == []
    (request,) = gateway.requests
    assert request.options == {"enable_cache": True}
    assert request.messages == [{"parts": [{"text": "Hi"}], "role": "user"}]
    assert gateway.chat_models[0].api_key == "test-key"


@pytest.mark.asyncio
async def test_gateway_roles_alternate_for_untagged_turns(httpx_mock: Any) -> None:
    gateway = FakeGateway(
        models={"google": ["gemini-pro"]}, reply=gateway_reply(_gemini_reply())
    )
    turns = [{"parts": [{"text": t}]} for t in ("a", "b", "c")]

    await _gemini().call_api(json.dumps(turns), context=CallApiContext(gateway=gateway))

    roles = [m["role"] for m in gateway.requests[0].messages]
    assert roles == ["user", "model", "user"]
    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_gateway_cached_reply_is_marked_cached() -> None:
    gateway = FakeGateway(
        models={"google": ["gemini-pro"]},
        reply=gateway_reply(
            _gemini_reply(usageMetadata={"totalTokenCount": 4}), cached=True
        ),
    )

    result = await _gemini().call_api("hi", context=CallApiContext(gateway=gateway))

    assert result.cached is True
    assert result.token_usage is not None
    assert result.token_usage.cached == 4


@pytest.mark.asyncio
async def test_gateway_failure_falls_back_to_direct_call(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply("direct"))
    gateway = FakeGateway(
        models={"google": ["gemini-pro"]}, error=RuntimeError("gateway down")
    )

    result = await _gemini().call_api("hi", context=CallApiContext(gateway=gateway))

    assert result.output == "direct"
    assert result.error is None
    assert result.gateway_error is not None
    assert "gateway down" in result.gateway_error
    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_gateway_unsupported_model_falls_back(httpx_mock: Any) -> None:
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply("direct"))
    gateway = FakeGateway(models={"google": ["gemini-1.5-pro"]})

    result = await _gemini().call_api("hi", context=CallApiContext(gateway=gateway))

    assert result.output == "direct"
    assert result.gateway_error == "Unsupported gateway google chat model: gemini-pro"
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_gateway_accepts_turns_that_are_not_objects(httpx_mock: Any) -> None:
    gateway = FakeGateway(
        models={"google": ["gemini-pro"]}, reply=gateway_reply(_gemini_reply("ok"))
    )

    result = await _gemini().call_api(
        '["hello"]', context=CallApiContext(gateway=gateway)
    )

    assert result.output == "ok"
    assert gateway.requests[0].messages == ["hello"]
    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_gateway_body_transform_failure_falls_back(
    httpx_mock: Any, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(_contents: Any) -> Any:
        raise AttributeError("'str' object has no attribute 'get'")

    monkeypatch.setattr("promptrelay.providers.google.alternate_roles", broken)
    httpx_mock.add_response(url=GEMINI_URL, json=_gemini_reply("direct"))
    gateway = FakeGateway(models={"google": ["gemini-pro"]})

    result = await _gemini().call_api("hi", context=CallApiContext(gateway=gateway))

    assert result.output == "direct"
    assert result.gateway_error is not None
    assert "has no attribute 'get'" in result.gateway_error
    assert gateway.requests == []
