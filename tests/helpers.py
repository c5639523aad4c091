"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: fake gateways and fake SDK clients
shared by the provider suites.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from promptrelay.gateway import GatewayModelRequest, GatewayRequest


@dataclass
class FakeGatewayModel:
    """Gateway model that records bodies and splits them into config/messages."""

    vendor: str
    model_name: str
    api_key: str | None
    bodies: list[dict[str, Any]] = field(default_factory=list)

    def transform_model_request(self, body: dict[str, Any]) -> GatewayModelRequest:
        self.bodies.append(body)
        messages = body.get("contents") or body.get("messages") or []
        config = {
            k: v for k, v in body.items() if k not in ("contents", "messages", "tools")
        }
        return GatewayModelRequest(
            config=config, messages=messages, tools=body.get("tools")
        )


@dataclass
class FakeGateway:
    """Gateway double returning a scripted reply or raising a scripted error."""

    models: dict[str, list[str]] = field(default_factory=dict)
    reply: Any = None
    error: BaseException | None = None
    requests: list[GatewayRequest] = field(default_factory=list)
    chat_models: list[FakeGatewayModel] = field(default_factory=list)

    def chat_model_literals(self, vendor: str) -> list[str]:
        return self.models.get(vendor, [])

    def chat_model(
        self, vendor: str, *, model_name: str, api_key: str | None
    ) -> FakeGatewayModel:
        model = FakeGatewayModel(vendor, model_name, api_key)
        self.chat_models.append(model)
        return model

    async def complete_chat(self, request: GatewayRequest) -> Any:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


def gateway_reply(data: Any, *, cached: bool = False) -> dict[str, Any]:
    """Wrap vendor-native *data* the way a gateway reply carries it."""
    return {"provider": {"response": {"data": data}}, "cached": cached}


def fake_sdk_client(
    *,
    chat: Any = None,
    completion: Any = None,
    error: BaseException | None = None,
) -> MagicMock:
    """Build a MagicMock shaped like AsyncOpenAI/AsyncGroq.

    ``chat.completions.create`` and ``completions.create`` are AsyncMocks that
    return the given payloads or raise *error*.
    """
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=chat, side_effect=error)
    client.completions.create = AsyncMock(return_value=completion, side_effect=error)
    client.close = AsyncMock()
    return client


def chat_completion(
    content: str | None = "hello",
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    usage: dict[str, int] | None = None,
) -> dict[str, Any]:
    """A minimal chat completion payload."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    payload: dict[str, Any] = {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }
    if usage is not None:
        payload["usage"] = usage
    return payload


class SdkObject:
    """Stand-in for a pydantic SDK response exposing ``model_dump``."""

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def model_dump(self) -> dict[str, Any]:
        return self._data
