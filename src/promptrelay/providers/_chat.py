"""Parsing for OpenAI-style chat and text completion responses.

Groq and OpenAI share this wire shape. SDK objects are flattened to plain
dicts first so direct and gateway responses go through the same code.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from promptrelay.models import ProviderResponse, TokenUsage
from promptrelay.providers._tools import normalize_chat_tool_calls, render_tool_output
from promptrelay.providers._utils import dumps_raw

if TYPE_CHECKING:
    from promptrelay.config import ToolCallback


def as_plain_data(obj: Any) -> Any:
    """Return a JSON-like view of an SDK response object."""
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump()
    return obj


def _usage(data: Mapping[str, Any]) -> TokenUsage:
    usage = data.get("usage") or {}
    return TokenUsage(
        total=usage.get("total_tokens"),
        prompt=usage.get("prompt_tokens"),
        completion=usage.get("completion_tokens"),
    )


def _choices(data: Any) -> list[Any]:
    if not isinstance(data, Mapping):
        return []
    return data.get("choices") or []


async def parse_chat_completion(
    data: Any,
    callbacks: Mapping[str, ToolCallback] | None = None,
) -> ProviderResponse:
    """Build a ProviderResponse from a chat completion payload."""
    choices = _choices(data)
    if not choices:
        return ProviderResponse(
            error=f"API did not return any choices: {dumps_raw(data)}"
        )

    try:
        message = choices[0]["message"]
        output = message.get("content") or ""
        tool_calls = None
        raw_calls = message.get("tool_calls") or []
        if raw_calls:
            tool_calls = normalize_chat_tool_calls(raw_calls)
            output = await render_tool_output(tool_calls, callbacks)
        return ProviderResponse(
            output=output,
            token_usage=_usage(data),
            tool_calls=tool_calls,
        )
    except Exception as e:
        return ProviderResponse(
            error=f"API response error: {e}: {dumps_raw(data)}"
        )


def parse_text_completion(data: Any) -> ProviderResponse:
    """Build a ProviderResponse from a legacy text completion payload."""
    choices = _choices(data)
    if not choices:
        return ProviderResponse(
            error=f"API did not return any choices: {dumps_raw(data)}"
        )

    try:
        return ProviderResponse(output=choices[0]["text"], token_usage=_usage(data))
    except Exception as e:
        return ProviderResponse(
            error=f"API response error: {e}: {dumps_raw(data)}"
        )
