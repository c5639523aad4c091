"""Tool-call rendering and callback dispatch shared by the chat adapters."""

from __future__ import annotations

from collections.abc import Mapping
import inspect
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from promptrelay.config import ToolCallback

logger = logging.getLogger(__name__)


def normalize_chat_tool_calls(raw_calls: list[Any]) -> list[dict[str, Any]]:
    """Keep only the id/type/function fields of chat-completion tool calls."""
    return [
        {
            "id": call.get("id"),
            "type": call.get("type", "function"),
            "function": {
                "name": call["function"]["name"],
                "arguments": call["function"].get("arguments", ""),
            },
        }
        for call in raw_calls
    ]


async def render_tool_output(
    tool_calls: list[dict[str, Any]],
    callbacks: Mapping[str, ToolCallback] | None,
) -> str:
    """Serialize *tool_calls* and append results of any registered callbacks.

    Each call must carry ``function.name`` and ``function.arguments`` (a JSON
    string). Callbacks may be plain or async callables.
    """
    output = json.dumps(tool_calls)
    if not callbacks:
        return output

    for call in tool_calls:
        function = call.get("function") or {}
        name = function.get("name")
        callback = callbacks.get(name) if name else None
        if callback is None:
            continue
        logger.debug("Invoking tool callback %s", name)
        result = callback(function.get("arguments", ""))
        if inspect.isawaitable(result):
            result = await result
        output += f"\n\n[Function Result: {result}]"
    return output
