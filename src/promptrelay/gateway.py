"""Gateway delegation: hand a native request body to an injected gateway.

The gateway is an external collaborator that knows each vendor's request
shape, performs transport, and may cache. This module only defines the
protocol it must satisfy and the single call path adapters share.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
import copy
from dataclasses import dataclass, field
import json
import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from promptrelay.errors import GatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayModelRequest:
    """A vendor body after the gateway model's own transform."""

    config: dict[str, Any]
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] | None = None


@dataclass(frozen=True)
class GatewayRequest:
    """Normalized request handed to :meth:`Gateway.complete_chat`."""

    model: Any
    config: dict[str, Any]
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] | None = None
    options: dict[str, Any] = field(default_factory=dict)


class _ResponseEnvelope(BaseModel):
    data: Any


class _ProviderEnvelope(BaseModel):
    response: _ResponseEnvelope


class _GatewayReply(BaseModel):
    """Shape every `complete_chat` reply must have."""

    provider: _ProviderEnvelope
    cached: bool = False


@dataclass(frozen=True)
class GatewayResult:
    """Vendor-native response data extracted from a gateway reply."""

    data: Any
    cached: bool = False


@runtime_checkable
class GatewayChatModel(Protocol):
    """A gateway-side model handle able to normalize one vendor's body."""

    def transform_model_request(self, body: dict[str, Any]) -> GatewayModelRequest:
        """Map a vendor-native body into config/messages/tools."""
        ...


@runtime_checkable
class Gateway(Protocol):
    """Collaborator that completes chats across vendors."""

    def chat_model_literals(self, vendor: str) -> Collection[str]:
        """Model names the gateway supports for *vendor*."""
        ...

    def chat_model(
        self, vendor: str, *, model_name: str, api_key: str | None
    ) -> GatewayChatModel:
        """Return a model handle for *vendor*/*model_name*."""
        ...

    async def complete_chat(self, request: GatewayRequest) -> Mapping[str, Any]:
        """Run the request; reply shaped ``{provider: {response: {data}}, cached}``."""
        ...


def alternate_roles(contents: list[Any]) -> list[Any]:
    """Assign ``user``/``model`` roles to turns that lack one.

    Turns are assumed to alternate starting with ``user``; explicit roles are
    kept and reset the alternation. Turns that are not mappings are passed
    through untouched. The input list is not modified.
    """
    last_role = "model"
    out: list[Any] = []
    for turn in contents:
        if not isinstance(turn, Mapping):
            out.append(turn)
            continue
        role = turn.get("role") or ("user" if last_role == "model" else "model")
        last_role = role
        out.append({**turn, "role": role})
    return out


async def complete_via_gateway(
    gateway: Gateway,
    *,
    vendor: str,
    model_name: str,
    api_key: str | None,
    body: dict[str, Any],
    enable_cache: bool,
    transform_body: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> GatewayResult:
    """Send *body* through *gateway* and return the vendor-native data.

    *transform_body* adapts a copy of the body to the gateway's expectations
    before the model sees it. Every failure, including an unsupported model or
    a failing transform, surfaces as GatewayError so callers have one thing to
    catch before falling back.
    """
    try:
        if model_name not in gateway.chat_model_literals(vendor):
            raise GatewayError(f"Unsupported gateway {vendor} chat model: {model_name}")

        model = gateway.chat_model(vendor, model_name=model_name, api_key=api_key)
        outgoing = copy.deepcopy(body)
        if transform_body is not None:
            outgoing = transform_body(outgoing)
        transformed = model.transform_model_request(outgoing)
        request = GatewayRequest(
            model=model,
            config=transformed.config,
            messages=transformed.messages,
            tools=transformed.tools,
            options={"enable_cache": enable_cache},
        )
        response = await gateway.complete_chat(request)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s chat completion via gateway response: %s",
                vendor,
                json.dumps(response, default=str),
            )
        reply = _GatewayReply.model_validate(response)
        return GatewayResult(data=reply.provider.response.data, cached=reply.cached)
    except GatewayError:
        raise
    except Exception as e:
        raise GatewayError(
            f"Error calling {vendor} chat completion via gateway: {e}"
        ) from e
