"""Google Generative Language API provider (PaLM messages and Gemini content)."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace
import json
import logging
from typing import TYPE_CHECKING, Any

from promptrelay._http import post_json
from promptrelay.cache import (
    get_cached_response,
    make_cache_key,
    mark_cached,
    store_response,
)
from promptrelay.config import GoogleConfig, resolve_env
from promptrelay.errors import GatewayError, MissingApiKeyError, PromptRelayError
from promptrelay.gateway import alternate_roles, complete_via_gateway
from promptrelay.models import ProviderResponse, TokenUsage
from promptrelay.prompts import maybe_load_from_external_file, parse_chat_prompt
from promptrelay.providers._errors import api_call_error
from promptrelay.providers._tools import render_tool_output
from promptrelay.providers._utils import compact, dumps_raw

if TYPE_CHECKING:
    from promptrelay.cache import CacheStore
    from promptrelay.config import EnvOverrides
    from promptrelay.models import CallApiContext, CallApiOptions

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "generativelanguage.googleapis.com"

_API_KEY_ENV_VARS = ("GOOGLE_API_KEY", "PALM_API_KEY")
_API_HOST_ENV_VARS = ("GOOGLE_API_HOST", "PALM_API_HOST")
_MISSING_KEY_ERROR = (
    "Google API key is not set. Set the GOOGLE_API_KEY environment variable "
    "or add `api_key` to the provider config."
)


def _with_alternating_roles(body: dict[str, Any]) -> dict[str, Any]:
    return {**body, "contents": alternate_roles(body["contents"])}


class GoogleChatProvider:
    """Google AI Studio chat provider.

    Models whose name starts with ``gemini`` use the v1beta ``generateContent``
    endpoint; everything else uses the legacy v1beta3 ``generateMessage`` API.
    """

    CHAT_MODELS: tuple[str, ...] = (
        "chat-bison-001",
        "gemini-pro",
        "gemini-pro-vision",
        "gemini-1.0-pro",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
    )

    def __init__(
        self,
        model_name: str,
        *,
        config: GoogleConfig | None = None,
        id: str | None = None,  # noqa: A002
        env: EnvOverrides | None = None,
        cache: CacheStore | None = None,
    ) -> None:
        """Create a provider for *model_name*; unknown models are only logged."""
        if model_name not in self.CHAT_MODELS:
            logger.warning("Using unknown Google chat model: %s", model_name)
        self.model_name = model_name
        self.config = config or GoogleConfig()
        self.env = env
        self.cache = cache
        self._id = id

    def id(self) -> str:
        """Return the provider identity."""
        return self._id or f"google:{self.model_name}"

    def __str__(self) -> str:
        return f"[Google AI Studio Provider {self.model_name}]"

    @property
    def is_gemini(self) -> bool:
        """Whether the model uses the content-parts API."""
        return self.model_name.startswith("gemini")

    def get_api_host(self) -> str:
        """Resolve the API host: config, env overrides, process env, default."""
        return (
            self.config.api_host
            or resolve_env(_API_HOST_ENV_VARS, self.env)
            or DEFAULT_API_HOST
        )

    def get_api_key(self) -> str | None:
        """Resolve the API key: config, env overrides, then process env."""
        return self.config.api_key or resolve_env(_API_KEY_ENV_VARS, self.env)

    def _require_api_key(self) -> str:
        api_key = self.get_api_key()
        if not api_key:
            raise MissingApiKeyError(_MISSING_KEY_ERROR)
        return api_key

    async def call_api(
        self,
        prompt: str,
        context: CallApiContext | None = None,
        options: CallApiOptions | None = None,
    ) -> ProviderResponse:
        """Call the Google API; never raises."""
        try:
            api_key = self._require_api_key()
            if self.is_gemini:
                return await self._call_gemini(prompt, api_key, context, options)
            return await self._call_messages(prompt, api_key, options)
        except PromptRelayError as e:
            return ProviderResponse(error=str(e))

    # ------------------------------------------------------------------
    # Legacy generateMessage
    # ------------------------------------------------------------------

    def build_message_body(self, prompt: str) -> dict[str, Any]:
        """Build the v1beta3 ``generateMessage`` request body."""
        cfg = self.config
        messages = parse_chat_prompt(prompt, [{"content": prompt}])
        return compact(
            {
                "prompt": {"messages": messages},
                "temperature": cfg.temperature,
                "topP": cfg.top_p,
                "topK": cfg.top_k,
                "safetySettings": cfg.safety_settings,
                "stopSequences": cfg.stop_sequences,
                "maxOutputTokens": cfg.max_output_tokens,
            }
        )

    async def _call_messages(
        self, prompt: str, api_key: str, options: CallApiOptions | None
    ) -> ProviderResponse:
        # https://ai.google.dev/api/rest/v1beta/models/generateMessage
        body = self.build_message_body(prompt)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Calling Google API: %s", dumps_raw(body))
        url = (
            f"https://{self.get_api_host()}/v1beta3/models/"
            f"{self.model_name}:generateMessage"
        )
        return await self._post_cached(url, body, api_key, options, self._parse_message)

    async def _parse_message(self, data: Any) -> ProviderResponse:
        candidates = data.get("candidates") if isinstance(data, Mapping) else None
        if not candidates:
            return ProviderResponse(
                error=(
                    "API did not return any candidate responses: "
                    f"{dumps_raw(data)}"
                )
            )
        try:
            return ProviderResponse(output=candidates[0]["content"])
        except Exception as e:
            return ProviderResponse(
                error=f"API response error: {e}: {dumps_raw(data)}"
            )

    # ------------------------------------------------------------------
    # Gemini generateContent
    # ------------------------------------------------------------------

    def build_content_body(self, prompt: str) -> dict[str, Any]:
        """Build the v1beta ``generateContent`` request body."""
        cfg = self.config
        contents = parse_chat_prompt(prompt, [{"parts": [{"text": prompt}]}])
        generation_config = compact(
            {
                "temperature": cfg.temperature,
                "topP": cfg.top_p,
                "topK": cfg.top_k,
                "stopSequences": cfg.stop_sequences,
                "maxOutputTokens": cfg.max_output_tokens,
                **(cfg.generation_config or {}),
            }
        )
        system_instruction = (
            {"parts": [{"text": cfg.system_prompt}]} if cfg.system_prompt else None
        )
        return compact(
            {
                "contents": contents,
                "generationConfig": generation_config,
                "safetySettings": cfg.safety_settings,
                "systemInstruction": system_instruction,
                "tools": maybe_load_from_external_file(cfg.tools),
                "toolConfig": cfg.tool_config,
            }
        )

    async def _call_gemini(
        self,
        prompt: str,
        api_key: str,
        context: CallApiContext | None,
        options: CallApiOptions | None,
    ) -> ProviderResponse:
        body = self.build_content_body(prompt)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Calling Google API: %s", dumps_raw(body))

        gateway = context.gateway if context is not None else None
        gateway_error: str | None = None
        if gateway is not None:
            try:
                result = await complete_via_gateway(
                    gateway,
                    vendor="google",
                    model_name=self.model_name,
                    api_key=api_key,
                    body=body,
                    enable_cache=self.cache is not None,
                    transform_body=_with_alternating_roles,
                )
            except GatewayError as e:
                logger.warning("Gateway call failed, using direct Google API: %s", e)
                gateway_error = str(e)
            else:
                response = await self._parse_content(result.data)
                if result.cached and response.ok:
                    response = mark_cached(response)
                return response

        # https://ai.google.dev/tutorials/rest_quickstart
        url = (
            f"https://{self.get_api_host()}/v1beta/models/"
            f"{self.model_name}:generateContent"
        )
        response = await self._post_cached(
            url, body, api_key, options, self._parse_content
        )
        if gateway_error is not None:
            response = replace(response, gateway_error=gateway_error)
        return response

    async def _parse_content(self, data: Any) -> ProviderResponse:
        candidates = data.get("candidates") if isinstance(data, Mapping) else None
        if not candidates:
            return ProviderResponse(
                error=(
                    "API did not return any candidate responses: "
                    f"{dumps_raw(data)}"
                )
            )

        try:
            parts = candidates[0]["content"]["parts"]
            usage = data.get("usageMetadata") or {}
            token_usage = TokenUsage(
                total=usage.get("totalTokenCount"),
                prompt=usage.get("promptTokenCount"),
                completion=usage.get("candidatesTokenCount"),
            )
            function_calls = [p["functionCall"] for p in parts if "functionCall" in p]
            if not function_calls:
                output = "".join(p.get("text", "") for p in parts)
                return ProviderResponse(output=output, token_usage=token_usage)

            tool_calls = [
                {
                    "type": "function",
                    "function": {
                        "name": call["name"],
                        "arguments": json.dumps(call.get("args") or {}),
                    },
                }
                for call in function_calls
            ]
            output = await render_tool_output(
                tool_calls, self.config.function_tool_callbacks
            )
            return ProviderResponse(
                output=output, token_usage=token_usage, tool_calls=tool_calls
            )
        except Exception as e:
            return ProviderResponse(
                error=f"API response error: {e}: {dumps_raw(data)}"
            )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post_cached(
        self,
        url: str,
        body: dict[str, Any],
        api_key: str,
        options: CallApiOptions | None,
        parse: Callable[[Any], Awaitable[ProviderResponse]],
    ) -> ProviderResponse:
        # The body has no model field, so the model is part of the key prefix.
        cache_key = make_cache_key(f"google:{self.model_name}", body)
        if not (options is not None and options.bust_cache):
            cached = await get_cached_response(self.cache, cache_key)
            if cached is not None:
                logger.debug("Returning cached Google response for %s", self.id())
                return cached

        try:
            data = await post_json(
                url,
                body,
                timeout_s=self.config.timeout_s,
                params={"key": api_key},
                provider="google",
            )
        except Exception as e:
            logger.error("Google API call error: %s", e)
            return ProviderResponse(error=api_call_error(e))

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Google API response: %s", dumps_raw(data))

        response = await parse(data)
        await store_response(self.cache, cache_key, response)
        return response
