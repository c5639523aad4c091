"""Groq provider implementation."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import TYPE_CHECKING, Any

from promptrelay.cache import (
    get_cached_response,
    make_cache_key,
    mark_cached,
    store_response,
)
from promptrelay.config import GroqConfig, resolve_env
from promptrelay.errors import (
    APIError,
    GatewayError,
    MissingApiKeyError,
    PromptRelayError,
)
from promptrelay.gateway import complete_via_gateway
from promptrelay.models import ProviderResponse
from promptrelay.prompts import maybe_load_from_external_file, parse_chat_prompt
from promptrelay.providers._chat import as_plain_data, parse_chat_completion
from promptrelay.providers._errors import api_call_error
from promptrelay.providers._utils import dumps_raw

if TYPE_CHECKING:
    from collections.abc import Mapping

    from promptrelay.cache import CacheStore
    from promptrelay.config import EnvOverrides, ToolCallback
    from promptrelay.models import CallApiContext, CallApiOptions

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

_API_KEY_ENV_VARS = ("GROQ_API_KEY",)
_MISSING_KEY_ERROR = (
    "Groq API key is not set. Set the GROQ_API_KEY environment variable "
    "or add `api_key` to the provider config."
)
_MAX_RETRIES = 2


class GroqProvider:
    """Groq chat completions provider."""

    def __init__(
        self,
        model_name: str,
        *,
        config: GroqConfig | None = None,
        id: str | None = None,  # noqa: A002
        env: EnvOverrides | None = None,
        cache: CacheStore | None = None,
    ) -> None:
        """Create a provider for *model_name*."""
        self.model_name = model_name
        self.config = config or GroqConfig()
        self.env = env
        self.cache = cache
        self._id = id
        self._client: Any = None
        self._client_key: str | None = None

    def id(self) -> str:
        """Return the provider identity."""
        return self._id or f"groq:{self.model_name}"

    def __str__(self) -> str:
        return f"[Groq Provider {self.model_name}]"

    def get_api_key(self) -> str | None:
        """Resolve the API key: config, env overrides, then process env."""
        return self.config.api_key or resolve_env(_API_KEY_ENV_VARS, self.env)

    def _require_api_key(self) -> str:
        api_key = self.get_api_key()
        if not api_key:
            raise MissingApiKeyError(_MISSING_KEY_ERROR)
        return api_key

    def _get_client(self, api_key: str) -> Any:
        """Lazily initialize and return the Groq client."""
        if self._client is None or self._client_key != api_key:
            try:
                from groq import AsyncGroq
            except ImportError as e:
                raise APIError(
                    "groq package not installed",
                    hint="pip install groq",
                ) from e
            self._client = AsyncGroq(
                api_key=api_key,
                max_retries=_MAX_RETRIES,
                timeout=self.config.timeout_s,
            )
            self._client_key = api_key
        return self._client

    def build_params(self, prompt: str) -> dict[str, Any]:
        """Build the chat completion request."""
        cfg = self.config
        messages = [
            {"role": "system", "content": cfg.system_prompt or DEFAULT_SYSTEM_PROMPT},
            *parse_chat_prompt(prompt, [{"role": "user", "content": prompt}]),
        ]
        params: dict[str, Any] = {
            "messages": messages,
            "model": cfg.model or self.model_name,
            "temperature": 0.7 if cfg.temperature is None else cfg.temperature,
            "max_tokens": 1000 if cfg.max_tokens is None else cfg.max_tokens,
            "top_p": 1 if cfg.top_p is None else cfg.top_p,
        }
        tools = maybe_load_from_external_file(cfg.tools)
        if tools:
            params["tools"] = tools
            params["tool_choice"] = cfg.tool_choice or "auto"
        return params

    async def call_api(
        self,
        prompt: str,
        context: CallApiContext | None = None,
        options: CallApiOptions | None = None,
    ) -> ProviderResponse:
        """Call the Groq API; never raises."""
        try:
            api_key = self._require_api_key()
            params = self.build_params(prompt)
        except PromptRelayError as e:
            return ProviderResponse(error=str(e))

        callbacks = self.config.function_tool_callbacks
        gateway = context.gateway if context is not None else None
        gateway_error: str | None = None
        if gateway is not None:
            try:
                result = await complete_via_gateway(
                    gateway,
                    vendor="groq",
                    model_name=self.model_name,
                    api_key=api_key,
                    body=params,
                    enable_cache=self.cache is not None,
                )
            except GatewayError as e:
                logger.warning("Gateway call failed, using direct Groq API: %s", e)
                gateway_error = str(e)
            else:
                response = await parse_chat_completion(
                    as_plain_data(result.data), callbacks
                )
                if result.cached and response.ok:
                    response = mark_cached(response)
                return response

        response = await self._call_direct(params, api_key, options, callbacks)
        if gateway_error is not None:
            response = replace(response, gateway_error=gateway_error)
        return response

    async def _call_direct(
        self,
        params: dict[str, Any],
        api_key: str,
        options: CallApiOptions | None,
        callbacks: Mapping[str, ToolCallback] | None,
    ) -> ProviderResponse:
        cache_key = make_cache_key("groq", params)
        if not (options is not None and options.bust_cache):
            cached = await get_cached_response(self.cache, cache_key)
            if cached is not None:
                logger.debug("Returning cached Groq response for %s", self.id())
                return cached

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Calling Groq API: %s", dumps_raw(params))
        try:
            completion = await self._get_client(api_key).chat.completions.create(
                **params
            )
        except Exception as e:
            logger.error("Groq API call error: %s", e)
            return ProviderResponse(error=api_call_error(e))

        response = await parse_chat_completion(as_plain_data(completion), callbacks)
        await store_response(self.cache, cache_key, response)
        return response

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()
