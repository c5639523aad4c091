"""OpenAI provider implementation."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import TYPE_CHECKING, Any, Literal

from promptrelay.cache import (
    get_cached_response,
    make_cache_key,
    mark_cached,
    store_response,
)
from promptrelay.config import OpenAIConfig, resolve_env
from promptrelay.errors import (
    APIError,
    GatewayError,
    MissingApiKeyError,
    PromptRelayError,
)
from promptrelay.gateway import complete_via_gateway
from promptrelay.models import ProviderResponse
from promptrelay.prompts import maybe_load_from_external_file, parse_chat_prompt
from promptrelay.providers._chat import (
    as_plain_data,
    parse_chat_completion,
    parse_text_completion,
)
from promptrelay.providers._errors import api_call_error
from promptrelay.providers._utils import compact, dumps_raw

if TYPE_CHECKING:
    from promptrelay.cache import CacheStore
    from promptrelay.config import EnvOverrides
    from promptrelay.models import CallApiContext, CallApiOptions

logger = logging.getLogger(__name__)

Endpoint = Literal["chat", "completion"]

_API_KEY_ENV_VARS = ("OPENAI_API_KEY",)
_BASE_URL_ENV_VARS = ("OPENAI_BASE_URL", "OPENAI_API_BASE_URL")
_API_HOST_ENV_VARS = ("OPENAI_API_HOST",)
_ORGANIZATION_ENV_VARS = ("OPENAI_ORGANIZATION",)
_MISSING_KEY_ERROR = (
    "OpenAI API key is not set. Set the OPENAI_API_KEY environment variable "
    "or add `api_key` to the provider config."
)
_MAX_RETRIES = 2


def is_legacy_completion_model(model_name: str) -> bool:
    """Return True for models served only by the text completions endpoint."""
    return model_name.startswith(("davinci", "babbage")) or "-instruct" in model_name


class OpenAIProvider:
    """OpenAI chat completions provider with a legacy completions branch."""

    CHAT_MODELS: tuple[str, ...] = (
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    )
    COMPLETION_MODELS: tuple[str, ...] = (
        "gpt-3.5-turbo-instruct",
        "davinci-002",
        "babbage-002",
    )

    def __init__(
        self,
        model_name: str,
        *,
        config: OpenAIConfig | None = None,
        id: str | None = None,  # noqa: A002
        env: EnvOverrides | None = None,
        cache: CacheStore | None = None,
        endpoint: Endpoint | None = None,
    ) -> None:
        """Create a provider; *endpoint* defaults to one inferred from the name."""
        self.endpoint: Endpoint = endpoint or (
            "completion" if is_legacy_completion_model(model_name) else "chat"
        )
        known = self.CHAT_MODELS if self.endpoint == "chat" else self.COMPLETION_MODELS
        if model_name not in known:
            logger.warning(
                "Using unknown OpenAI %s model: %s", self.endpoint, model_name
            )
        self.model_name = model_name
        self.config = config or OpenAIConfig()
        self.env = env
        self.cache = cache
        self._id = id
        self._client: Any = None
        self._client_key: str | None = None

    def id(self) -> str:
        """Return the provider identity."""
        return self._id or f"openai:{self.model_name}"

    def __str__(self) -> str:
        return f"[OpenAI Provider {self.model_name}]"

    def get_api_key(self) -> str | None:
        """Resolve the API key: config, env overrides, then process env."""
        return self.config.api_key or resolve_env(_API_KEY_ENV_VARS, self.env)

    def _require_api_key(self) -> str:
        api_key = self.get_api_key()
        if not api_key:
            raise MissingApiKeyError(_MISSING_KEY_ERROR)
        return api_key

    def get_api_base_url(self) -> str | None:
        """Resolve the base URL; None lets the SDK use its default."""
        cfg = self.config
        if cfg.api_base_url:
            return cfg.api_base_url
        if cfg.api_host:
            return f"https://{cfg.api_host}/v1"
        base_url = resolve_env(_BASE_URL_ENV_VARS, self.env)
        if base_url:
            return base_url
        host = resolve_env(_API_HOST_ENV_VARS, self.env)
        return f"https://{host}/v1" if host else None

    def get_organization(self) -> str | None:
        """Resolve the organization id, if any."""
        return self.config.organization or resolve_env(_ORGANIZATION_ENV_VARS, self.env)

    def _get_client(self, api_key: str) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None or self._client_key != api_key:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise APIError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.get_api_base_url(),
                organization=self.get_organization(),
                max_retries=_MAX_RETRIES,
                timeout=self.config.timeout_s,
            )
            self._client_key = api_key
        return self._client

    def build_chat_params(self, prompt: str) -> dict[str, Any]:
        """Build the chat completion request."""
        cfg = self.config
        messages = parse_chat_prompt(prompt, [{"role": "user", "content": prompt}])
        if cfg.system_prompt:
            messages = [{"role": "system", "content": cfg.system_prompt}, *messages]
        tools = maybe_load_from_external_file(cfg.tools)
        return compact(
            {
                "model": self.model_name,
                "messages": messages,
                "temperature": cfg.temperature,
                "max_tokens": cfg.max_tokens,
                "top_p": cfg.top_p,
                "frequency_penalty": cfg.frequency_penalty,
                "presence_penalty": cfg.presence_penalty,
                "stop": cfg.stop,
                "seed": cfg.seed,
                "response_format": cfg.response_format,
                "tools": tools or None,
                "tool_choice": cfg.tool_choice if tools else None,
            }
        )

    def build_completion_params(self, prompt: str) -> dict[str, Any]:
        """Build the legacy text completion request."""
        cfg = self.config
        return compact(
            {
                "model": self.model_name,
                "prompt": prompt,
                "temperature": cfg.temperature,
                "max_tokens": cfg.max_tokens,
                "top_p": cfg.top_p,
                "frequency_penalty": cfg.frequency_penalty,
                "presence_penalty": cfg.presence_penalty,
                "stop": cfg.stop,
                "seed": cfg.seed,
            }
        )

    async def call_api(
        self,
        prompt: str,
        context: CallApiContext | None = None,
        options: CallApiOptions | None = None,
    ) -> ProviderResponse:
        """Call the OpenAI API; never raises."""
        try:
            api_key = self._require_api_key()
            if self.endpoint == "completion":
                params = self.build_completion_params(prompt)
            else:
                params = self.build_chat_params(prompt)
        except PromptRelayError as e:
            return ProviderResponse(error=str(e))

        gateway = context.gateway if context is not None else None
        gateway_error: str | None = None
        if gateway is not None and self.endpoint == "chat":
            try:
                result = await complete_via_gateway(
                    gateway,
                    vendor="openai",
                    model_name=self.model_name,
                    api_key=api_key,
                    body=params,
                    enable_cache=self.cache is not None,
                )
            except GatewayError as e:
                logger.warning("Gateway call failed, using direct OpenAI API: %s", e)
                gateway_error = str(e)
            else:
                response = await self._parse(as_plain_data(result.data))
                if result.cached and response.ok:
                    response = mark_cached(response)
                return response

        response = await self._call_direct(params, api_key, options)
        if gateway_error is not None:
            response = replace(response, gateway_error=gateway_error)
        return response

    async def _parse(self, data: Any) -> ProviderResponse:
        if self.endpoint == "completion":
            return parse_text_completion(data)
        return await parse_chat_completion(data, self.config.function_tool_callbacks)

    async def _call_direct(
        self,
        params: dict[str, Any],
        api_key: str,
        options: CallApiOptions | None,
    ) -> ProviderResponse:
        cache_key = make_cache_key(f"openai:{self.endpoint}", params)
        if not (options is not None and options.bust_cache):
            cached = await get_cached_response(self.cache, cache_key)
            if cached is not None:
                logger.debug("Returning cached OpenAI response for %s", self.id())
                return cached

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Calling OpenAI API: %s", dumps_raw(params))
        try:
            client = self._get_client(api_key)
            if self.endpoint == "completion":
                completion = await client.completions.create(**params)
            else:
                completion = await client.chat.completions.create(**params)
        except Exception as e:
            logger.error("OpenAI API call error: %s", e)
            return ProviderResponse(error=api_call_error(e))

        response = await self._parse(as_plain_data(completion))
        await store_response(self.cache, cache_key, response)
        return response

    async def aclose(self) -> None:
        """Close underlying async client resources."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close()
