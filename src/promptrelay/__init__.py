"""promptrelay: one "prompt in, text out" call across LLM vendor APIs.

Public API:
    - load_provider(): Build an adapter from a ``"<vendor>:<model>"`` path
    - GoogleChatProvider, GroqProvider, OpenAIProvider, EchoProvider
    - ProviderResponse / TokenUsage: The result of every ``call_api``
    - MemoryCacheStore: Default injectable cache store
"""

from __future__ import annotations

import logging

from promptrelay.cache import CacheStore, MemoryCacheStore
from promptrelay.config import GoogleConfig, GroqConfig, OpenAIConfig
from promptrelay.errors import (
    APIError,
    ConfigurationError,
    GatewayError,
    MissingApiKeyError,
    PromptFormatError,
    PromptRelayError,
)
from promptrelay.gateway import Gateway, GatewayModelRequest, GatewayRequest
from promptrelay.models import (
    CallApiContext,
    CallApiOptions,
    ProviderResponse,
    TokenUsage,
)
from promptrelay.providers import (
    ApiProvider,
    EchoProvider,
    GoogleChatProvider,
    GroqProvider,
    OpenAIProvider,
)
from promptrelay.registry import load_provider

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("promptrelay")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("promptrelay").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "ApiProvider",
    "CacheStore",
    "CallApiContext",
    "CallApiOptions",
    "ConfigurationError",
    "EchoProvider",
    "Gateway",
    "GatewayError",
    "GatewayModelRequest",
    "GatewayRequest",
    "GoogleChatProvider",
    "GoogleConfig",
    "GroqConfig",
    "GroqProvider",
    "MemoryCacheStore",
    "MissingApiKeyError",
    "OpenAIConfig",
    "OpenAIProvider",
    "PromptFormatError",
    "PromptRelayError",
    "ProviderResponse",
    "TokenUsage",
    "load_provider",
]
