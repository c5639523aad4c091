"""Resolve ``"<vendor>:<model>"`` provider paths to adapter instances."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from promptrelay.config import GoogleConfig, GroqConfig, OpenAIConfig, _BaseConfig
from promptrelay.errors import ConfigurationError
from promptrelay.providers.echo import EchoProvider
from promptrelay.providers.google import GoogleChatProvider
from promptrelay.providers.groq import GroqProvider
from promptrelay.providers.openai import OpenAIProvider

if TYPE_CHECKING:
    from promptrelay.cache import CacheStore
    from promptrelay.config import EnvOverrides
    from promptrelay.providers.base import ApiProvider

_C = TypeVar("_C", bound=_BaseConfig)

_SUPPORTED_HINT = (
    "Supported paths: 'echo', 'google:<model>', 'palm:<model>', 'groq:<model>', "
    "'openai:<model>', 'openai:chat:<model>', 'openai:completion:<model>'"
)


def _coerce_config(
    cls: type[_C], config: _BaseConfig | Mapping[str, Any] | None
) -> _C:
    if config is None or isinstance(config, Mapping):
        return cls.from_mapping(config)
    if isinstance(config, cls):
        return config
    raise ConfigurationError(
        f"Expected {cls.__name__} or a mapping, got {type(config).__name__}",
    )


def load_provider(
    path: str,
    *,
    config: _BaseConfig | Mapping[str, Any] | None = None,
    id: str | None = None,  # noqa: A002
    env: EnvOverrides | None = None,
    cache: CacheStore | None = None,
) -> ApiProvider:
    """Build the adapter named by *path*.

    Example:
        provider = load_provider("google:gemini-pro", config={"temperature": 0})
        response = await provider.call_api("Say hello")
    """
    if path == "echo":
        return EchoProvider(id=id)

    vendor, sep, rest = path.partition(":")
    if not sep or not rest:
        raise ConfigurationError(f"Unknown provider: {path!r}", hint=_SUPPORTED_HINT)

    if vendor in ("google", "palm"):
        return GoogleChatProvider(
            rest,
            config=_coerce_config(GoogleConfig, config),
            id=id or (path if vendor == "palm" else None),
            env=env,
            cache=cache,
        )

    if vendor == "groq":
        return GroqProvider(
            rest,
            config=_coerce_config(GroqConfig, config),
            id=id,
            env=env,
            cache=cache,
        )

    if vendor == "openai":
        kind, sep, model_name = rest.partition(":")
        endpoint = None
        if sep and kind in ("chat", "completion"):
            endpoint = kind
        else:
            model_name = rest
        if not model_name:
            raise ConfigurationError(
                f"Missing model name in provider path: {path!r}", hint=_SUPPORTED_HINT
            )
        return OpenAIProvider(
            model_name,
            config=_coerce_config(OpenAIConfig, config),
            id=id,
            env=env,
            cache=cache,
            endpoint=endpoint,
        )

    raise ConfigurationError(f"Unknown provider: {path!r}", hint=_SUPPORTED_HINT)
