"""Configuration: frozen per-vendor configs and environment fallbacks."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, fields
import os
import re
from typing import Any, TypeVar, Union

from dotenv import load_dotenv

from promptrelay.errors import ConfigurationError

load_dotenv()

#: Upper bound on a single vendor call, in seconds.
DEFAULT_REQUEST_TIMEOUT_S = 300.0

EnvOverrides = Mapping[str, str]
ToolCallback = Callable[[str], Union[Awaitable[Any], Any]]

_C = TypeVar("_C", bound="_BaseConfig")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


def resolve_env(
    names: Sequence[str], overrides: EnvOverrides | None = None
) -> str | None:
    """Return the first non-empty value among *names*.

    Explicit overrides are searched before the process environment, which is
    read at call time rather than captured at construction.
    """
    if overrides:
        for name in names:
            value = overrides.get(name)
            if value:
                return value
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", key).lower()


@dataclass(frozen=True)
class _BaseConfig:
    """Options shared by every vendor config."""

    api_key: str | None = None
    system_prompt: str | None = None
    #: Tool definitions, or a ``file://`` reference to a JSON/YAML file.
    tools: list[dict[str, Any]] | str | None = None
    #: Tool name -> callable receiving the raw argument string.
    function_tool_callbacks: Mapping[str, ToolCallback] | None = None
    timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate shared numeric fields."""
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds how long a single vendor call may take.",
            )
        temperature = getattr(self, "temperature", None)
        if temperature is not None and temperature < 0:
            raise ConfigurationError(
                f"temperature must be ≥ 0, got {temperature}",
            )
        top_p = getattr(self, "top_p", None)
        if top_p is not None and not 0 <= top_p <= 1:
            raise ConfigurationError(f"top_p must be within [0, 1], got {top_p}")

    @classmethod
    def from_mapping(cls: type[_C], mapping: Mapping[str, Any] | None) -> _C:
        """Build a config from a plain mapping with camelCase or snake_case keys."""
        if not mapping:
            return cls()
        allowed = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        unknown: list[str] = []
        for key, value in mapping.items():
            name = _snake_case(key)
            if name not in allowed:
                unknown.append(key)
                continue
            kwargs[name] = value
        if unknown:
            raise ConfigurationError(
                f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}",
                hint=f"Supported options: {', '.join(sorted(allowed))}",
            )
        return cls(**kwargs)

    def __repr__(self) -> str:
        """Return a representation with the API key redacted."""
        shown = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "api_key" and value:
                value = "[REDACTED]"
            shown.append(f"{f.name}={value!r}")
        return f"{type(self).__name__}({', '.join(shown)})"

    __str__ = __repr__


@dataclass(frozen=True, repr=False)
class GoogleConfig(_BaseConfig):
    """Google Generative Language API options."""

    api_host: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    safety_settings: list[dict[str, Any]] | None = None
    max_output_tokens: int | None = None
    #: Merged over the individual sampling fields (Gemini only).
    generation_config: dict[str, Any] | None = None
    #: Passed through as ``toolConfig`` (Gemini only).
    tool_config: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate Google-specific limits."""
        super().__post_init__()
        if self.top_k is not None and self.top_k < 1:
            raise ConfigurationError(f"top_k must be ≥ 1, got {self.top_k}")
        if self.max_output_tokens is not None and self.max_output_tokens < 1:
            raise ConfigurationError(
                f"max_output_tokens must be ≥ 1, got {self.max_output_tokens}"
            )


@dataclass(frozen=True, repr=False)
class GroqConfig(_BaseConfig):
    """Groq chat completion options.

    Unset sampling fields fall back to the Groq defaults used by the adapter:
    temperature 0.7, max_tokens 1000, top_p 1 and tool_choice ``"auto"``.
    """

    #: Overrides the model name sent to the API (the adapter id is unchanged).
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    tool_choice: str | dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate Groq-specific limits."""
        super().__post_init__()
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ConfigurationError(f"max_tokens must be ≥ 1, got {self.max_tokens}")


@dataclass(frozen=True, repr=False)
class OpenAIConfig(_BaseConfig):
    """OpenAI chat and legacy completion options."""

    api_host: str | None = None
    api_base_url: str | None = None
    organization: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None
    seed: int | None = None
    response_format: dict[str, Any] | None = None
    tool_choice: str | dict[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate OpenAI-specific limits."""
        super().__post_init__()
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ConfigurationError(f"max_tokens must be ≥ 1, got {self.max_tokens}")
