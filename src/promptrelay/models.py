"""Domain models returned by provider adapters."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from promptrelay.gateway import Gateway


@dataclass(frozen=True)
class TokenUsage:
    """Token counters reported by the vendor.

    ``cached`` echoes ``total`` when the response came from a cache.
    """

    total: int | None = None
    prompt: int | None = None
    completion: int | None = None
    cached: int | None = None


@dataclass(frozen=True)
class ProviderResponse:
    """Result of a single ``call_api``: either ``output`` or ``error`` is set."""

    output: str | None = None
    error: str | None = None
    token_usage: TokenUsage | None = None
    #: Raw tool-call payloads as reported by the vendor.
    tool_calls: list[dict[str, Any]] | None = None
    cached: bool = False
    #: Set when a gateway was supplied but the call fell back to the direct path.
    gateway_error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the call produced output rather than an error."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable form suitable for cache stores."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProviderResponse:
        """Rebuild a response from :meth:`to_dict` output."""
        usage = data.get("token_usage")
        return cls(
            output=data.get("output"),
            error=data.get("error"),
            token_usage=TokenUsage(**usage) if usage else None,
            tool_calls=data.get("tool_calls"),
            cached=bool(data.get("cached", False)),
            gateway_error=data.get("gateway_error"),
        )


@dataclass(frozen=True)
class CallApiContext:
    """Per-call collaborators supplied by the caller."""

    #: Optional gateway; when present the adapter tries it before the direct path.
    gateway: Gateway | None = None


@dataclass(frozen=True)
class CallApiOptions:
    """Per-call flags that do not change the request body."""

    #: Skip the cache lookup (results are still written back).
    bust_cache: bool = False
