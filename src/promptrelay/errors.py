"""Exception hierarchy for promptrelay.

Adapters never let these escape ``call_api``; they are converted into error
results at that boundary. Construction-time problems (bad config values,
unknown provider paths) do raise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class PromptRelayError(Exception):
    """Base exception for all promptrelay errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(PromptRelayError):
    """Configuration validation or resolution failed."""


class MissingApiKeyError(ConfigurationError):
    """No API key could be resolved for a vendor."""


class PromptFormatError(PromptRelayError):
    """A structured chat prompt could not be parsed."""


class APIError(PromptRelayError):
    """Vendor API call failed."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.provider = provider


class GatewayError(PromptRelayError):
    """Gateway delegation failed; callers fall back to the direct path."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its cause/context chain, visiting each exception once."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
