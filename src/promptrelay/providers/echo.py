"""Echo provider for wiring checks without API calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from promptrelay.models import ProviderResponse, TokenUsage

if TYPE_CHECKING:
    from promptrelay.models import CallApiContext, CallApiOptions


class EchoProvider:
    """Return the prompt unchanged.

    Token usage is reported as zero so aggregations stay well-formed.
    """

    def __init__(self, *, id: str | None = None) -> None:  # noqa: A002
        self._id = id

    def id(self) -> str:
        """Return the provider identity."""
        return self._id or "echo"

    def __str__(self) -> str:
        return "[Echo Provider]"

    async def call_api(
        self,
        prompt: str,
        context: CallApiContext | None = None,  # noqa: ARG002
        options: CallApiOptions | None = None,  # noqa: ARG002
    ) -> ProviderResponse:
        """Echo *prompt* back as output."""
        return ProviderResponse(
            output=prompt,
            token_usage=TokenUsage(total=0, prompt=0, completion=0),
        )
