"""Provider protocol: the uniform "prompt in, text out" surface."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from promptrelay.models import CallApiContext, CallApiOptions, ProviderResponse


@runtime_checkable
class ApiProvider(Protocol):
    """Minimal provider protocol: identify and call."""

    def id(self) -> str:
        """Stable ``"<vendor>:<model>"`` identity."""
        ...

    async def call_api(
        self,
        prompt: str,
        context: CallApiContext | None = None,
        options: CallApiOptions | None = None,
    ) -> ProviderResponse:
        """Run *prompt*; failures come back as ``ProviderResponse.error``."""
        ...
