"""Thin JSON-over-HTTPS transport shared by the direct vendor paths."""

from __future__ import annotations

from typing import Any

import httpx

from promptrelay.errors import APIError


async def post_json(
    url: str,
    body: dict[str, Any],
    *,
    timeout_s: float,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    provider: str | None = None,
) -> Any:
    """POST *body* as JSON and return the decoded response.

    Non-2xx statuses raise APIError carrying the status code and the
    response text; transport failures propagate as ``httpx`` exceptions.
    """
    request_headers = {"Content-Type": "application/json"}
    if headers:
        request_headers.update(headers)

    async with httpx.AsyncClient(timeout=timeout_s) as client:
        response = await client.post(
            url, json=body, params=params, headers=request_headers
        )

    if response.is_error:
        raise APIError(
            f"{response.status_code} {response.reason_phrase}: {response.text}",
            status_code=response.status_code,
            provider=provider,
        )
    try:
        return response.json()
    except ValueError as e:
        raise APIError(
            f"Invalid JSON in response: {response.text[:200]}",
            status_code=response.status_code,
            provider=provider,
        ) from e
