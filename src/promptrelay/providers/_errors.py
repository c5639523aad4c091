"""Shared provider-side error helpers.

Adapters convert every failure into an error string; these helpers keep that
rendering consistent across SDK and raw-HTTP transports.
"""

from __future__ import annotations

from promptrelay.errors import APIError, _walk_exception_chain


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def describe_error(exc: BaseException) -> str:
    """Render *exc* as ``"<status> <ClassName>: <message>"`` when a status exists.

    APIError already embeds the status in its message, so it is returned as-is.
    """
    if isinstance(exc, APIError):
        return str(exc)
    status_code = extract_status_code(exc)
    message = getattr(exc, "message", None) or str(exc)
    if status_code is None:
        return message or type(exc).__name__
    return f"{status_code} {type(exc).__name__}: {message}"


def api_call_error(exc: BaseException) -> str:
    """Format a transport failure for a ProviderResponse."""
    return f"API call error: {describe_error(exc)}"
