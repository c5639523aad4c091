"""Shared utilities for provider implementations."""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any


def compact(values: Mapping[str, Any]) -> dict[str, Any]:
    """Drop unset entries so they are omitted from the JSON body."""
    return {k: v for k, v in values.items() if v is not None}


def dumps_raw(data: Any) -> str:
    """Serialize a vendor payload for logs and error messages."""
    return json.dumps(data, default=str)
