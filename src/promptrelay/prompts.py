"""Prompt normalization: flat strings or structured turn lists."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, TypeVar

import yaml

from promptrelay.errors import ConfigurationError, PromptFormatError

T = TypeVar("T")

_FILE_PREFIX = "file://"


def parse_chat_prompt(prompt: str, default: T) -> list[Any] | T:
    """Return the turn list encoded in *prompt*, or *default* for plain text.

    A prompt starting with ``- role:`` is read as YAML; anything else is tried
    as JSON. Only a top-level list counts as a structured prompt, so plain
    text and scalar JSON (``"42"``, ``"true"``) both yield *default*. Text
    that looks like JSON (leading ``{`` or ``[``) but fails to parse raises
    PromptFormatError rather than being sent verbatim.
    """
    trimmed = prompt.strip()
    if trimmed.startswith("- role:"):
        try:
            parsed = yaml.safe_load(prompt)
        except yaml.YAMLError as e:
            raise PromptFormatError(
                f"Chat prompt is not a valid YAML string: {e}\n\n{prompt}"
            ) from e
        if not isinstance(parsed, list):
            raise PromptFormatError(f"Chat prompt YAML must be a list:\n\n{prompt}")
        return parsed

    try:
        parsed = json.loads(prompt)
    except ValueError as e:
        if trimmed.startswith(("{", "[")):
            raise PromptFormatError(
                f"Chat prompt is not a valid JSON string: {e}\n\n{prompt}"
            ) from e
        return default
    if isinstance(parsed, list):
        return parsed
    return default


def maybe_load_from_external_file(value: Any) -> Any:
    """Resolve ``file://`` references to their JSON or YAML contents."""
    if not isinstance(value, str) or not value.startswith(_FILE_PREFIX):
        return value

    path = Path(value[len(_FILE_PREFIX) :])
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Could not read external file: {path}",
            hint="file:// paths are resolved relative to the working directory.",
        ) from e

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(text)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not parse external file {path}: {e}") from e
    return text
