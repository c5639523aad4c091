"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and marker
registration. Fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from promptrelay.cache import MemoryCacheStore

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================

_VENDOR_ENV_PREFIXES = ("GOOGLE_", "PALM_", "GROQ_", "OPENAI_")


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean vendor environment for each test.

    Clears GOOGLE_*, PALM_*, GROQ_* and OPENAI_* env vars so keys from the
    developer's shell never leak into adapter resolution.
    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_VENDOR_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Request/response shape characterization per vendor",
        "allow_dotenv: Let python-dotenv read .env files",
        "allow_env_pollution: Keep vendor environment variables",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# =============================================================================
# Shared Fixtures
# =============================================================================

API_KEY = "test-key"


@pytest.fixture
def memory_cache() -> MemoryCacheStore:
    """Fresh in-memory cache store."""
    return MemoryCacheStore()
