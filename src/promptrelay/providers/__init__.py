"""Provider implementations."""

from .base import ApiProvider
from .echo import EchoProvider
from .google import GoogleChatProvider
from .groq import GroqProvider
from .openai import OpenAIProvider

__all__ = [
    "ApiProvider",
    "EchoProvider",
    "GoogleChatProvider",
    "GroqProvider",
    "OpenAIProvider",
]
