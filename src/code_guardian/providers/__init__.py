"""
Provider selection by configuration tag.
"""

import logging
from typing import Optional

from code_guardian.providers.anthropic import AnthropicProvider
from code_guardian.providers.base import AIProvider, chunk_text
from code_guardian.providers.local import LocalProvider
from code_guardian.providers.openai import OpenAIProvider
from code_guardian.transport.http import HttpClient

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("openai", "anthropic", "local")


def create_provider(name: str, api_key: str = "", model: str = "", http: Optional[HttpClient] = None) -> AIProvider:
    """Build the provider for a configuration tag. Unknown tags fall back to local."""
    if name == "openai":
        return OpenAIProvider(api_key, model, http=http)
    if name == "anthropic":
        return AnthropicProvider(api_key, model, http=http)
    if name != "local":
        logger.warning("Unknown provider %r, using offline local provider", name)
    return LocalProvider()


__all__ = [
    "AIProvider",
    "AnthropicProvider",
    "LocalProvider",
    "OpenAIProvider",
    "PROVIDER_NAMES",
    "chunk_text",
    "create_provider",
]
