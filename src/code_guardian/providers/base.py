"""
Provider interface: every backend exposes analyze, generate_fix and chat.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks

ANALYZE_PERSONA = "You are a security expert analyzing code for vulnerabilities. Respond only with JSON array."
FIX_PERSONA = "You are a security expert. Provide only the fixed code without explanation."

CHUNK_SIZE = 20


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE) -> list[str]:
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


def replay(text: str, callbacks: Optional[StreamCallbacks]) -> str:
    """Deliver an already complete text through the callbacks in fragments."""
    if callbacks is None:
        return text
    callbacks.start()
    if callbacks.on_token:
        for fragment in chunk_text(text) or [""]:
            callbacks.token(fragment)
    callbacks.complete(text)
    return text


class AIProvider(ABC):
    name: str

    @abstractmethod
    async def analyze(self, prompt: str) -> str:
        """Run a vulnerability analysis prompt; the reply is a JSON array."""

    @abstractmethod
    async def generate_fix(self, prompt: str) -> str:
        """Ask for fixed code only."""

    @abstractmethod
    async def chat(
        self,
        messages: Sequence[ProviderMessage],
        options: Optional[ChatRequestOptions] = None,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> str:
        """Conversational completion.

        When callbacks carry on_token, fragments are delivered as they become
        available; the return value is always the full text.
        """

    async def close(self) -> None:
        pass
