"""
Provider wire types: messages, request options and stream callbacks.
"""

from typing import Callable, Optional

from pydantic import BaseModel


class ProviderMessage(BaseModel):
    role: str  # "system" | "user" | "assistant" | "tool"
    content: str
    name: Optional[str] = None

    def to_wire(self) -> dict[str, str]:
        wire = {"role": self.role, "content": self.content}
        if self.name:
            wire["name"] = self.name
        return wire


class ChatRequestOptions(BaseModel):
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class StreamCallbacks:
    """Optional hooks fired around a chat completion.

    Providers call on_start once, on_token for each fragment in arrival order,
    then on_complete with the full text.
    """

    __slots__ = ("on_start", "on_token", "on_complete")

    def __init__(
        self,
        on_start: Optional[Callable[[], None]] = None,
        on_token: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[str], None]] = None,
    ):
        self.on_start = on_start
        self.on_token = on_token
        self.on_complete = on_complete

    def start(self) -> None:
        if self.on_start:
            self.on_start()

    def token(self, fragment: str) -> None:
        if self.on_token:
            self.on_token(fragment)

    def complete(self, text: str) -> None:
        if self.on_complete:
            self.on_complete(text)

    def __repr__(self) -> str:
        return f"StreamCallbacks(streaming={self.on_token is not None})"
