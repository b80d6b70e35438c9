"""
Session models — persisted chat sessions and their messages.
"""

import time
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class SessionType(str, Enum):
    QA = "qa"
    FIX = "fix"


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    AGENT = "agent"


class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str = ""
    created_at: int = Field(default_factory=now_ms, validation_alias=AliasChoices("created_at", "createdAt"))
    pending: bool = False
    metadata: Optional[dict[str, Any]] = None


class ChatSession(BaseModel):
    id: str = Field(default_factory=new_id)
    type: SessionType
    title: str = ""
    created_at: int = Field(default_factory=now_ms, validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: int = Field(default_factory=now_ms, validation_alias=AliasChoices("updated_at", "updatedAt"))
    allow_user_input: bool = Field(
        default=False, validation_alias=AliasChoices("allow_user_input", "allowUserInput"),
    )
    status: SessionStatus = SessionStatus.IDLE
    messages: list[ChatMessage] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        """Backfill fields older stored documents may lack or carry as null."""
        if isinstance(data, dict):
            data = dict(data)
            for key in ("status", "messages", "metadata"):
                if data.get(key) is None:
                    data.pop(key, None)
        return data

    @model_validator(mode="after")
    def _derive_input_flag(self) -> "ChatSession":
        # Only Q&A sessions accept user input, whatever the stored document says.
        self.allow_user_input = self.type == SessionType.QA
        return self

    def find_message(self, message_id: str) -> int:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return -1


class StoreSnapshot(BaseModel):
    """Full store state pushed to observers after every mutation."""
    sessions: list[ChatSession] = Field(default_factory=list)
    active_session_id: Optional[str] = None

    @property
    def active_session(self) -> Optional[ChatSession]:
        for session in self.sessions:
            if session.id == self.active_session_id:
                return session
        return None
