"""
Session store — sole owner of chat sessions and messages.

Every mutation persists the full session list (token appends only mark the
store dirty until flush) and pushes a fresh snapshot to all observers before
returning.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError

from code_guardian.models.session import (
    ChatMessage,
    ChatSession,
    MessageRole,
    SessionStatus,
    SessionType,
    StoreSnapshot,
    now_ms,
)
from code_guardian.storage import SessionStorage

logger = logging.getLogger(__name__)

Observer = Callable[[StoreSnapshot], None]

INTERRUPTED_REPLY = "Response interrupted before it finished."


class SessionStore:
    def __init__(self, storage: SessionStorage):
        self._storage = storage
        self._observers: list[Observer] = []
        self._dirty = False
        self._sessions, stored_active = self._load()
        if stored_active and any(s.id == stored_active for s in self._sessions):
            self._active_id: Optional[str] = stored_active
        else:
            self._active_id = self._sessions[0].id if self._sessions else None

    # -- observers -------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer. Returns a cleanup function."""
        self._observers.append(observer)

        def remove() -> None:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass
        return remove

    def _emit(self) -> None:
        if not self._observers:
            return
        snapshot = self.get_state()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Session observer %r failed", observer)

    # -- reads -----------------------------------------------------------

    def get_state(self) -> StoreSnapshot:
        return StoreSnapshot(
            sessions=[s.model_copy(deep=True) for s in self._sessions],
            active_session_id=self._active_id,
        )

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        session = self._find(session_id)
        return session.model_copy(deep=True) if session else None

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_id

    def active_session(self) -> Optional[ChatSession]:
        return self.get_session(self._active_id) if self._active_id else None

    # -- session operations ---------------------------------------------

    def create(self, type: SessionType, title: Optional[str] = None,
               metadata: Optional[dict[str, Any]] = None) -> ChatSession:
        type = SessionType(type)
        timestamp = now_ms()
        session = ChatSession(
            type=type,
            title=title or self._default_title(type, timestamp),
            created_at=timestamp,
            updated_at=timestamp,
            metadata=dict(metadata or {}),
        )
        self._sessions.insert(0, session)
        self._active_id = session.id
        self._commit()
        return session.model_copy(deep=True)

    def delete(self, session_id: str) -> None:
        session = self._find(session_id)
        if session is None:
            return
        self._sessions.remove(session)
        if self._active_id == session_id:
            self._active_id = self._sessions[0].id if self._sessions else None
        self._commit()

    def set_active(self, session_id: Optional[str]) -> bool:
        if session_id is not None and self._find(session_id) is None:
            return False
        self._active_id = session_id
        self._commit()
        return True

    def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        session = self._find(session_id)
        if session is None:
            return
        session.status = SessionStatus(status)
        session.updated_at = now_ms()
        self._commit()

    def update_session_metadata(self, session_id: str, metadata: dict[str, Any]) -> None:
        session = self._find(session_id)
        if session is None:
            return
        session.metadata = {**session.metadata, **metadata}
        session.updated_at = now_ms()
        self._commit()

    def rename(self, session_id: str, title: str) -> None:
        session = self._find(session_id)
        if session is None:
            return
        title = (title or "").strip()
        if not title:
            return
        session.title = title
        session.updated_at = now_ms()
        self._commit()

    def clear_all(self) -> None:
        self._sessions = []
        self._active_id = None
        self._commit()

    # -- message operations ---------------------------------------------

    def add_message(self, session_id: str, role: MessageRole, content: str = "", pending: bool = False,
                    metadata: Optional[dict[str, Any]] = None) -> Optional[ChatMessage]:
        session = self._find(session_id)
        if session is None:
            return None
        message = ChatMessage(role=MessageRole(role), content=content, pending=pending, metadata=metadata)
        session.messages = [*session.messages, message]
        session.updated_at = now_ms()
        self._commit()
        return message.model_copy(deep=True)

    def update_message(self, session_id: str, message_id: str, *, content: Optional[str] = None,
                       pending: Optional[bool] = None,
                       metadata: Optional[dict[str, Any]] = None) -> Optional[ChatMessage]:
        updates: dict[str, Any] = {}
        if content is not None:
            updates["content"] = content
        if pending is not None:
            updates["pending"] = pending
        if metadata is not None:
            updates["metadata"] = metadata
        return self._replace_message(session_id, message_id, updates, persist=True)

    def append_to_message(self, session_id: str, message_id: str, fragment: str) -> Optional[ChatMessage]:
        """Hot path for streamed tokens: notifies but defers persistence."""
        session = self._find(session_id)
        if session is None:
            return None
        index = session.find_message(message_id)
        if index == -1:
            return None
        content = session.messages[index].content + fragment
        return self._replace_message(session_id, message_id, {"content": content}, persist=False)

    def _replace_message(self, session_id: str, message_id: str, updates: dict[str, Any],
                         persist: bool) -> Optional[ChatMessage]:
        session = self._find(session_id)
        if session is None:
            return None
        index = session.find_message(message_id)
        if index == -1:
            return None
        updated = session.messages[index].model_copy(update=updates)
        session.messages = [*session.messages[:index], updated, *session.messages[index + 1:]]
        session.updated_at = now_ms()
        if persist:
            self._commit()
        else:
            self._dirty = True
            self._emit()
        return updated.model_copy(deep=True)

    # -- persistence -----------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def flush(self) -> None:
        """Write out appends that have only been applied in memory."""
        if self._dirty:
            self._persist()

    def _commit(self) -> None:
        self._persist()
        self._emit()

    def _persist(self) -> None:
        self._storage.save({
            "sessions": [s.model_dump(mode="json") for s in self._sessions],
            "active_session_id": self._active_id,
        })
        self._dirty = False

    def _load(self) -> tuple[list[ChatSession], Optional[str]]:
        state = self._storage.load() or {}
        sessions: list[ChatSession] = []
        for raw in state.get("sessions") or []:
            try:
                session = ChatSession.model_validate(raw)
            except ValidationError as e:
                logger.warning("Skipping unreadable stored session: %s", e)
                continue
            sessions.append(self._recover(session))
        return sessions, state.get("active_session_id")

    # -- helpers ---------------------------------------------------------

    @staticmethod
    def _recover(session: ChatSession) -> ChatSession:
        """Close out work a previous process left in flight."""
        stale = [m for m in session.messages if m.pending]
        if session.status != SessionStatus.RUNNING and not stale:
            return session
        logger.warning("Session %s was interrupted; marking it as failed", session.id)
        session.messages = [
            m.model_copy(update={"pending": False, "content": m.content or INTERRUPTED_REPLY}) if m.pending else m
            for m in session.messages
        ]
        if session.status == SessionStatus.RUNNING:
            session.status = SessionStatus.ERROR
        return session

    def _find(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if not session_id:
            return None
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    @staticmethod
    def _default_title(type: SessionType, timestamp: int) -> str:
        label = datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        return f"Security Q&A ({label})" if type == SessionType.QA else f"AI Fix ({label})"
