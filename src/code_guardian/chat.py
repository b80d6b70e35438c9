"""
Chat controller — turns a user message in a Q&A session into one provider
chat call and streams the reply into the session store.
"""

import asyncio
import logging
from typing import Optional

from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.models.session import ChatSession, MessageRole, SessionStatus
from code_guardian.notify import LogNotifier, Notifier
from code_guardian.providers.base import AIProvider
from code_guardian.sessions import SessionStore

logger = logging.getLogger(__name__)

BASE_PERSONA = (
    "You are Code Guardian, a security expert assistant embedded in the editor. "
    "Provide concise, actionable answers about vulnerabilities and secure coding. "
    "Where appropriate, include code samples. Maintain a collaborative tone."
)
FAILURE_REPLY = (
    "I ran into an issue answering that question. "
    "Please check your provider configuration and try again."
)
CANCELLED_REPLY = "Response cancelled."

REPLAYED_ROLES = {MessageRole.USER, MessageRole.ASSISTANT}


class SessionLocks:
    """One asyncio.Lock per session id, so a session never has two provider calls in flight."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    def discard(self, session_id: str) -> None:
        """Drop an idle lock so the registry only holds sessions with work in flight."""
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)


def build_system_prompt(session: ChatSession) -> str:
    issue = session.metadata.get("vulnerability_message")
    if issue:
        return f"{BASE_PERSONA}\nCurrent issue: {issue}"
    return BASE_PERSONA


def build_history(session: ChatSession, exclude_id: Optional[str] = None) -> list[ProviderMessage]:
    """Replay user/assistant turns only; system, tool and agent narration stay local."""
    return [
        ProviderMessage(role=m.role.value, content=m.content)
        for m in session.messages
        if m.role in REPLAYED_ROLES and m.id != exclude_id
    ]


class ChatController:
    def __init__(
        self,
        provider: AIProvider,
        store: SessionStore,
        notifier: Optional[Notifier] = None,
        locks: Optional[SessionLocks] = None,
    ):
        self.provider = provider
        self._store = store
        self._notifier = notifier or LogNotifier()
        self._locks = locks or SessionLocks()

    async def submit(self, session_id: str, text: str) -> None:
        session = self._store.get_session(session_id)
        if session is None:
            self._notifier.error("Chat session not found.")
            return
        if not session.allow_user_input:
            self._notifier.warning("This session is read-only.")
            return

        content = text.strip()
        if not content:
            return

        if self._locks.locked(session_id) or session.status == SessionStatus.RUNNING:
            self._notifier.warning("Still answering the previous message in this session.")
            return

        try:
            async with self._locks.get(session_id):
                await self._exchange(session_id, content)
        finally:
            self._locks.discard(session_id)

    async def _exchange(self, session_id: str, content: str) -> None:
        store = self._store
        store.add_message(session_id, MessageRole.USER, content)
        placeholder = store.add_message(session_id, MessageRole.ASSISTANT, "", pending=True)
        if placeholder is None:
            return
        store.update_session_status(session_id, SessionStatus.RUNNING)

        session = store.get_session(session_id)
        if session is None:
            return
        history = build_history(session, exclude_id=placeholder.id)

        def on_token(fragment: str) -> None:
            store.append_to_message(session_id, placeholder.id, fragment)

        def on_complete(_text: str) -> None:
            store.update_message(session_id, placeholder.id, pending=False)
            store.update_session_status(session_id, SessionStatus.IDLE)

        try:
            await self.provider.chat(
                history,
                ChatRequestOptions(system_prompt=build_system_prompt(session)),
                StreamCallbacks(on_token=on_token, on_complete=on_complete),
            )
        except asyncio.CancelledError:
            store.update_message(session_id, placeholder.id, pending=False,
                                 content=self._partial(session_id, placeholder.id) or CANCELLED_REPLY)
            store.update_session_status(session_id, SessionStatus.CANCELLED)
            raise
        except Exception as e:
            logger.exception("Chat request for session %s failed", session_id)
            store.update_message(session_id, placeholder.id, pending=False, content=FAILURE_REPLY)
            store.update_session_status(session_id, SessionStatus.ERROR)
            self._notifier.error(f"Code Guardian chat failed: {e}")
        finally:
            store.flush()

    def _partial(self, session_id: str, message_id: str) -> str:
        session = self._store.get_session(session_id)
        if session is None:
            return ""
        index = session.find_message(message_id)
        if index == -1:
            return ""
        partial = session.messages[index].content
        return f"{partial}\n\n_{CANCELLED_REPLY}_" if partial else ""
