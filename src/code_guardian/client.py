"""
AsyncCodeGuardian / CodeGuardian, the composition root.

One store, one provider, one chat controller and one fix agent per instance;
presentation layers talk to this object only.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from code_guardian.chat import ChatController, SessionLocks
from code_guardian.config import Settings, load_settings
from code_guardian.documents import TextDocument
from code_guardian.errors import SessionError
from code_guardian.fix_agent import ConfirmFix, FixAgent
from code_guardian.models.fix import Diagnostic
from code_guardian.models.session import ChatSession, SessionType, StoreSnapshot
from code_guardian.notify import LogNotifier, Notifier
from code_guardian.providers import AIProvider, create_provider
from code_guardian.sessions import SessionStore
from code_guardian.storage import JsonFileStorage, SessionStorage
from code_guardian.transport.http import HttpClient

logger = logging.getLogger(__name__)


class AsyncCodeGuardian:
    """Async runtime (primary)."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[SessionStorage] = None,
        provider: Optional[AIProvider] = None,
        notifier: Optional[Notifier] = None,
        confirm: Optional[ConfirmFix] = None,
    ):
        self.settings = settings or load_settings()
        self.notifier = notifier or LogNotifier()
        self.store = SessionStore(storage or JsonFileStorage(self.settings.sessions_file()))
        self.provider = provider or self._build_provider(self.settings)
        self._locks = SessionLocks()
        self._tasks: dict[str, asyncio.Task] = {}
        self.chat = ChatController(self.provider, self.store, self.notifier, self._locks)
        self.fix_agent = FixAgent(
            self.provider,
            self.store,
            confirm=confirm,
            max_attempts=self.settings.max_fix_attempts,
            context_padding=self.settings.context_padding,
            notifier=self.notifier,
        )

    @staticmethod
    def _build_provider(settings: Settings) -> AIProvider:
        return create_provider(
            settings.provider,
            api_key=settings.api_key,
            model=settings.model or "",
            http=HttpClient(timeout=settings.timeout) if settings.provider != "local" else None,
        )

    # -- state -----------------------------------------------------------

    def state(self) -> StoreSnapshot:
        return self.store.get_state()

    def subscribe(self, observer: Callable[[StoreSnapshot], None]) -> Callable[[], None]:
        """Receive a full snapshot after every store mutation. Returns a cleanup function."""
        return self.store.subscribe(observer)

    def new_session(self, title: Optional[str] = None) -> ChatSession:
        return self.store.create(SessionType.QA, title)

    def select_session(self, session_id: Optional[str]) -> bool:
        return self.store.set_active(session_id)

    def delete_session(self, session_id: str) -> None:
        self.cancel(session_id)
        self.store.delete(session_id)
        self._locks.discard(session_id)

    def rename_session(self, session_id: str, title: str) -> None:
        self.store.rename(session_id, title)

    # -- work ------------------------------------------------------------

    async def send_message(self, session_id: str, text: str) -> None:
        await self._track(session_id, self.chat.submit(session_id, text))

    async def run_fix(self, document: TextDocument, diagnostic: Diagnostic) -> str:
        """Start a fix session for a diagnostic and run it to a terminal status."""
        sid = self.fix_agent.open_session(document, diagnostic)
        await self._track(sid, self.fix_agent.execute(sid, document, diagnostic))
        return sid

    async def _track(self, session_id: str, coro: Any) -> Any:
        task = asyncio.ensure_future(coro)
        self._tasks[session_id] = task
        try:
            return await task
        finally:
            if self._tasks.get(session_id) is task:
                del self._tasks[session_id]

    def cancel(self, session_id: str) -> bool:
        """Cooperatively cancel the in-flight chat or fix run of a session."""
        task = self._tasks.get(session_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def in_flight(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    async def dispatch(self, intent: dict[str, Any]) -> Optional[StoreSnapshot]:
        """Handle one intent posted by a presentation adapter (webview-style dicts)."""
        kind = intent.get("type")
        session_id = intent.get("sessionId") or intent.get("session_id")
        if kind in ("ready", "requestState"):
            return self.state()
        if kind == "newSession":
            self.new_session(intent.get("title"))
        elif kind == "selectSession":
            self.select_session(session_id)
        elif kind == "deleteSession" and session_id:
            self.delete_session(session_id)
        elif kind == "renameSession" and session_id:
            self.rename_session(session_id, str(intent.get("title") or ""))
        elif kind == "sendMessage":
            content = intent.get("content", intent.get("text"))
            if not session_id or not isinstance(content, str):
                return None
            await self.send_message(session_id, content)
        elif kind == "cancel" and session_id:
            self.cancel(session_id)
        else:
            raise SessionError(f"Unknown intent: {kind!r}", code="unknown_intent", details={"intent": intent})
        return self.state()

    # -- provider lifecycle ---------------------------------------------

    async def analyze(self, prompt: str) -> str:
        return await self.provider.analyze(prompt)

    async def update_provider(self, provider: str, model: Optional[str], api_key: str) -> None:
        """Rebuild the provider, e.g. after the user rotated the key."""
        old = self.provider
        self.settings = self.settings.model_copy(update={"provider": provider, "model": model, "api_key": api_key})
        self.provider = self._build_provider(self.settings)
        self.chat.provider = self.provider
        self.fix_agent.provider = self.provider
        await old.close()

    async def aclose(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        self.store.flush()
        await self.provider.close()


class CodeGuardian:
    """Sync wrapper around AsyncCodeGuardian. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncCodeGuardian(**kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def store(self) -> SessionStore:
        return self._async.store

    def state(self) -> StoreSnapshot:
        return self._async.state()

    def subscribe(self, observer: Callable[[StoreSnapshot], None]) -> Callable[[], None]:
        return self._async.subscribe(observer)

    def new_session(self, title: Optional[str] = None) -> ChatSession:
        return self._async.new_session(title)

    def select_session(self, session_id: Optional[str]) -> bool:
        return self._async.select_session(session_id)

    def delete_session(self, session_id: str) -> None:
        self._async.delete_session(session_id)

    def rename_session(self, session_id: str, title: str) -> None:
        self._async.rename_session(session_id, title)

    def send_message(self, session_id: str, text: str) -> None:
        self._run(self._async.send_message(session_id, text))

    def run_fix(self, document: TextDocument, diagnostic: Diagnostic) -> str:
        return self._run(self._async.run_fix(document, diagnostic))

    def analyze(self, prompt: str) -> str:
        return self._run(self._async.analyze(prompt))

    def close(self) -> None:
        self._run(self._async.aclose())
        self._loop.close()
