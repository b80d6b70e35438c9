"""
Integration tests for code-guardian providers — tests against the real APIs.

Requires environment variables:
  CODE_GUARDIAN_PROVIDER   openai | anthropic
  CODE_GUARDIAN_API_KEY    valid key for that provider
  CODE_GUARDIAN_MODEL      (optional) model identifier

Run: CODE_GUARDIAN_INTEGRATION=1 pytest tests/integration/ -v
"""

import os

import pytest

from code_guardian import AsyncCodeGuardian, Diagnostic, Range, Settings
from code_guardian.documents import InMemoryDocument
from code_guardian.models.chat import ProviderMessage, StreamCallbacks
from code_guardian.models.session import MessageRole, SessionStatus
from code_guardian.storage import MemoryStorage

SKIP = not os.environ.get("CODE_GUARDIAN_INTEGRATION")
PROVIDER = os.environ.get("CODE_GUARDIAN_PROVIDER", "openai")
API_KEY = os.environ.get("CODE_GUARDIAN_API_KEY", "")
MODEL = os.environ.get("CODE_GUARDIAN_MODEL") or None

pytestmark = [pytest.mark.integration, pytest.mark.skipif(SKIP, reason="CODE_GUARDIAN_INTEGRATION not set")]


def make_client(**kwargs) -> AsyncCodeGuardian:
    settings = Settings(provider=PROVIDER, model=MODEL, api_key=API_KEY, max_fix_attempts=2)
    return AsyncCodeGuardian(settings=settings, storage=MemoryStorage(), **kwargs)


class TestChatStreaming:
    @pytest.mark.asyncio
    async def test_tokens_concatenate_to_reply(self):
        client = make_client()
        tokens = []
        text = await client.provider.chat(
            [ProviderMessage(role="user", content="Reply with the single word: pong")],
            callbacks=StreamCallbacks(on_token=tokens.append),
        )
        assert text
        assert "".join(tokens) == text
        await client.aclose()

    @pytest.mark.asyncio
    async def test_session_reply_is_stored(self):
        client = make_client()
        sid = client.new_session().id
        await client.send_message(sid, "Name one OWASP Top 10 category in five words or fewer.")
        session = client.store.get_session(sid)
        assert session.status == SessionStatus.IDLE
        assert session.messages[-1].role == MessageRole.ASSISTANT
        assert session.messages[-1].content
        await client.aclose()


class TestFixLoop:
    @pytest.mark.asyncio
    async def test_fix_reaches_terminal_status(self):
        async def approve_all(_proposal):
            return True

        client = make_client(confirm=approve_all)
        document = InMemoryDocument(
            'import sqlite3\n\ndef find(db, name):\n'
            '    return db.execute("SELECT * FROM users WHERE name = \'" + name + "\'")\n',
            path="users.py",
        )
        sid = await client.run_fix(document, Diagnostic(range=Range.lines(3, 3), message="SQL injection"))
        assert client.store.get_session(sid).status in (SessionStatus.COMPLETED, SessionStatus.ERROR)
        await client.aclose()
