"""Shared test fixtures for code-guardian."""

import asyncio
from typing import Optional, Sequence

import pytest

from code_guardian.documents import InMemoryDocument
from code_guardian.fix_agent import APPROVER_PERSONA
from code_guardian.models.chat import ChatRequestOptions, ProviderMessage, StreamCallbacks
from code_guardian.models.fix import FixProposal
from code_guardian.providers.base import AIProvider, replay
from code_guardian.sessions import SessionStore
from code_guardian.storage import MemoryStorage


class RecordingNotifier:
    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class ScriptedProvider(AIProvider):
    """Replays canned replies: proposals for the fixer, verdicts for the approver."""

    name = "scripted"

    def __init__(self, proposals: Sequence[str] = (), reviews: Sequence[str] = (), replies: Sequence[str] = ()):
        self.proposals = list(proposals)
        self.reviews = list(reviews)
        self.replies = list(replies)
        self.propose_calls: list[str] = []
        self.review_calls: list[str] = []
        self.chat_calls: list[tuple[list[ProviderMessage], Optional[ChatRequestOptions]]] = []

    async def analyze(self, prompt: str) -> str:
        return "[]"

    async def generate_fix(self, prompt: str) -> str:
        return "fixed()"

    async def chat(
        self,
        messages: Sequence[ProviderMessage],
        options: Optional[ChatRequestOptions] = None,
        callbacks: Optional[StreamCallbacks] = None,
    ) -> str:
        self.chat_calls.append((list(messages), options))
        system = options.system_prompt if options else None
        if system == APPROVER_PERSONA:
            self.review_calls.append(messages[-1].content)
            return replay(self.reviews.pop(0), callbacks)
        if system and "senior security engineer" in system:
            self.propose_calls.append(messages[-1].content)
            return replay(self.proposals.pop(0), callbacks)
        return replay(self.replies.pop(0) if self.replies else "ok", callbacks)


class RejectingDocument(InMemoryDocument):
    async def apply_edit(self, range, text):
        return False


class ConfirmRecorder:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.proposals: list[FixProposal] = []

    async def __call__(self, proposal: FixProposal) -> bool:
        self.proposals.append(proposal)
        return self.answer


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return SessionStore(storage)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def source_document():
    lines = [f"line_{i} = {i}" for i in range(20)]
    lines[10] = 'query = "SELECT * FROM users WHERE id = " + user_id'
    return InMemoryDocument("\n".join(lines), path="/work/app.py")


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
