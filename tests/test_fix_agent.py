"""Fix agent: propose/review loop, confirmation and edit application."""

import asyncio

import pytest

from code_guardian.chat import ChatController
from code_guardian.documents import InMemoryDocument
from code_guardian.fix_agent import FixAgent, build_context, render_tool_message
from code_guardian.models.fix import Diagnostic, Range
from code_guardian.models.session import MessageRole, SessionStatus, SessionType

from tests.conftest import ConfirmRecorder, RejectingDocument, ScriptedProvider, wait_for
from tests.test_chat import FailingProvider

FIXED = 'query = "SELECT * FROM users WHERE id = %s"\ncursor.execute(query, (user_id,))'
APPROVE = '```json\n{"decision": "approve", "notes": "parameterized"}\n```'


def diagnostic(line: int = 10) -> Diagnostic:
    return Diagnostic(range=Range.lines(line, line, 20), message="SQL injection", code="CWE-89")


def messages(store, sid, role=None):
    session = store.get_session(sid)
    return [m for m in session.messages if role is None or m.role == role]


@pytest.mark.asyncio
async def test_always_rejecting_reviewer_exhausts_attempts(store, source_document):
    original = source_document.text
    provider = ScriptedProvider(
        proposals=[f"```python\n{FIXED}\n```"] * 3,
        reviews=['{"decision": "reject", "notes": "n1"}', "Reject: n2", "nope"],
    )
    confirm = ConfirmRecorder()
    agent = FixAgent(provider, store, confirm, max_attempts=3)

    sid = await agent.run(source_document, diagnostic())

    assert len(provider.propose_calls) == 3
    assert len(provider.review_calls) == 3
    session = store.get_session(sid)
    assert session.status == SessionStatus.COMPLETED
    assert "could not sign off" in messages(store, sid, MessageRole.AGENT)[-1].content
    assert confirm.proposals == []
    assert source_document.text == original
    assert not any("write_file" in m.content for m in messages(store, sid, MessageRole.TOOL))
    assert len([m for m in messages(store, sid, MessageRole.TOOL) if "read_file" in m.content]) == 3


@pytest.mark.asyncio
async def test_rejection_feedback_reaches_next_attempt(store, source_document):
    provider = ScriptedProvider(
        proposals=["```python\nfirst_try()\n```", f"```python\n{FIXED}\n```"],
        reviews=['{"decision": "reject", "notes": "still builds SQL from strings"}', APPROVE],
    )
    confirm = ConfirmRecorder(answer=True)
    sid = await FixAgent(provider, store, confirm, max_attempts=3).run(source_document, diagnostic())

    assert len(provider.propose_calls) == 2
    assert len(provider.review_calls) == 2
    assert "still builds SQL from strings" not in provider.propose_calls[0]
    assert "still builds SQL from strings" in provider.propose_calls[1]
    assert "Attempt: 2" in provider.propose_calls[1]

    assert len(confirm.proposals) == 1
    proposal = confirm.proposals[0]
    assert proposal.replacement == FIXED
    assert proposal.attempt == 2
    assert "+cursor.execute(query, (user_id,))" in proposal.diff

    lines = source_document.text.split("\n")
    assert lines[:5] == [f"line_{i} = {i}" for i in range(5)]
    assert lines[5:7] == FIXED.split("\n")
    assert lines[7:] == [f"line_{i} = {i}" for i in range(16, 20)]

    session = store.get_session(sid)
    assert session.status == SessionStatus.COMPLETED
    assert session.metadata["fix_proposal"] == FIXED
    assert session.metadata["approval_notes"] == "parameterized"
    assert any(m.content.startswith("`write_file`") for m in messages(store, sid, MessageRole.TOOL))


@pytest.mark.asyncio
async def test_fix_session_shape(store, source_document):
    provider = ScriptedProvider(proposals=[FIXED], reviews=[APPROVE])
    sid = await FixAgent(provider, store, ConfirmRecorder(False)).run(source_document, diagnostic())

    session = store.get_session(sid)
    assert session.type == SessionType.FIX
    assert session.allow_user_input is False
    assert session.title == "Fix app.py:11"
    assert session.metadata["file_path"] == "/work/app.py"
    assert session.metadata["diagnostic_code"] == "CWE-89"
    assert session.metadata["vulnerability_message"] == "SQL injection"
    assert store.active_session_id == sid
    assert all(not m.pending for m in session.messages)
    roles = {m.role for m in session.messages}
    assert roles == {MessageRole.AGENT, MessageRole.TOOL, MessageRole.ASSISTANT}
    proposer = [m for m in session.messages if (m.metadata or {}).get("agent") == "proposer"]
    assert proposer[0].content == FIXED


@pytest.mark.asyncio
async def test_user_declines(store, source_document):
    original = source_document.text
    provider = ScriptedProvider(proposals=[FIXED], reviews=[APPROVE])
    sid = await FixAgent(provider, store, ConfirmRecorder(False)).run(source_document, diagnostic())

    assert source_document.text == original
    assert store.get_session(sid).status == SessionStatus.COMPLETED
    assert messages(store, sid, MessageRole.AGENT)[-1].content == "Fix application cancelled by user."


@pytest.mark.asyncio
async def test_without_confirmation_hook_nothing_is_applied(store, source_document):
    original = source_document.text
    provider = ScriptedProvider(proposals=[FIXED], reviews=[APPROVE])
    await FixAgent(provider, store).run(source_document, diagnostic())
    assert source_document.text == original


@pytest.mark.asyncio
async def test_rejected_edit_ends_in_error(store, notifier):
    document = RejectingDocument("a = 1\nb = eval(x)\nc = 3", path="/work/calc.py")
    provider = ScriptedProvider(proposals=["b = int(x)"], reviews=[APPROVE])
    sid = await FixAgent(provider, store, ConfirmRecorder(True), notifier=notifier).run(
        document, diagnostic(line=1))

    session = store.get_session(sid)
    assert session.status == SessionStatus.ERROR
    last = messages(store, sid, MessageRole.AGENT)[-1].content
    assert last.startswith("Failed to complete the fix: ")
    assert "rejected the edit" in last
    assert document.text == "a = 1\nb = eval(x)\nc = 3"
    assert len(notifier.errors) == 1


@pytest.mark.asyncio
async def test_empty_proposal_only_costs_one_attempt(store, source_document):
    provider = ScriptedProvider(proposals=["   ", f"```\n{FIXED}\n```"], reviews=[APPROVE])
    confirm = ConfirmRecorder(True)
    sid = await FixAgent(provider, store, confirm, max_attempts=2).run(source_document, diagnostic())

    assert len(provider.propose_calls) == 2
    assert len(provider.review_calls) == 1
    assert confirm.proposals[0].replacement == FIXED
    assert any("empty fix" in m.content for m in messages(store, sid, MessageRole.AGENT))
    assert store.get_session(sid).status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_provider_failure_is_terminal(store, source_document):
    sid = await FixAgent(FailingProvider(), store, ConfirmRecorder()).run(source_document, diagnostic())
    session = store.get_session(sid)
    assert session.status == SessionStatus.ERROR
    assert all(not m.pending for m in session.messages)
    assert "upstream exploded" in session.messages[-1].content
    assert not store.dirty


@pytest.mark.asyncio
async def test_cancellation_while_waiting_for_confirmation(store, source_document):
    gate = asyncio.Event()

    async def confirm(_proposal):
        await gate.wait()
        return True

    provider = ScriptedProvider(proposals=[FIXED], reviews=[APPROVE])
    agent = FixAgent(provider, store, confirm)
    sid = agent.open_session(source_document, diagnostic())
    task = asyncio.create_task(agent.execute(sid, source_document, diagnostic()))
    await wait_for(lambda: store.get_session(sid).metadata.get("fix_proposal") == FIXED)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert store.get_session(sid).status == SessionStatus.CANCELLED


@pytest.mark.asyncio
async def test_fix_session_refuses_chat_input(store, source_document, notifier):
    provider = ScriptedProvider(proposals=[FIXED], reviews=[APPROVE])
    sid = await FixAgent(provider, store, ConfirmRecorder(False)).run(source_document, diagnostic())
    before = len(store.get_session(sid).messages)
    await ChatController(provider, store, notifier).submit(sid, "can you also fix line 3?")
    assert len(store.get_session(sid).messages) == before
    assert notifier.warnings == ["This session is read-only."]


@pytest.mark.asyncio
async def test_empty_fenced_block_is_an_empty_proposal(store, source_document):
    original = source_document.text
    provider = ScriptedProvider(proposals=["```python\n```"], reviews=[APPROVE])
    confirm = ConfirmRecorder(True)
    sid = await FixAgent(provider, store, confirm, max_attempts=1).run(source_document, diagnostic())

    assert provider.review_calls == []
    assert confirm.proposals == []
    assert source_document.text == original
    assert "```" not in source_document.text
    assert any("empty fix" in m.content for m in messages(store, sid, MessageRole.AGENT))
    assert store.get_session(sid).status == SessionStatus.COMPLETED


def test_max_attempts_must_be_positive(store):
    with pytest.raises(ValueError):
        FixAgent(ScriptedProvider(), store, max_attempts=0)


class TestContext:
    def test_padding_is_clamped_to_document(self):
        document = InMemoryDocument("one\ntwo\nthree", path="x.py")
        context = build_context(document, diagnostic(line=1), padding=5)
        assert (context.start_line, context.end_line) == (0, 2)
        assert context.snippet == "one\ntwo\nthree"
        assert context.snippet_range.end.character == len("three")
        assert context.language_id == "python"

    def test_window_in_middle(self, source_document):
        context = build_context(source_document, diagnostic(line=10), padding=2)
        assert (context.start_line, context.end_line) == (8, 12)
        assert context.snippet.split("\n")[0] == "line_8 = 8"
        assert context.snippet.split("\n")[-1] == "line_12 = 12"

    def test_diagnostic_past_end(self):
        document = InMemoryDocument("only line", path="x.js")
        context = build_context(document, diagnostic(line=7), padding=1)
        assert (context.start_line, context.end_line) == (0, 0)
        assert context.snippet == "only line"
        assert context.language_id == "javascript"


def test_tool_message_truncates():
    rendered = render_tool_message("read_file", "/a.py", "x" * 5000)
    assert rendered.startswith("`read_file` → /a.py")
    assert rendered.endswith("... (truncated)")
    assert "x" * 3001 not in rendered
