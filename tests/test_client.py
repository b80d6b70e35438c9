"""Composition root: intents, tracked runs, provider swaps."""

import asyncio

import pytest

from code_guardian import AsyncCodeGuardian, CodeGuardian, Settings
from code_guardian.errors import SessionError
from code_guardian.models.fix import Diagnostic, Range
from code_guardian.models.session import MessageRole, SessionStatus, SessionType
from code_guardian.providers import LocalProvider
from code_guardian.storage import MemoryStorage

from tests.conftest import ConfirmRecorder, ScriptedProvider, wait_for
from tests.test_chat import StreamingProvider


def make_client(provider=None, confirm=None, notifier=None) -> AsyncCodeGuardian:
    return AsyncCodeGuardian(
        settings=Settings(provider="local", max_fix_attempts=2),
        storage=MemoryStorage(),
        provider=provider,
        notifier=notifier,
        confirm=confirm,
    )


class TestDispatch:
    @pytest.mark.asyncio
    async def test_session_intents(self):
        client = make_client()
        state = await client.dispatch({"type": "newSession", "title": "First"})
        first = state.sessions[0]
        assert first.title == "First"
        assert state.active_session_id == first.id

        state = await client.dispatch({"type": "newSession"})
        second = state.active_session
        assert second.id != first.id

        state = await client.dispatch({"type": "selectSession", "sessionId": first.id})
        assert state.active_session_id == first.id

        state = await client.dispatch({"type": "renameSession", "sessionId": first.id, "title": "Renamed"})
        assert state.active_session.title == "Renamed"

        state = await client.dispatch({"type": "deleteSession", "sessionId": first.id})
        assert [s.id for s in state.sessions] == [second.id]
        assert state.active_session_id == second.id

        assert (await client.dispatch({"type": "requestState"})).active_session_id == second.id
        assert (await client.dispatch({"type": "ready"})).sessions[0].id == second.id
        await client.aclose()

    @pytest.mark.asyncio
    async def test_send_message_intent(self):
        client = make_client(provider=ScriptedProvider(replies=["Use bcrypt."]))
        sid = client.new_session().id
        state = await client.dispatch({"type": "sendMessage", "sessionId": sid, "content": "Hash passwords?"})
        messages = state.active_session.messages
        assert [(m.role, m.content) for m in messages] == [
            (MessageRole.USER, "Hash passwords?"),
            (MessageRole.ASSISTANT, "Use bcrypt."),
        ]

    @pytest.mark.asyncio
    async def test_malformed_send_is_ignored(self):
        client = make_client()
        sid = client.new_session().id
        assert await client.dispatch({"type": "sendMessage", "sessionId": sid, "content": 42}) is None
        assert await client.dispatch({"type": "sendMessage", "content": "no session"}) is None
        assert client.store.get_session(sid).messages == []

    @pytest.mark.asyncio
    async def test_unknown_intent(self):
        client = make_client()
        with pytest.raises(SessionError) as exc:
            await client.dispatch({"type": "launchRockets"})
        assert exc.value.code == "unknown_intent"

    @pytest.mark.asyncio
    async def test_cancel_intent_stops_running_reply(self):
        provider = StreamingProvider(["partial", "rest"], hang_after_first=True)
        client = make_client(provider=provider)
        sid = client.new_session().id
        sending = asyncio.create_task(client.send_message(sid, "long question"))
        await wait_for(lambda: client.in_flight(sid)
                       and client.store.get_session(sid).status == SessionStatus.RUNNING)

        await client.dispatch({"type": "cancel", "sessionId": sid})
        with pytest.raises(asyncio.CancelledError):
            await sending
        assert client.store.get_session(sid).status == SessionStatus.CANCELLED
        assert not client.in_flight(sid)
        assert client.cancel(sid) is False


@pytest.mark.asyncio
async def test_run_fix_returns_session_id(source_document):
    provider = ScriptedProvider(proposals=["safe()"], reviews=['{"decision": "approve", "notes": "ok"}'])
    confirm = ConfirmRecorder(True)
    client = make_client(provider=provider, confirm=confirm)

    sid = await client.run_fix(source_document, Diagnostic(range=Range.lines(10, 10), message="SQL injection"))

    session = client.store.get_session(sid)
    assert session.type == SessionType.FIX
    assert session.status == SessionStatus.COMPLETED
    assert client.state().active_session_id == sid
    assert "safe()" in source_document.text
    assert len(confirm.proposals) == 1


@pytest.mark.asyncio
async def test_fix_attempts_follow_settings(source_document):
    provider = ScriptedProvider(proposals=["a()", "b()", "c()"], reviews=["reject", "reject", "reject"])
    client = make_client(provider=provider)
    await client.run_fix(source_document, Diagnostic(range=Range.lines(10, 10), message="x"))
    assert len(provider.propose_calls) == 2


@pytest.mark.asyncio
async def test_update_provider_swaps_everywhere():
    old = ScriptedProvider()
    client = make_client(provider=old)
    await client.update_provider("local", None, "")
    assert isinstance(client.provider, LocalProvider)
    assert client.chat.provider is client.provider
    assert client.fix_agent.provider is client.provider
    assert client.settings.provider == "local"

    sid = client.new_session().id
    await client.send_message(sid, "hi")
    assert client.store.get_session(sid).messages[-1].content.startswith("Local mode placeholder")


@pytest.mark.asyncio
async def test_delete_session_cancels_in_flight_work():
    provider = StreamingProvider(["a", "b"], hang_after_first=True)
    client = make_client(provider=provider)
    sid = client.new_session().id
    sending = asyncio.create_task(client.send_message(sid, "q"))
    await wait_for(lambda: client.in_flight(sid))
    client.delete_session(sid)
    with pytest.raises(asyncio.CancelledError):
        await sending
    assert client.store.get_session(sid) is None


def test_sync_wrapper():
    storage = MemoryStorage()
    guardian = CodeGuardian(settings=Settings(provider="local"), storage=storage)
    snapshots = []
    guardian.subscribe(snapshots.append)
    session = guardian.new_session("sync")
    guardian.send_message(session.id, "hello")
    guardian.rename_session(session.id, "renamed")
    assert guardian.state().sessions[0].title == "renamed"
    assert guardian.state().sessions[0].messages[-1].pending is False
    assert "severity" in guardian.analyze("code")
    assert snapshots
    guardian.close()
    assert storage.state["sessions"][0]["title"] == "renamed"
