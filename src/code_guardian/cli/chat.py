"""CLI: code-guardian chat, code-guardian send"""

from typing import Optional

import click
from rich.console import Console

from code_guardian.cli.render import TranscriptPrinter
from code_guardian.models.session import SessionType

console = Console()


def _get_client():
    from code_guardian.cli.main import _get_client
    return _get_client()


def _run(coro):
    from code_guardian.cli.main import _run
    return _run(coro)


@click.command("chat")
@click.argument("session_id", required=False)
def chat_cmd(session_id: Optional[str]):
    """Interactive security Q&A."""

    async def _chat():
        client = _get_client()
        sid = session_id
        if sid:
            if not client.select_session(sid):
                console.print(f"[red]Unknown session: {sid}[/red]")
                await client.aclose()
                raise SystemExit(1)
        else:
            sid = client.new_session().id
            console.print(f"[dim]Session: {sid}[/dim]")
        printer = TranscriptPrinter(console, sid)
        printer.mark_seen(client.state())
        remove = client.subscribe(printer)
        console.print("[cyan]Type your question (/quit to exit)[/cyan]\n")
        try:
            while True:
                msg = click.prompt("You", prompt_suffix=": ")
                if msg.strip().lower() in ("/quit", "/exit"):
                    break
                await client.send_message(sid, msg)
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            remove()
            await client.aclose()

    _run(_chat())


@click.command("send")
@click.argument("message")
@click.option("-s", "--session", "session_id", default=None, help="Existing Q&A session")
def send_cmd(message: str, session_id: Optional[str]):
    """Ask a one-shot question."""

    async def _send():
        client = _get_client()
        sid = session_id
        if not sid:
            sid = client.new_session().id
            console.print(f"[dim]Session: {sid}[/dim]")
        session = client.store.get_session(sid)
        if session is None or session.type != SessionType.QA:
            console.print(f"[red]Not a Q&A session: {sid}[/red]")
            await client.aclose()
            raise SystemExit(1)
        printer = TranscriptPrinter(console, sid)
        printer.mark_seen(client.state())
        remove = client.subscribe(printer)
        try:
            await client.send_message(sid, message)
        finally:
            remove()
            await client.aclose()

    _run(_send())
