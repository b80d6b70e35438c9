"""CLI: code-guardian sessions list|show|create|delete|rename|clear"""

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from code_guardian.cli.render import render_message

console = Console()


def _get_client():
    from code_guardian.cli.main import _get_client
    return _get_client()


def _when(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


@click.group()
def sessions():
    """Session management."""


@sessions.command("list")
@click.option("--limit", default=20, type=int)
def sessions_list(limit):
    """List sessions, newest first."""
    state = _get_client().state()
    table = Table(title=f"Sessions ({len(state.sessions)} total)")
    table.add_column("ID", style="bold")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")
    for s in state.sessions[:limit]:
        marker = "*" if s.id == state.active_session_id else ""
        table.add_row(f"{s.id}{marker}", s.type.value, s.status.value, s.title,
                      str(len(s.messages)), _when(s.updated_at))
    console.print(table)


@sessions.command("show")
@click.argument("session_id")
def sessions_show(session_id):
    """Print a session transcript."""
    session = _get_client().store.get_session(session_id)
    if session is None:
        console.print(f"[red]Unknown session: {session_id}[/red]")
        raise SystemExit(1)
    console.print(f"[bold]{session.title}[/bold] [dim]({session.type.value}, {session.status.value})[/dim]\n")
    for message in session.messages:
        render_message(console, message)


@sessions.command("create")
@click.option("--title", default=None)
def sessions_create(title):
    """Create a new Q&A session."""
    session = _get_client().new_session(title)
    console.print(f"[green]Session created: {session.id}[/green]")


@sessions.command("delete")
@click.argument("session_id")
def sessions_delete(session_id):
    """Delete a session."""
    client = _get_client()
    if client.store.get_session(session_id) is None:
        console.print(f"[red]Unknown session: {session_id}[/red]")
        raise SystemExit(1)
    client.delete_session(session_id)
    console.print(f"[green]Session {session_id} deleted.[/green]")


@sessions.command("rename")
@click.argument("session_id")
@click.argument("title")
def sessions_rename(session_id, title):
    """Rename a session."""
    _get_client().rename_session(session_id, title)
    console.print("[green]Renamed.[/green]")


@sessions.command("clear")
@click.confirmation_option(prompt="Delete all sessions?")
def sessions_clear():
    """Delete every session."""
    _get_client().store.clear_all()
    console.print("[green]All sessions deleted.[/green]")
