"""CLI: code-guardian fix"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.syntax import Syntax

from code_guardian.cli.render import TranscriptPrinter
from code_guardian.documents import FileDocument
from code_guardian.models.fix import Diagnostic, FixProposal, Range

console = Console()


def _get_client(**kwargs):
    from code_guardian.cli.main import _get_client
    return _get_client(**kwargs)


def _run(coro):
    from code_guardian.cli.main import _run
    return _run(coro)


@click.command("fix")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-l", "--line", type=click.IntRange(min=1), required=True, help="1-based line of the issue")
@click.option("--end-line", type=click.IntRange(min=1), default=None, help="Last line of the issue")
@click.option("-m", "--message", required=True, help="Issue description from the detector")
@click.option("--code", default=None, help="Diagnostic code, e.g. CWE-89")
@click.option("-y", "--yes", is_flag=True, help="Apply an approved fix without asking")
def fix_cmd(file: Path, line: int, end_line: Optional[int], message: str, code: Optional[str], yes: bool):
    """Propose, review and (after confirmation) apply a fix for one issue."""

    async def confirm(proposal: FixProposal) -> bool:
        console.print()
        console.print(Syntax(proposal.diff or "(no textual change)", "diff", theme="ansi_dark"))
        if proposal.approval_notes:
            console.print(f"[dim]Reviewer: {proposal.approval_notes}[/dim]")
        if yes:
            return True
        return click.confirm("Apply this fix?", default=False)

    async def _fix():
        client = _get_client(confirm=confirm)
        document = FileDocument(file)
        last = min(end_line or line, document.line_count)
        diagnostic = Diagnostic(
            range=Range.lines(min(line, document.line_count) - 1, last - 1, len(document.line_text(last - 1))),
            message=message,
            code=code,
        )
        printer: Optional[TranscriptPrinter] = None

        def follow(snapshot):
            nonlocal printer
            if printer is None and snapshot.active_session_id:
                printer = TranscriptPrinter(console, snapshot.active_session_id)
            if printer is not None:
                printer(snapshot)

        remove = client.subscribe(follow)
        try:
            sid = await client.run_fix(document, diagnostic)
        finally:
            remove()
            await client.aclose()
        session = client.store.get_session(sid)
        status = session.status.value if session else "unknown"
        colour = {"completed": "green", "error": "red"}.get(status, "yellow")
        console.print(f"\n[{colour}]Fix session {sid}: {status}[/{colour}]")
        if status == "error":
            raise SystemExit(1)

    _run(_fix())
