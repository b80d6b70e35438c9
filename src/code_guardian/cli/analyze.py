"""CLI: code-guardian analyze"""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from code_guardian.analysis import analyze_source, suggest_fix
from code_guardian.documents import language_for

console = Console()

SEVERITY_STYLES = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "dim"}


def _get_client():
    from code_guardian.cli.main import _get_client
    return _get_client()


def _run(coro):
    from code_guardian.cli.main import _run
    return _run(coro)


@click.command("analyze")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--suggest", is_flag=True, help="Also ask for fixed code per finding")
@click.option("--json-output", "--json", is_flag=True)
def analyze_cmd(file: Path, suggest: bool, json_output: bool):
    """Ask the provider for a vulnerability analysis of FILE."""

    async def _analyze():
        client = _get_client()
        code = file.read_text(encoding="utf-8")
        language = language_for(str(file))
        try:
            with console.status("Analyzing..."):
                result = await analyze_source(client.provider, code, language, str(file))
                suggestions = {}
                if suggest:
                    for index, finding in enumerate(result.findings):
                        suggestions[index] = await suggest_fix(client.provider, finding, code, language)
        finally:
            await client.aclose()

        if json_output:
            data = result.model_dump(mode="json")
            for index, text in suggestions.items():
                data["findings"][index]["suggestion"] = text
            click.echo(json.dumps(data, indent=2))
            return
        if not result.findings:
            console.print("[green]No issues reported.[/green]")
            return
        table = Table(title=f"{file.name} ({len(result.findings)} findings)")
        table.add_column("Line", justify="right")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Description")
        table.add_column("CWE")
        for finding in result.findings:
            style = SEVERITY_STYLES.get(finding.severity, "")
            table.add_row(str(finding.line), f"[{style}]{finding.severity}[/{style}]",
                          finding.type, finding.message, finding.cwe)
        console.print(table)
        for index, text in suggestions.items():
            console.print(f"\n[bold]Line {result.findings[index].line}[/bold] suggested fix:")
            console.print(text, markup=False, highlight=False)

    _run(_analyze())
