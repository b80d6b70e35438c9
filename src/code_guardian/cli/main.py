"""
Code Guardian CLI — `code-guardian` command.

Commands:
  code-guardian auth set-key        Store the provider API key
  code-guardian config show|set     Provider, model and fix-loop settings
  code-guardian chat [session-id]   Interactive security Q&A
  code-guardian send <message>      One-shot question
  code-guardian sessions <cmd>      Session management
  code-guardian fix <file>          Reviewed AI fix for a reported issue
  code-guardian analyze <file>      Provider-backed vulnerability analysis
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install code-guardian[cli]")

from code_guardian.client import AsyncCodeGuardian
from code_guardian.config import load_settings
from code_guardian.errors import CodeGuardianError

console = Console()


class ConsoleNotifier:
    def warning(self, message: str) -> None:
        console.print(f"[yellow]{message}[/yellow]")

    def error(self, message: str) -> None:
        console.print(f"[red]{message}[/red]")


def _get_client(**kwargs) -> AsyncCodeGuardian:
    ctx = click.get_current_context(silent=True)
    overrides = (ctx.find_root().obj or {}) if ctx else {}
    settings = load_settings(overrides)
    return AsyncCodeGuardian(settings=settings, notifier=ConsoleNotifier(), **kwargs)


def _run(coro):
    try:
        return asyncio.run(coro)
    except CodeGuardianError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@click.group()
@click.version_option("0.1.0")
@click.option("--provider", type=click.Choice(["openai", "anthropic", "local"]), default=None,
              help="Override the configured provider")
@click.option("--model", default=None, help="Override the configured model")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx, provider, model, verbose):
    """Code Guardian — security Q&A and reviewed AI fixes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj = {"provider": provider, "model": model}


# Register subcommands from separate modules
from code_guardian.cli.analyze import analyze_cmd
from code_guardian.cli.auth import auth, config
from code_guardian.cli.chat import chat_cmd, send_cmd
from code_guardian.cli.fix import fix_cmd
from code_guardian.cli.sessions import sessions

main.add_command(auth)
main.add_command(config)
main.add_command(chat_cmd)
main.add_command(send_cmd)
main.add_command(sessions)
main.add_command(fix_cmd)
main.add_command(analyze_cmd)


if __name__ == "__main__":
    main()
