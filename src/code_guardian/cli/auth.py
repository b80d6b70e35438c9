"""CLI: code-guardian auth set-key|status|logout, code-guardian config show|set"""

import json
from typing import Optional

import click
from rich.console import Console

from code_guardian.config import config_file, load_settings, update_config
from code_guardian.providers import PROVIDER_NAMES

console = Console()


@click.group()
def auth():
    """Provider credentials."""


@auth.command("set-key")
@click.option("--provider", type=click.Choice(PROVIDER_NAMES), default=None,
              help="Provider the key belongs to (defaults to the configured one)")
def auth_set_key(provider: Optional[str]):
    """Store the provider API key."""
    current = load_settings().provider
    provider = provider or current
    key = click.prompt(f"{provider} API key", hide_input=True).strip()
    if not key:
        console.print("[red]No key entered.[/red]")
        raise SystemExit(1)
    update_config(provider=provider, api_key=key)
    console.print(f"[green]Key stored for {provider}.[/green]")
    console.print(f"[dim]Saved to {config_file()}[/dim]")


@auth.command("status")
def auth_status():
    """Show whether a key is configured."""
    settings = load_settings()
    if settings.provider == "local":
        console.print("[green]Local provider[/green] (no key required)")
    elif settings.api_key:
        console.print(f"[green]Key configured[/green] for {settings.provider}")
    else:
        console.print(f"[yellow]No key for {settings.provider}. Run `code-guardian auth set-key`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Forget the stored key."""
    update_config(api_key=None)
    console.print("[green]Key removed.[/green]")


@click.group()
def config():
    """Settings."""


@config.command("show")
def config_show():
    """Print the effective settings (secret masked)."""
    click.echo(json.dumps(load_settings().public_dict(), indent=2))


@config.command("set")
@click.option("--provider", type=click.Choice(PROVIDER_NAMES), default=None)
@click.option("--model", default=None)
@click.option("--max-fix-attempts", type=click.IntRange(1, 10), default=None)
@click.option("--context-padding", type=click.IntRange(0, 200), default=None)
def config_set(provider, model, max_fix_attempts, context_padding):
    """Update stored settings."""
    values = {
        "provider": provider,
        "model": model,
        "max_fix_attempts": max_fix_attempts,
        "context_padding": context_padding,
    }
    values = {k: v for k, v in values.items() if v is not None}
    if not values:
        console.print("[yellow]Nothing to update.[/yellow]")
        return
    update_config(**values)
    console.print(f"[green]Updated: {', '.join(values)}[/green]")
