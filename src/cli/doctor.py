"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.jwks import RemoteKeySetProvider
from adapters.outseta_client import OutsetaClient
from core.config import AppSettings, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


def _mask(value: str | None) -> str:
    if not value:
        return "-"
    return value[:4] + "…" if len(value) > 4 else "…"


async def _check_key_set(settings: AppSettings) -> tuple[bool, str]:
    try:
        async with OutsetaClient(settings) as client:
            key_set = await RemoteKeySetProvider(client).get_key_set()
        return True, f"{len(key_set.keys)} signing key(s)"
    except Exception as exc:
        return False, str(exc) or type(exc).__name__


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="Outseta Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row(
        "Subdomain",
        "OK" if settings.subdomain else "MISSING",
        f"https://{settings.subdomain}.outseta.com" if settings.subdomain else "Set OUTSETA_SUBDOMAIN",
    )
    table.add_row("API key", "OK" if settings.api_key else "MISSING", _mask(settings.api_key))
    table.add_row("API secret", "OK" if settings.api_secret else "MISSING", _mask(settings.api_secret))
    table.add_row(
        "HTTP timeout",
        "OK",
        f"{settings.http_timeout_seconds}s" if settings.http_timeout_seconds else "none (default)",
    )

    ok_keys = False
    if settings.subdomain:
        ok_keys, detail_keys = asyncio.run(_check_key_set(settings))
        table.add_row("JWK Set", "OK" if ok_keys else "FAIL", detail_keys)
    else:
        table.add_row("JWK Set", "SKIPPED", "No subdomain configured")

    _console.print(table)

    if not (settings.api_key and settings.api_secret):
        _console.print(
            "\n[yellow]Note:[/yellow] Tenant-authenticated commands need OUTSETA_API_KEY and OUTSETA_API_SECRET "
            "(`doctor setup` stores them in your user config)."
        )
    if not settings.subdomain or not ok_keys:
        raise typer.Exit(code=1)


@app.command()
def setup() -> None:
    """Interactive setup (stores credentials in the user config .env)."""

    current = AppSettings()

    subdomain = typer.prompt("Outseta subdomain", default=current.subdomain or "", show_default=True).strip()
    api_key = typer.prompt("API key", default=current.api_key or "", show_default=False).strip()
    api_secret = typer.prompt("API secret", hide_input=True, confirmation_prompt=False).strip()

    if not subdomain:
        raise typer.BadParameter("subdomain is required")

    try:
        env_path = write_user_env_vars(
            {
                "OUTSETA_SUBDOMAIN": subdomain,
                "OUTSETA_API_KEY": api_key,
                "OUTSETA_API_SECRET": api_secret,
            }
        )
    except OSError as exc:
        _console.print(f"[red]Could not write user config:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _console.print(f"[green]Saved Outseta config to:[/green] {env_path}")
