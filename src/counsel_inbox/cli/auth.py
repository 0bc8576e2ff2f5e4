"""CLI: counsel-inbox auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from counsel_inbox.client import AsyncInbox
from counsel_inbox.errors import InboxError

console = Console()


def _load_config() -> dict:
    from counsel_inbox.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from counsel_inbox.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from counsel_inbox.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="Portal API base URL")
def auth_login(base_url: Optional[str]):
    """Log in with email and password."""
    from counsel_inbox.cli.main import DEFAULT_BASE_URL

    async def _login():
        cfg = _load_config()
        url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
        email = click.prompt("Email")
        password = click.prompt("Password", hide_input=True)
        async with AsyncInbox(base_url=url) as client:
            try:
                with console.status("Logging in..."):
                    identity = await client.login(email, password)
            except InboxError as e:
                console.print(f"[red]{e}[/red]")
                raise SystemExit(1)
            token = client.http.token
        console.print(f"[green]Logged in as {identity.display_name} ({identity.role}, ID: {identity.id})[/green]")
        _save_config({**cfg, "access_token": token, "identity": identity.model_dump(), "base_url": url})
        console.print("[dim]Token saved to ~/.counsel_inbox/config.json[/dim]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        identity = cfg.get("identity") or {}
        console.print(
            f"[green]Logged in[/green] as {identity.get('email') or identity.get('name', 'unknown')} "
            f"({identity.get('role', 'unknown')}, ID: {identity.get('id')})"
        )
    else:
        console.print("[yellow]Not logged in. Run `counsel-inbox auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Revoke the token and clear saved credentials."""
    from counsel_inbox.cli.main import DEFAULT_BASE_URL
    cfg = _load_config()

    async def _logout():
        async with AsyncInbox(access_token=cfg["access_token"], base_url=cfg.get("base_url", DEFAULT_BASE_URL)) as client:
            try:
                await client.auth.logout()
            except InboxError as e:
                console.print(f"[yellow]Server logout failed: {e}[/yellow]")

    if cfg.get("access_token"):
        _run(_logout())
    _save_config({k: v for k, v in cfg.items() if k == "base_url"})
    console.print("[green]Logged out.[/green]")
