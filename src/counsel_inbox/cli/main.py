"""
counsel-inbox CLI — `counsel-inbox` command.

Commands:
  counsel-inbox auth login                 Email + password login
  counsel-inbox conversations              List threads (unread first)
  counsel-inbox thread <conversation-id>   Show a thread and mark it read
  counsel-inbox read <conversation-id>     Mark a thread read without showing it
  counsel-inbox send <conversation-id> <text>
  counsel-inbox new <text> --to <peer-id> | --search <query>
  counsel-inbox edit <message-id> <text>
  counsel-inbox delete <message-id>
  counsel-inbox delete-conversation <conversation-id>
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install counsel-inbox[cli]")

from counsel_inbox.client import AsyncInbox
from counsel_inbox.errors import InboxError
from counsel_inbox.models.identity import Identity
from counsel_inbox.mutations import Err
from counsel_inbox.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".counsel_inbox" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client() -> AsyncInbox:
    cfg = _load_config()
    if not cfg.get("access_token"):
        console.print("[red]Not logged in. Run `counsel-inbox auth login` first.[/red]")
        raise SystemExit(1)
    identity = Identity.model_validate(cfg["identity"]) if cfg.get("identity") else None
    return AsyncInbox(
        access_token=cfg["access_token"],
        identity=identity,
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
    )


async def _connect(client: AsyncInbox) -> None:
    try:
        result = await client.connect()
    except InboxError as e:
        result = Err(e)
    if isinstance(result, Err):
        _fail(result)


def _fail(result: Err) -> None:
    error = result.error
    if error.code == "auth_error":
        console.print(f"[red]{error}[/red] [dim]Run `counsel-inbox auth login` again.[/dim]")
    else:
        console.print(f"[red]{error}[/red]")
    raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log requests and sync activity")
def main(verbose: bool):
    """Counseling-office inbox from the command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# Register subcommands from separate modules
from counsel_inbox.cli.auth import auth
from counsel_inbox.cli.conversations import conversations_cmd, thread_cmd, read_cmd
from counsel_inbox.cli.messages import send_cmd, new_cmd, edit_cmd, delete_cmd, delete_conversation_cmd

main.add_command(auth)
main.add_command(conversations_cmd)
main.add_command(thread_cmd)
main.add_command(read_cmd)
main.add_command(send_cmd)
main.add_command(new_cmd)
main.add_command(edit_cmd)
main.add_command(delete_cmd)
main.add_command(delete_conversation_cmd)


if __name__ == "__main__":
    main()
