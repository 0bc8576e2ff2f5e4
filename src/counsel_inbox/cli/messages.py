"""CLI: counsel-inbox send | new | edit | delete | delete-conversation"""

from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from counsel_inbox.errors import InboxError
from counsel_inbox.mutations import Err

console = Console()


def _get_client():
    from counsel_inbox.cli.main import _get_client
    return _get_client()


def _run(coro):
    from counsel_inbox.cli.main import _run
    return _run(coro)


def _fail(result):
    from counsel_inbox.cli.main import _fail
    _fail(result)


async def _connect(client):
    from counsel_inbox.cli.main import _connect
    await _connect(client)


@click.command("send")
@click.argument("conversation_id")
@click.argument("text")
def send_cmd(conversation_id, text):
    """Reply in an existing thread."""

    async def _send():
        async with _get_client() as client:
            await _connect(client)
            with console.status("Sending..."):
                result = await client.send_message(conversation_id, text)
                await client.sync.settle()
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Sent ({result.value.id}) in {result.value.conversation_id}.[/green]")

    _run(_send())


def _pick_peer(peers):
    if len(peers) == 1:
        return peers[0]
    table = Table(show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Role")
    table.add_column("ID", style="dim")
    for i, peer in enumerate(peers, 1):
        table.add_row(str(i), peer.name, peer.role or "", peer.id)
    console.print(table)
    choice = click.prompt("Pick a recipient", type=click.IntRange(1, len(peers)))
    return peers[choice - 1]


@click.command("new")
@click.argument("text")
@click.option("--to", "peer_id", default=None, help="Recipient ID")
@click.option("--search", "query", default=None, help="Find the recipient by name or email")
@click.option("--name", default=None, help="Recipient display name")
@click.option("--role", default=None, help="Recipient role (counselor, student, dean, ...)")
def new_cmd(text, peer_id: Optional[str], query: Optional[str], name: Optional[str], role: Optional[str]):
    """Start a new thread with a peer."""
    if bool(peer_id) == bool(query):
        raise click.UsageError("Pass exactly one of --to or --search.")

    async def _new():
        async with _get_client() as client:
            await _connect(client)
            recipient_id, recipient_name, recipient_role, avatar_url = peer_id, name, role, None
            if query:
                found = await client.search_peers(query, role)
                if isinstance(found, Err):
                    _fail(found)
                if not found.value:
                    console.print(f"[red]Nobody matches {query!r}.[/red]")
                    raise SystemExit(1)
                peer = _pick_peer(found.value)
                recipient_id, recipient_role, avatar_url = peer.id, peer.role, peer.avatar_url
                recipient_name = name or peer.name
            try:
                conversation_id = client.start_conversation(
                    recipient_id, recipient_name or f"#{recipient_id}", recipient_role, avatar_url,
                )
            except InboxError as e:
                console.print(f"[red]{e}[/red]")
                raise SystemExit(1)
            with console.status("Sending..."):
                result = await client.send_message(conversation_id, text)
                await client.sync.settle()
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Conversation {result.value.conversation_id} started.[/green]")

    _run(_new())


@click.command("edit")
@click.argument("message_id")
@click.argument("text")
def edit_cmd(message_id, text):
    """Edit one of your own messages."""

    async def _edit():
        async with _get_client() as client:
            await _connect(client)
            result = await client.edit_message(message_id, text)
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Message {message_id} updated.[/green]")

    _run(_edit())


@click.command("delete")
@click.argument("message_id")
def delete_cmd(message_id):
    """Delete a message."""

    async def _delete():
        async with _get_client() as client:
            await _connect(client)
            with console.status("Deleting..."):
                result = await client.delete_message(message_id)
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Message {message_id} deleted.[/green]")

    _run(_delete())


@click.command("delete-conversation")
@click.argument("conversation_id")
@click.confirmation_option(prompt="Delete the whole conversation?")
def delete_conversation_cmd(conversation_id):
    """Delete a whole thread."""

    async def _delete():
        async with _get_client() as client:
            await _connect(client)
            with console.status("Deleting..."):
                result = await client.delete_conversation(conversation_id)
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Deleted {result.value} message(s) from {conversation_id}.[/green]")

    _run(_delete())
