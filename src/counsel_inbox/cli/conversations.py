"""CLI: counsel-inbox conversations | thread | read"""

import json

import click
from rich.console import Console
from rich.table import Table

from counsel_inbox.aggregator import group_by_day
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


@click.command("conversations")
@click.option("-s", "--search", default=None, help="Filter by peer name or subtitle")
@click.option("--json-output", "--json", is_flag=True)
def conversations_cmd(search, json_output):
    """List conversation threads, unread first."""

    async def _list():
        async with _get_client() as client:
            with console.status("Loading inbox..."):
                await _connect(client)
            conversations = client.get_conversations(search)
        if json_output:
            click.echo(json.dumps([c.model_dump(mode="json") for c in conversations], indent=2))
            return
        table = Table(title=f"Conversations ({len(conversations)})")
        table.add_column("ID", style="bold")
        table.add_column("With")
        table.add_column("Unread", justify="right")
        table.add_column("Last message")
        table.add_column("When")
        for c in conversations:
            unread = f"[bold cyan]{c.unread_count}[/bold cyan]" if c.unread_count else ""
            preview = c.last_message if len(c.last_message) <= 60 else c.last_message[:57] + "..."
            table.add_row(c.id, f"{c.peer_name}\n[dim]{c.subtitle}[/dim]", unread, preview,
                          c.last_timestamp.strftime("%Y-%m-%d %H:%M"))
        console.print(table)

    _run(_list())


@click.command("thread")
@click.argument("conversation_id")
@click.option("--no-mark", is_flag=True, help="Do not mark the thread read")
def thread_cmd(conversation_id, no_mark):
    """Show a thread. Opening it marks it read."""

    async def _thread():
        async with _get_client() as client:
            with console.status("Loading inbox..."):
                await _connect(client)
            conversation = client.sync.get_conversation(conversation_id)
            if conversation is None:
                console.print(f"[red]Conversation {conversation_id} not found.[/red]")
                raise SystemExit(1)
            messages = client.get_messages(conversation_id)
            if not no_mark:
                await client.open_conversation(conversation_id)

        console.print(f"[bold]{conversation.peer_name}[/bold] [dim]{conversation.subtitle}[/dim]")
        for day, bucket in group_by_day(messages):
            console.rule(f"[dim]{day.strftime('%A, %d %B %Y')}[/dim]")
            for m in bucket:
                marker = "[bold cyan]*[/bold cyan] " if m.is_unread else "  "
                edited = " [dim](edited)[/dim]" if m.updated_at and m.updated_at != m.created_at else ""
                console.print(f"{marker}[dim]{m.created_at.strftime('%H:%M')}[/dim] "
                              f"[bold]{m.sender_name}[/bold]: {m.content}{edited}")
                console.print(f"    [dim]{m.id}[/dim]")

    _run(_thread())


@click.command("read")
@click.argument("conversation_id")
def read_cmd(conversation_id):
    """Mark every message in a thread read."""

    async def _read():
        async with _get_client() as client:
            await _connect(client)
            result = await client.mark_conversation_read(conversation_id)
        if isinstance(result, Err):
            _fail(result)
        console.print(f"[green]Marked {result.value} message(s) read.[/green]")

    _run(_read())
