"""CLI: zapflow preview, zapflow hydrate"""

import json

import click
from rich.console import Console
from rich.table import Table

from zapflow.models.preview import PreviewStatus

console = Console()


def _get_client():
    from zapflow.cli.main import _get_client
    return _get_client()


def _load_conversation(path: str):
    from zapflow.cli.main import _load_conversation
    return _load_conversation(path)


def _run(coro):
    from zapflow.cli.main import _run
    return _run(coro)


@click.command("preview")
@click.argument("url")
@click.option("--json-output", "--json", is_flag=True)
def preview_cmd(url: str, json_output: bool):
    """Fetch the link preview for URL."""

    async def _preview():
        async with _get_client() as client:
            with console.status("Fetching preview..."):
                entry = await client.previews.ensure_preview(url)
        if entry is None:
            console.print("[red]Not a URL.[/red]")
            raise SystemExit(1)
        if json_output:
            click.echo(json.dumps(entry.model_dump(mode="json"), indent=2))
            return
        if entry.status is not PreviewStatus.READY or entry.data is None:
            console.print(f"[yellow]No preview available ({entry.status.value}).[/yellow]")
            return
        table = Table(title=client.previews.normalize(url))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Title", entry.data.title or "")
        table.add_row("Description", entry.data.description or "")
        table.add_row("Image", entry.data.image or "")
        console.print(table)

    _run(_preview())


@click.command("hydrate")
@click.argument("conversation_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("message_id")
def hydrate_cmd(conversation_file: str, message_id: str):
    """Look up the media of one message through the blob store and the gateway."""
    conversation = _load_conversation(conversation_file)
    found = conversation.find_message(message_id)
    if found is None:
        console.print(f"[red]Message {message_id} not in {conversation.id}[/red]")
        raise SystemExit(1)
    message = found[1]
    if not message.is_media:
        console.print(f"[red]Message {message_id} is not a media message[/red]")
        raise SystemExit(1)

    async def _hydrate():
        async with _get_client() as client:
            client.track(conversation)
            outcome = client.hydrator.schedule(message, message.type, conversation.id)
            console.print(f"[dim]{outcome.value}[/dim]")
            with console.status("Looking up media..."):
                await client.hydrator.drain()
            updated = client.get_conversation(conversation.id)
            located = updated.find_message(message_id) if updated else None
            if located and located[1].media_url:
                click.echo(located[1].media_url)
            else:
                console.print("[yellow]Media not available yet.[/yellow]")
                raise SystemExit(1)

    _run(_hydrate())
