"""CLI: zapflow resolve|locate|normalize|urls"""

import json
from pathlib import Path

import click
from rich.console import Console

from zapflow.content import extract_urls, normalize_content
from zapflow.identity import resolve_phone_number
from zapflow.media.locator import classify_payload, locate_media
from zapflow.models.conversation import AuthorRole, MessageType

console = Console()


def _load_conversation(path: str):
    from zapflow.cli.main import _load_conversation
    return _load_conversation(path)


@click.command("resolve")
@click.argument("conversation_file", type=click.Path(exists=True, dir_okay=False))
def resolve_cmd(conversation_file: str):
    """Print the sendable phone number for a conversation JSON file."""
    conversation = _load_conversation(conversation_file)
    number = resolve_phone_number(conversation)
    if not number:
        console.print(f"[red]No valid phone number for {conversation.id}[/red]")
        raise SystemExit(1)
    click.echo(number)


@click.command("locate")
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-t", "--type", "media_type", default="image",
              type=click.Choice([t.value for t in MessageType if t is not MessageType.TEXT]))
@click.option("--json-output", "--json", is_flag=True)
def locate_cmd(payload_file: str, media_type: str, json_output: bool):
    """Find the media reference inside a raw provider payload."""
    raw = json.loads(Path(payload_file).read_text())
    reference = locate_media(raw, media_type)
    if json_output:
        variant = classify_payload(raw, media_type)
        click.echo(json.dumps({"reference": reference, "variant": variant.model_dump()}))
        return
    if reference is None:
        console.print("[yellow]No media reference found.[/yellow]")
        raise SystemExit(1)
    click.echo(reference)


@click.command("normalize")
@click.argument("text")
@click.option("--role", default=AuthorRole.AGENT.value,
              type=click.Choice([r.value for r in AuthorRole]))
def normalize_cmd(text: str, role: str):
    """Strip injected agent headers ("Name:\\n") from message text."""
    click.echo(normalize_content(text.replace("\\n", "\n"), role))


@click.command("urls")
@click.argument("text")
@click.option("--insecure-origin", is_flag=True, help="Assume the console is served over http")
def urls_cmd(text: str, insecure_origin: bool):
    """List the links found in message text."""
    for url in extract_urls(text, secure_origin=not insecure_origin):
        click.echo(url)
