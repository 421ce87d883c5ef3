"""CLI: zapflow send"""

from typing import Optional

import click
from rich.console import Console

from zapflow.errors import SendError, UnresolvableIdentityError

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


@click.command("send")
@click.argument("conversation_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("text")
@click.option("--agent", "agent_name", default=None, help="Agent name for the message header")
@click.option("--department", default=None)
def send_cmd(conversation_file: str, text: str, agent_name: Optional[str], department: Optional[str]):
    """Send TEXT to the contact of a conversation JSON file."""
    conversation = _load_conversation(conversation_file)

    async def _send():
        async with _get_client() as client:
            client.track(conversation)
            try:
                with console.status("Sending..."):
                    snapshot = await client.send_text(
                        conversation.id, text, agent_name=agent_name, department=department,
                    )
            except UnresolvableIdentityError as e:
                console.print(f"[red]{e}[/red]")
                raise SystemExit(1)
            except SendError as e:
                console.print(f"[red]{e}[/red]")
                raise SystemExit(2)
            sent = snapshot.messages[-1]
            console.print(f"[green]Sent[/green] ({sent.status.value}) id={sent.provider_message_id or sent.id}")

    _run(_send())
