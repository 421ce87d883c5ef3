"""
ZapFlow CLI — `zapflow` command.

Commands:
  zapflow resolve <file>           Sendable phone number for a conversation
  zapflow locate <file>            Media reference inside a raw payload
  zapflow normalize <text>         Strip agent headers from message text
  zapflow urls <text>              Links found in message text
  zapflow preview <url>            Fetch a link preview through the backend
  zapflow hydrate <file> <msg-id>  Look up a message's media
  zapflow send <file> <text>       Send text to a conversation's contact
  zapflow config show|set          Inspect / edit ~/.zapflow/config.json
"""

import asyncio
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install zapflow[cli]")

from zapflow.client import AsyncZapFlow
from zapflow.config import load_config
from zapflow.models.conversation import Conversation

console = Console()


def _get_client() -> AsyncZapFlow:
    return AsyncZapFlow(config=load_config())


def _load_conversation(path: str) -> Conversation:
    return Conversation.model_validate_json(Path(path).read_text())


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(verbose: bool):
    """ZapFlow — identity and media resolution for the support console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


# Register subcommands from separate modules
from zapflow.cli.config import config  # noqa: E402
from zapflow.cli.inspect import locate_cmd, normalize_cmd, resolve_cmd, urls_cmd  # noqa: E402
from zapflow.cli.media import hydrate_cmd, preview_cmd  # noqa: E402
from zapflow.cli.send import send_cmd  # noqa: E402

main.add_command(resolve_cmd)
main.add_command(locate_cmd)
main.add_command(normalize_cmd)
main.add_command(urls_cmd)
main.add_command(preview_cmd)
main.add_command(hydrate_cmd)
main.add_command(send_cmd)
main.add_command(config)


if __name__ == "__main__":
    main()
