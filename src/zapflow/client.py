"""
AsyncZapFlow — wires the resolution engine to the backend and the gateway.

The client keeps the latest snapshot of each tracked conversation; every
change made by the engine goes through `_replace`, which stores the new
snapshot and forwards it to the application's `on_update` callback.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from zapflow.config import ApiConfig
from zapflow.content import extract_urls, normalize_content
from zapflow.identity import resolve_phone_number
from zapflow.media.hydrator import MediaHydrator
from zapflow.media.locator import locate_media
from zapflow.media.urls import to_renderable_url
from zapflow.models.conversation import Conversation, Message, MessageType
from zapflow.models.media import HydrationKey, HydrationOutcome
from zapflow.models.preview import LinkPreviewEntry
from zapflow.previews import LinkPreviewCache
from zapflow.sending import OutboundSender
from zapflow.transport.evolution import EvolutionClient
from zapflow.transport.http import BackendClient

logger = logging.getLogger(__name__)


class MediaView:
    __slots__ = ("url", "reference", "outcome")

    def __init__(self, url: Optional[str], reference: Optional[str] = None,
                 outcome: Optional[HydrationOutcome] = None):
        self.url = url
        self.reference = reference
        self.outcome = outcome

    @property
    def placeholder(self) -> bool:
        return self.url is None

    def __repr__(self) -> str:
        return f"MediaView(url={self.url!r}, outcome={self.outcome!r})"


class RenderedMessage:
    __slots__ = ("message", "content", "media", "links")

    def __init__(self, message: Message, content: str, media: Optional[MediaView], links: list[str]):
        self.message = message
        self.content = content
        self.media = media
        self.links = links

    def __repr__(self) -> str:
        return f"RenderedMessage(id={self.message.id!r}, type={self.message.type.value!r})"


class AsyncZapFlow:
    """Async console engine (primary entry point)."""

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        backend: Optional[BackendClient] = None,
        gateway: Optional[EvolutionClient] = None,
        on_update: Optional[Callable[[Conversation], None]] = None,
        on_preview: Optional[Callable[[str, LinkPreviewEntry], None]] = None,
    ):
        self.config = config or ApiConfig()
        self.backend = backend or BackendClient(self.config.backend_url, self.config.backend_token)
        self.gateway = gateway or EvolutionClient(self.config)
        self._on_update = on_update
        self._conversations: dict[str, Conversation] = {}
        self._preview_tasks: set[asyncio.Task[Any]] = set()

        self.hydrator = MediaHydrator(
            self.config,
            blob_store=self.backend,
            remote_lookup=self.gateway,
            get_conversation=self.get_conversation,
            replace_conversation=self._replace,
            on_retry=self._rerender,
        )
        self.previews = LinkPreviewCache(
            self.backend.fetch_link_preview,
            secure_origin=self.config.secure_origin,
            on_change=on_preview,
        )
        self.sender = OutboundSender(self.gateway, self._replace)

    # --- snapshots ---

    def track(self, conversation: Conversation) -> None:
        self._conversations[conversation.id] = conversation

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    def _replace(self, conversation: Conversation) -> None:
        self._conversations[conversation.id] = conversation
        if self._on_update is not None:
            self._on_update(conversation)

    def _rerender(self, key: HydrationKey) -> None:
        for conversation in list(self._conversations.values()):
            if any(
                m.is_media and self.hydrator.key_for(m, m.type) == key
                for m in conversation.messages
            ):
                self.render(conversation)

    # --- render pass ---

    def render_message(self, conversation: Conversation, message: Message) -> RenderedMessage:
        content = normalize_content(message.content, message.sender)
        media = None
        links: list[str] = []
        if message.is_media:
            media = self._media_view(conversation, message)
        elif message.type == MessageType.TEXT:
            links = extract_urls(content, self.config.secure_origin)
        return RenderedMessage(message, content, media, links)

    def render(self, conversation: Conversation) -> list[RenderedMessage]:
        """One render pass: resolve media, schedule lookups, warm link previews."""
        self.track(conversation)
        rendered = [self.render_message(conversation, m) for m in conversation.messages]
        urls = {url for item in rendered for url in item.links}
        if urls:
            self._warm_previews(urls)
        return rendered

    def _media_view(self, conversation: Conversation, message: Message) -> MediaView:
        reference = message.media_url or locate_media(message.raw, message.type)
        if reference:
            url = to_renderable_url(reference, self.config, message.mime_type, message.type)
            return MediaView(url, reference)
        outcome = self.hydrator.schedule(message, message.type, conversation.id)
        return MediaView(None, outcome=outcome)

    def _warm_previews(self, urls: set[str]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.previews.ensure_many(sorted(urls)))
        self._preview_tasks.add(task)
        task.add_done_callback(self._preview_tasks.discard)

    # --- identity & send ---

    @staticmethod
    def resolve_phone_number(conversation: Conversation) -> str:
        return resolve_phone_number(conversation)

    async def send_text(
        self,
        conversation_id: str,
        text: str,
        *,
        agent_name: Optional[str] = None,
        department: Optional[str] = None,
    ) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            raise KeyError(conversation_id)
        return await self.sender.send_text(
            conversation, text, agent_name=agent_name, department=department,
        )

    # --- lifecycle ---

    async def settle(self) -> None:
        """Wait for pending media lookups and preview fetches."""
        await self.hydrator.drain()
        while self._preview_tasks:
            await asyncio.gather(*list(self._preview_tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.settle()
        await self.hydrator.aclose()
        await self.backend.close()
        await self.gateway.close()

    async def __aenter__(self) -> "AsyncZapFlow":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
