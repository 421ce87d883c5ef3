"""
Media hydrator — asynchronous fallback when a payload carries no media reference.

The gateway webhook may persist the media blob a few seconds after the message
event arrives, so a miss is retried on a short cooldown while a hit holds the
key locked for a long cooldown to absorb duplicate renders.

Per key (media type, provider message id):
- IDLE -> FETCHING on schedule(), unless the attempt budget is spent
- FETCHING: blob store first, then the remote gateway lookup when configured
- FOUND: message patched through the snapshot callback, lock held 60s, entry dropped
- RETRY_WAIT: lock released after 4s, retry signalled
- EXHAUSTED: attempts == max, schedule() refuses until reset()
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol, Union

from zapflow.config import ApiConfig
from zapflow.media.locator import extract_message_key
from zapflow.models.conversation import Conversation, Message, MessageType
from zapflow.models.media import (
    FetchState,
    HydrationKey,
    HydrationOutcome,
    HydrationState,
    StoredMedia,
)

logger = logging.getLogger(__name__)

WEBHOOK_NAMESPACE = "webhook_messages"


class BlobStore(Protocol):
    async def load_media(self, namespace: str, message_id: str) -> Optional[StoredMedia]: ...


class RemoteMediaLookup(Protocol):
    async def fetch_media_url(
        self, config: ApiConfig, message_id: str, remote_jid: str, media_type: MessageType,
    ) -> Optional[str]: ...


SnapshotCallback = Callable[[Conversation], None]
ConversationGetter = Callable[[str], Optional[Conversation]]
RetryCallback = Callable[[HydrationKey], None]


class _Request:
    __slots__ = ("message", "conversation_id", "remote_jid")

    def __init__(self, message: Message, conversation_id: str, remote_jid: str):
        self.message = message
        self.conversation_id = conversation_id
        self.remote_jid = remote_jid


class MediaHydrator:
    def __init__(
        self,
        config: ApiConfig,
        blob_store: BlobStore,
        remote_lookup: RemoteMediaLookup,
        get_conversation: ConversationGetter,
        replace_conversation: SnapshotCallback,
        on_retry: Optional[RetryCallback] = None,
        auto_retry: bool = False,
        namespace: str = WEBHOOK_NAMESPACE,
    ):
        self._config = config
        self._blob_store = blob_store
        self._remote_lookup = remote_lookup
        self._get_conversation = get_conversation
        self._replace_conversation = replace_conversation
        self._on_retry = on_retry
        self._auto_retry = auto_retry
        self._namespace = namespace
        self._states: dict[HydrationKey, FetchState] = {}
        self._requests: dict[HydrationKey, _Request] = {}
        self._timers: dict[HydrationKey, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._running: dict[HydrationKey, asyncio.Task[Any]] = {}

    # --- inspection ---

    def state(self, key: HydrationKey) -> HydrationState:
        entry = self._states.get(key)
        return entry.state if entry else HydrationState.IDLE

    def attempts(self, key: HydrationKey) -> int:
        entry = self._states.get(key)
        return entry.attempts if entry else 0

    def in_flight(self, key: HydrationKey) -> bool:
        entry = self._states.get(key)
        return bool(entry and entry.state == HydrationState.FETCHING)

    def locked(self, key: HydrationKey) -> bool:
        entry = self._states.get(key)
        return bool(entry and entry.locked)

    @staticmethod
    def key_for(message: Message, media_type: Union[MessageType, str]) -> Optional[HydrationKey]:
        message_id = message.provider_message_id or extract_message_key(message.raw)[0]
        if not message_id:
            return None
        try:
            return HydrationKey(MessageType(media_type), message_id)
        except ValueError:
            return None

    # --- scheduling ---

    def schedule(
        self,
        message: Message,
        media_type: Union[MessageType, str],
        conversation_id: str,
    ) -> HydrationOutcome:
        """Start a lookup for the message's media unless one is running or the budget is spent.

        Never raises; the returned outcome says what was decided.
        """
        key = self.key_for(message, media_type)
        remote_jid = extract_message_key(message.raw)[1]
        if key is None or not remote_jid:
            return HydrationOutcome.SKIPPED

        entry = self._states.get(key)
        if entry is not None and entry.attempts >= self._config.max_attempts:
            # a running lookup or cooldown keeps its state until released
            if not entry.locked:
                entry.state = HydrationState.EXHAUSTED
            logger.debug("media lookup for %s refused: %d attempts spent", key, entry.attempts)
            return HydrationOutcome.EXHAUSTED
        if entry is not None and entry.locked:
            return HydrationOutcome.LOCKED

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("media lookup for %s not scheduled: no running event loop", key)
            return HydrationOutcome.SKIPPED

        if entry is None:
            entry = self._states[key] = FetchState()
        entry.attempts += 1
        entry.locked = True
        entry.state = HydrationState.FETCHING
        self._requests[key] = _Request(message, conversation_id, remote_jid)

        task = loop.create_task(self._hydrate(key))
        self._tasks.add(task)
        self._running[key] = task
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda t, key=key: self._forget_task(key, t))
        return HydrationOutcome.SCHEDULED

    def _forget_task(self, key: HydrationKey, task: "asyncio.Task[Any]") -> None:
        if self._running.get(key) is task:
            del self._running[key]

    def reset(self, key: HydrationKey) -> None:
        """Forget a key entirely so a manual action can start over.

        A lookup still running for the key is cancelled.
        """
        task = self._running.pop(key, None)
        if task:
            task.cancel()
        timer = self._timers.pop(key, None)
        if timer:
            timer.cancel()
        self._states.pop(key, None)
        self._requests.pop(key, None)

    async def drain(self) -> None:
        """Wait for every lookup currently in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    # --- lookup ---

    async def _hydrate(self, key: HydrationKey) -> None:
        request = self._requests.get(key)
        if request is None:
            return
        found = await self._from_blob_store(key)
        overwrite = True
        if found is None and self._config.has_credentials:
            found = await self._from_gateway(key, request.remote_jid)
            overwrite = False

        if found is not None:
            self._on_found(key, request, found[0], found[1], overwrite)
        else:
            self._on_miss(key)

    async def _from_blob_store(self, key: HydrationKey) -> Optional[tuple[str, Optional[str]]]:
        try:
            stored = await self._blob_store.load_media(self._namespace, key.message_id)
        except Exception as e:
            logger.warning("blob store lookup failed for %s: %s", key, e)
            return None
        if stored is not None and stored.data_url:
            return stored.data_url, stored.mime_type
        return None

    async def _from_gateway(self, key: HydrationKey, remote_jid: str) -> Optional[tuple[str, Optional[str]]]:
        try:
            url = await self._remote_lookup.fetch_media_url(
                self._config, key.message_id, remote_jid, key.media_type,
            )
        except Exception as e:
            logger.warning("gateway media lookup failed for %s: %s", key, e)
            return None
        return (url, None) if url else None

    # --- transitions ---

    def _on_found(
        self, key: HydrationKey, request: _Request, media_url: str,
        mime_type: Optional[str], overwrite: bool,
    ) -> None:
        entry = self._states.get(key)
        if entry is None:
            return
        entry.state = HydrationState.FOUND
        self._arm(key, self._config.success_cooldown_s, self._release_found)
        logger.info("media resolved for %s", key)

        conversation = self._get_conversation(request.conversation_id)
        if conversation is None:
            return
        located = conversation.find_message(request.message.id) or conversation.find_message(key.message_id)
        if located is None or (located[1].media_url and not overwrite):
            return
        patched = conversation.replace_message(located[0], located[1].with_media(media_url, mime_type))
        try:
            self._replace_conversation(patched)
        except Exception as e:
            logger.error("snapshot update failed for %s: %s", key, e)

    def _on_miss(self, key: HydrationKey) -> None:
        entry = self._states.get(key)
        if entry is None:
            return
        entry.state = HydrationState.RETRY_WAIT
        logger.debug("media for %s not available yet (attempt %d)", key, entry.attempts)
        self._arm(key, self._config.retry_cooldown_s, self._release_retry)

    def _arm(self, key: HydrationKey, delay: float, callback: Callable[[HydrationKey], None]) -> None:
        previous = self._timers.pop(key, None)
        if previous:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, callback, key)

    def _release_found(self, key: HydrationKey) -> None:
        self._timers.pop(key, None)
        self._states.pop(key, None)
        self._requests.pop(key, None)

    def _release_retry(self, key: HydrationKey) -> None:
        self._timers.pop(key, None)
        entry = self._states.get(key)
        if entry is None:
            return
        entry.locked = False
        if entry.attempts >= self._config.max_attempts:
            entry.state = HydrationState.EXHAUSTED
            logger.warning("giving up on media for %s after %d attempts", key, entry.attempts)
            return
        entry.state = HydrationState.IDLE

        if self._on_retry is not None:
            try:
                self._on_retry(key)
            except Exception as e:
                logger.error("retry callback failed for %s: %s", key, e)

        if self._auto_retry:
            self._retry(key)

    def _retry(self, key: HydrationKey) -> None:
        request = self._requests.get(key)
        if request is None:
            return
        conversation = self._get_conversation(request.conversation_id)
        if conversation is not None:
            located = conversation.find_message(request.message.id)
            if located is None or located[1].media_url:
                return
            message = located[1]
        else:
            message = request.message
        self.schedule(message, key.media_type, request.conversation_id)
