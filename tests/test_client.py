"""AsyncZapFlow render pass tests with in-memory backend and gateway."""

import asyncio

import pytest

from zapflow import AsyncZapFlow, ApiConfig
from zapflow.models.conversation import AuthorRole, Conversation, Message, MessageType
from zapflow.models.media import HydrationKey, HydrationOutcome, StoredMedia
from zapflow.models.preview import LinkPreview, PreviewStatus

JID = "5511999998888@s.whatsapp.net"


class FakeBackend:
    def __init__(self, media=None, found_after=0):
        self.media = media or {}
        self.found_after = found_after
        self.media_calls = 0
        self.preview_calls = []

    async def load_media(self, namespace, message_id):
        self.media_calls += 1
        if self.media_calls <= self.found_after:
            return None
        return self.media.get(message_id)

    async def fetch_link_preview(self, url):
        self.preview_calls.append(url)
        return LinkPreview(url=url, title="Example")

    async def close(self):
        pass


class FakeGateway:
    def __init__(self):
        self.sent = []

    async def fetch_media_url(self, config, message_id, remote_jid, media_type):
        return None

    async def send_text(self, number, text):
        self.sent.append((number, text))
        return {"key": {"id": "WA9"}}

    async def close(self):
        pass


def _conversation():
    return Conversation(
        id=JID,
        messages=[
            Message(id="t1", content="Ana:\nVeja www.example.com", sender=AuthorRole.AGENT),
            Message(
                id="i1",
                type=MessageType.IMAGE,
                raw={"message": {"imageMessage": {"directPath": "/v/t62/a.enc"}}},
            ),
            Message(
                id="i2",
                type=MessageType.IMAGE,
                raw={"key": {"id": "WA2", "remoteJid": JID}, "message": {"imageMessage": {}}},
            ),
        ],
    )


def make_client(backend, config=None):
    updates = []
    client = AsyncZapFlow(
        config=config or ApiConfig(),
        backend=backend,
        gateway=FakeGateway(),
        on_update=updates.append,
    )
    return client, updates


@pytest.mark.asyncio
async def test_render_pass():
    backend = FakeBackend(media={"WA2": StoredMedia(data_url="https://files.test/a.jpg")})
    client, updates = make_client(backend)

    text, located, pending = client.render(_conversation())

    assert text.content == "Veja www.example.com"
    assert text.links == ["https://www.example.com"]
    assert located.media.url == "https://mmg.whatsapp.net/v/t62/a.enc"
    assert pending.media.placeholder
    assert pending.media.outcome == HydrationOutcome.SCHEDULED

    await client.settle()

    assert client.get_conversation(JID).messages[2].media_url == "https://files.test/a.jpg"
    assert updates[-1].messages[2].media_url == "https://files.test/a.jpg"
    assert client.previews.get("www.example.com").status == PreviewStatus.READY
    assert backend.preview_calls == ["https://www.example.com"]
    await client.close()


@pytest.mark.asyncio
async def test_repeated_renders_do_not_refetch():
    backend = FakeBackend()
    client, _ = make_client(backend)
    conversation = _conversation()

    client.render(conversation)
    _, _, pending = client.render(conversation)

    assert pending.media.outcome == HydrationOutcome.LOCKED
    await client.settle()
    assert backend.media_calls == 1
    assert len(backend.preview_calls) == 1
    await client.close()


@pytest.mark.asyncio
async def test_retry_rerenders_until_found():
    backend = FakeBackend(media={"WA2": StoredMedia(data_url="https://files.test/a.jpg")}, found_after=1)
    client, _ = make_client(backend, ApiConfig(retry_cooldown_s=0))

    client.render(_conversation())
    for _ in range(10):
        await client.settle()
        await asyncio.sleep(0.01)
        if client.get_conversation(JID).messages[2].media_url:
            break

    assert client.get_conversation(JID).messages[2].media_url == "https://files.test/a.jpg"
    assert client.hydrator.attempts(HydrationKey(MessageType.IMAGE, "WA2")) == 2
    await client.close()


@pytest.mark.asyncio
async def test_send_through_client():
    client, updates = make_client(FakeBackend())
    client.track(_conversation())

    snapshot = await client.send_text(JID, "Olá", agent_name="Ana")

    assert client.gateway.sent == [("5511999998888", "Ana:\nOlá")]
    assert snapshot.messages[-1].provider_message_id == "WA9"
    assert updates[-1] is snapshot
    with pytest.raises(KeyError):
        await client.send_text("unknown", "Olá")
    await client.close()


def test_resolve_phone_number():
    assert AsyncZapFlow.resolve_phone_number(_conversation()) == "5511999998888"
