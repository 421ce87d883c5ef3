"""Backend and gateway client tests against a mocked transport."""

import json

import httpx
import pytest

from zapflow.config import ApiConfig
from zapflow.errors import ConfigError, GatewayError
from zapflow.models.conversation import MessageType
from zapflow.transport.evolution import EvolutionClient
from zapflow.transport.http import BackendClient

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAA" + "A" * 300
CONFIG = ApiConfig(base_url="https://evo.example.com", api_key="secret", instance_name="main")


class Recorder:
    def __init__(self, status=200, payload=None):
        self.status = status
        self.payload = payload
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json=self.payload)


class TestBackendClient:
    @pytest.mark.asyncio
    async def test_load_media(self):
        recorder = Recorder(payload={"messageId": "WA1", "dataUrl": "data:image/png;base64,AA", "mimeType": "image/png"})
        client = BackendClient("http://backend.test/", token="tok", transport=httpx.MockTransport(recorder))

        stored = await client.load_media("webhook_messages", "WA1")

        assert stored.data_url == "data:image/png;base64,AA"
        assert stored.mime_type == "image/png"
        request = recorder.requests[0]
        assert request.url.path == "/api/data/webhook_messages"
        assert request.url.params["key"] == "WA1"
        assert request.headers["Authorization"] == "Bearer tok"
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_entry(self):
        client = BackendClient("http://backend.test", transport=httpx.MockTransport(Recorder(payload=None)))
        assert await client.load_media("webhook_messages", "WA1") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error(self):
        recorder = Recorder(status=500, payload={"error": "boom"})
        client = BackendClient("http://backend.test", transport=httpx.MockTransport(recorder))
        with pytest.raises(GatewayError) as exc:
            await client.load_data("webhook_messages", "WA1")
        assert exc.value.status_code == 500
        assert "Authorization" not in recorder.requests[0].headers
        await client.close()

    @pytest.mark.asyncio
    async def test_link_preview(self):
        recorder = Recorder(payload={"title": "Example", "image": "https://www.example.com/og.png"})
        client = BackendClient("http://backend.test", transport=httpx.MockTransport(recorder))

        preview = await client.fetch_link_preview("https://www.example.com")

        assert preview.url == "https://www.example.com"
        assert preview.title == "Example"
        assert recorder.requests[0].url.path == "/api/link-preview"
        await client.close()


class TestEvolutionClient:
    @pytest.mark.asyncio
    async def test_media_lookup_request(self):
        recorder = Recorder(payload={"mediaUrl": "https://evo.example.com/media/a.jpg"})
        client = EvolutionClient(CONFIG, transport=httpx.MockTransport(recorder))

        url = await client.fetch_media_url(CONFIG, "WA1", "5511999998888@s.whatsapp.net", MessageType.IMAGE)

        assert url == "https://evo.example.com/media/a.jpg"
        request = recorder.requests[0]
        assert str(request.url) == "https://evo.example.com/chat/getBase64FromMediaMessage/main"
        assert request.headers["apikey"] == "secret"
        assert json.loads(request.content) == {
            "message": {"key": {"id": "WA1", "remoteJid": "5511999998888@s.whatsapp.net"}},
            "convertToMp4": False,
        }
        await client.close()

    @pytest.mark.asyncio
    async def test_media_lookup_base64(self):
        recorder = Recorder(payload={"base64": PNG_B64, "mimetype": "image/png"})
        client = EvolutionClient(CONFIG, transport=httpx.MockTransport(recorder))
        url = await client.fetch_media_url(CONFIG, "WA1", "jid", MessageType.IMAGE)
        assert url == f"data:image/png;base64,{PNG_B64}"
        await client.close()

    @pytest.mark.asyncio
    async def test_media_lookup_empty(self):
        client = EvolutionClient(CONFIG, transport=httpx.MockTransport(Recorder(payload={})))
        assert await client.fetch_media_url(CONFIG, "WA1", "jid", MessageType.AUDIO) is None
        await client.close()

    @pytest.mark.asyncio
    async def test_no_credentials_no_request(self):
        recorder = Recorder(payload={})
        client = EvolutionClient(ApiConfig(), transport=httpx.MockTransport(recorder))
        assert await client.fetch_media_url(ApiConfig(), "WA1", "jid", MessageType.IMAGE) is None
        assert recorder.requests == []
        with pytest.raises(ConfigError):
            await client.send_text("5511999998888", "oi")
        await client.close()

    @pytest.mark.asyncio
    async def test_send_text(self):
        recorder = Recorder(payload={"key": {"id": "WA9"}, "status": "PENDING"})
        client = EvolutionClient(CONFIG, transport=httpx.MockTransport(recorder))

        response = await client.send_text("5511999998888", "Olá")

        assert response["key"]["id"] == "WA9"
        request = recorder.requests[0]
        assert request.url.path == "/message/sendText/main"
        body = json.loads(request.content)
        assert body["number"] == "5511999998888"
        assert body["textMessage"] == {"text": "Olá"}
        assert body["options"] == {"delay": 1200, "presence": "composing", "linkPreview": False}
        await client.close()

    @pytest.mark.asyncio
    async def test_send_text_gateway_error(self):
        client = EvolutionClient(CONFIG, transport=httpx.MockTransport(Recorder(status=401, payload={})))
        with pytest.raises(GatewayError) as exc:
            await client.send_text("5511999998888", "oi")
        assert exc.value.status_code == 401
        await client.close()
