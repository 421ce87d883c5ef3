"""
Integration tests for zapflow against a live Evolution API instance and console backend.

Requires environment variables:
  ZAPFLOW_BASE_URL       gateway URL
  ZAPFLOW_API_KEY        instance token
  ZAPFLOW_INSTANCE_NAME  instance name
  ZAPFLOW_BACKEND_URL    (optional) defaults to http://localhost:3001
  ZAPFLOW_TEST_NUMBER    (optional) number that receives the send test

Run: ZAPFLOW_INTEGRATION=1 pytest tests/integration/ -v
"""

import os

import pytest

from zapflow import AsyncZapFlow, Conversation
from zapflow.config import load_config
from zapflow.errors import GatewayError
from zapflow.models.delivery import DeliveryStatus

SKIP = not os.environ.get("ZAPFLOW_INTEGRATION")
TEST_NUMBER = os.environ.get("ZAPFLOW_TEST_NUMBER", "")

pytestmark = pytest.mark.skipif(SKIP, reason="ZAPFLOW_INTEGRATION not set")


def make_client() -> AsyncZapFlow:
    return AsyncZapFlow(config=load_config())


class TestBackend:
    @pytest.mark.asyncio
    async def test_link_preview(self):
        async with make_client() as client:
            entry = await client.previews.ensure_preview("www.example.com")
        assert entry is not None
        assert entry.status.value in ("ready", "error")

    @pytest.mark.asyncio
    async def test_unknown_media_is_absent(self):
        async with make_client() as client:
            assert await client.backend.load_media("webhook_messages", "does-not-exist") is None


class TestGateway:
    @pytest.mark.asyncio
    async def test_unknown_message_media(self):
        async with make_client() as client:
            assert client.config.has_credentials
            try:
                url = await client.gateway.fetch_media_url(
                    client.config, "does-not-exist", "5511999998888@s.whatsapp.net", "image",
                )
            except GatewayError:
                url = None
            assert url is None

    @pytest.mark.asyncio
    @pytest.mark.skipif(not TEST_NUMBER, reason="ZAPFLOW_TEST_NUMBER not set")
    async def test_send_text(self):
        async with make_client() as client:
            client.track(Conversation(id=f"{TEST_NUMBER}@s.whatsapp.net"))
            snapshot = await client.send_text(f"{TEST_NUMBER}@s.whatsapp.net", "zapflow integration test")
        sent = snapshot.messages[-1]
        assert sent.status == DeliveryStatus.SENT
        assert sent.provider_message_id
