"""
Evolution API client — media lookup by message id and outbound text.

Every request authenticates with the instance token in the `apikey` header.
"""

import logging
from typing import Any, Optional

import httpx

from zapflow.config import ApiConfig
from zapflow.errors import ConfigError, GatewayError
from zapflow.media.urls import to_data_uri
from zapflow.models.conversation import MessageType
from zapflow.transport.http import USER_AGENT

logger = logging.getLogger(__name__)

SEND_DELAY_MS = 1200


class EvolutionClient:
    def __init__(self, config: ApiConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=30.0,
            transport=transport,
        )

    def _require(self, config: ApiConfig) -> None:
        if not config.has_credentials:
            raise ConfigError("gateway base_url and api_key are required")
        if not config.instance_name:
            raise ConfigError("gateway instance_name is required")

    async def _post(self, config: ApiConfig, path: str, body: dict[str, Any]) -> Any:
        resp = await self._client.post(
            f"{config.gateway_url}{path}",
            json=body,
            headers={"Content-Type": "application/json", "apikey": config.api_key},
        )
        if resp.status_code >= 400:
            raise GatewayError(f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code)
        return resp.json()

    async def fetch_media_url(
        self,
        config: ApiConfig,
        message_id: str,
        remote_jid: str,
        media_type: MessageType,
    ) -> Optional[str]:
        """Ask the gateway for a message's media. Returns a URL or data URI, None when absent."""
        if not config.has_credentials:
            return None
        self._require(config)
        data = await self._post(
            config,
            f"/chat/getBase64FromMediaMessage/{config.instance_name}",
            {"message": {"key": {"id": message_id, "remoteJid": remote_jid}}, "convertToMp4": False},
        )
        if not isinstance(data, dict):
            return None
        media_url = data.get("mediaUrl") or data.get("url")
        if isinstance(media_url, str) and media_url.strip():
            return media_url
        payload = data.get("base64")
        if isinstance(payload, str) and payload.strip():
            if payload.startswith("data:"):
                return payload
            return to_data_uri(payload, data.get("mimetype"), media_type)
        return None

    async def send_text(self, number: str, text: str) -> dict[str, Any]:
        """Send a text message; returns the gateway's message record."""
        self._require(self._config)
        data = await self._post(
            self._config,
            f"/message/sendText/{self._config.instance_name}",
            {
                "number": number,
                "options": {"delay": SEND_DELAY_MS, "presence": "composing", "linkPreview": False},
                "textMessage": {"text": text},
                "text": text,
            },
        )
        return data if isinstance(data, dict) else {}

    async def close(self) -> None:
        await self._client.aclose()
