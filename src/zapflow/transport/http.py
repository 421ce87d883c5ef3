"""
REST client for the console backend: persisted webhook media and link previews.
"""

import logging
from typing import Any, Optional

import httpx

from zapflow.config import DEFAULT_BACKEND_URL
from zapflow.errors import GatewayError
from zapflow.models.preview import LinkPreview
from zapflow.models.media import StoredMedia

logger = logging.getLogger(__name__)

USER_AGENT = "zapflow/0.1.0"


class BackendClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BACKEND_URL,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=30.0,
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def get(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers())
        if resp.status_code >= 400:
            raise GatewayError(f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code)
        return resp.json()

    async def load_data(self, namespace: str, key: str) -> Any:
        """One keyed entry of a user-data namespace; None when absent."""
        return await self.get(f"/data/{namespace}", params={"key": key})

    async def load_media(self, namespace: str, message_id: str) -> Optional[StoredMedia]:
        data = await self.load_data(namespace, message_id)
        if not isinstance(data, dict):
            return None
        return StoredMedia.model_validate(data)

    async def fetch_link_preview(self, url: str) -> LinkPreview:
        data = await self.get("/link-preview", params={"url": url})
        if not isinstance(data, dict):
            raise GatewayError("malformed link preview response")
        return LinkPreview.model_validate({"url": url, **data})

    async def close(self) -> None:
        await self._client.aclose()
