"""
Turn a media reference into something a browser can load.

References arrive as absolute URLs, WhatsApp CDN direct paths, bare base64
blobs, data URIs or paths relative to the gateway.
"""

import re
from typing import Optional, Union
from urllib.parse import urlsplit

import httpx

from zapflow.config import ApiConfig
from zapflow.models.conversation import MessageType

CDN_HOST = "mmg.whatsapp.net"

BASE64_MIN_LENGTH = 200

# JPEG base64 starts with "/", like a path
JPEG_BASE64_PREFIX = "/9j/"

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_WHITESPACE = re.compile(r"\s")

# Leading base64 characters of well-known file signatures
BASE64_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("/9j/", "image/jpeg"),
    ("iVBORw0KGgo", "image/png"),
    ("R0lGOD", "image/gif"),
    ("UklGR", "image/webp"),
    ("JVBERi0", "application/pdf"),
    ("AAAAIGZ0eXB", "video/mp4"),
    ("AAAAHGZ0eXB", "video/mp4"),
)

DEFAULT_MIME_BY_TYPE: dict[MessageType, str] = {
    MessageType.IMAGE: "image/jpeg",
    MessageType.STICKER: "image/webp",
    MessageType.VIDEO: "video/mp4",
    MessageType.AUDIO: "audio/ogg; codecs=opus",
}
FALLBACK_MIME = "application/octet-stream"


def is_likely_base64(value: str) -> bool:
    compact = _WHITESPACE.sub("", value)
    if compact.startswith("/") and not compact.startswith(JPEG_BASE64_PREFIX):
        return False
    return (
        len(compact) > BASE64_MIN_LENGTH
        and not compact.startswith(("data:", "http://", "https://"))
        and bool(_BASE64_PATTERN.match(compact))
    )


def guess_mime_from_base64(value: str) -> Optional[str]:
    head = value[:20]
    for prefix, mime in BASE64_SIGNATURES:
        if head.startswith(prefix):
            return mime
    return None


def to_data_uri(
    payload: str,
    mime_type: Optional[str] = None,
    media_type: Union[MessageType, str, None] = None,
) -> str:
    compact = _WHITESPACE.sub("", payload)
    mime = (mime_type or "").strip() or guess_mime_from_base64(compact)
    if not mime:
        try:
            mime = DEFAULT_MIME_BY_TYPE.get(MessageType(media_type), FALLBACK_MIME) if media_type else FALLBACK_MIME
        except ValueError:
            mime = FALLBACK_MIME
    return f"data:{mime};base64,{compact}"


def _cdn_url(reference: str) -> Optional[str]:
    if reference.startswith(f"{CDN_HOST}/"):
        return f"https://{reference}"
    if reference.startswith(("/v/", "/mms/")):
        return f"https://{CDN_HOST}{reference}"
    if reference.startswith(("v/", "mms/")):
        return f"https://{CDN_HOST}/{reference}"
    return None


def _with_api_key(url: str, config: ApiConfig) -> str:
    if not config.api_key:
        return url
    return str(httpx.URL(url).copy_set_param("apikey", config.api_key))


def _gateway_host(config: ApiConfig) -> str:
    gateway = config.gateway_url
    if not gateway:
        return ""
    if "://" not in gateway:
        gateway = f"http://{gateway}"
    return urlsplit(gateway).hostname or ""


def to_renderable_url(
    reference: Optional[str],
    config: Optional[ApiConfig] = None,
    mime_type: Optional[str] = None,
    media_type: Union[MessageType, str, None] = None,
) -> Optional[str]:
    """Resolve a raw media reference against the gateway configuration."""
    if not reference:
        return None
    config = config or ApiConfig()
    trimmed = str(reference).strip()
    if not trimmed:
        return None

    cdn = _cdn_url(trimmed)
    if cdn:
        return cdn

    if is_likely_base64(trimmed):
        return to_data_uri(trimmed, mime_type, media_type)

    if trimmed.startswith("data:"):
        return trimmed

    if trimmed.startswith(("http://", "https://")):
        host = _gateway_host(config)
        if host and urlsplit(trimmed).hostname == host:
            return _with_api_key(trimmed, config)
        return trimmed

    if config.gateway_url:
        return _with_api_key(f"{config.gateway_url}/{trimmed.lstrip('/')}", config)

    return trimmed
