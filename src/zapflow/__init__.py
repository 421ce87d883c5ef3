"""
zapflow — message identity & media resolution engine for a WhatsApp support console.

Resolves sendable phone numbers, locates and hydrates media references from
Evolution API payloads, and caches link previews.
"""

from zapflow.client import AsyncZapFlow
from zapflow.config import ApiConfig
from zapflow.content import normalize_content
from zapflow.errors import (
    ConfigError,
    DeliveryStateError,
    GatewayError,
    SendError,
    UnresolvableIdentityError,
    ZapFlowError,
)
from zapflow.identity import resolve_phone_number
from zapflow.media.hydrator import MediaHydrator
from zapflow.media.locator import locate_media
from zapflow.models.conversation import AuthorRole, Conversation, Message, MessageType
from zapflow.previews import LinkPreviewCache

__version__ = "0.1.0"
__all__ = [
    "AsyncZapFlow",
    "ApiConfig",
    "AuthorRole",
    "Conversation",
    "Message",
    "MessageType",
    "MediaHydrator",
    "LinkPreviewCache",
    "locate_media",
    "normalize_content",
    "resolve_phone_number",
    "ZapFlowError",
    "UnresolvableIdentityError",
    "GatewayError",
    "ConfigError",
    "SendError",
    "DeliveryStateError",
]
