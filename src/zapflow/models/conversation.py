"""
Conversation / message snapshots.

Snapshots are immutable: every change produces a new Conversation that is
handed to the application through the snapshot-replace callback.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from zapflow.models.delivery import DeliveryStatus, advance


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"


MEDIA_TYPES = frozenset({
    MessageType.IMAGE, MessageType.VIDEO, MessageType.AUDIO,
    MessageType.DOCUMENT, MessageType.STICKER,
})


class AuthorRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class ConversationStatus(str, Enum):
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str = ""
    sender: AuthorRole = AuthorRole.USER
    type: MessageType = MessageType.TEXT
    author: Optional[str] = None          # raw provider jid of whoever sent it
    media_url: Optional[str] = None
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    provider_message_id: Optional[str] = None  # key.id on the gateway
    raw: Optional[Any] = None             # untouched provider payload
    status: DeliveryStatus = DeliveryStatus.SENT
    timestamp: Optional[datetime] = None

    @property
    def is_media(self) -> bool:
        return self.type in MEDIA_TYPES

    def with_provider_id(self, provider_message_id: str) -> "Message":
        if self.provider_message_id and self.provider_message_id != provider_message_id:
            raise ValueError(
                f"message {self.id} already bound to provider id {self.provider_message_id}"
            )
        return self.model_copy(update={"provider_message_id": provider_message_id})

    def with_status(self, status: DeliveryStatus) -> "Message":
        return self.model_copy(update={"status": advance(self.status, status)})

    def with_media(self, media_url: str, mime_type: Optional[str] = None) -> "Message":
        return self.model_copy(update={
            "media_url": media_url,
            "mime_type": mime_type or self.mime_type,
        })


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    contact_name: str = ""
    contact_number: Optional[str] = None
    status: ConversationStatus = ConversationStatus.OPEN
    messages: list[Message] = Field(default_factory=list)

    def find_message(self, message_id: str) -> Optional[tuple[int, Message]]:
        """Look a message up by local id or provider id."""
        for index, message in enumerate(self.messages):
            if message.id == message_id or (
                message.provider_message_id and message.provider_message_id == message_id
            ):
                return index, message
        return None

    def replace_message(self, index: int, message: Message) -> "Conversation":
        messages = list(self.messages)
        messages[index] = message
        return self.model_copy(update={"messages": messages})

    def append_message(self, message: Message) -> "Conversation":
        return self.model_copy(update={"messages": [*self.messages, message]})

    def patch_message(
        self,
        message_id: str,
        *,
        media_url: Optional[str] = None,
        mime_type: Optional[str] = None,
        status: Optional[DeliveryStatus] = None,
        provider_message_id: Optional[str] = None,
    ) -> "Conversation":
        """Apply a hydrator or send-ack patch. Unknown ids return the snapshot unchanged."""
        found = self.find_message(message_id)
        if found is None:
            return self
        index, message = found
        if provider_message_id:
            message = message.with_provider_id(provider_message_id)
        if media_url:
            message = message.with_media(media_url, mime_type)
        if status is not None:
            message = message.with_status(status)
        return self.replace_message(index, message)
