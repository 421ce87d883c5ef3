"""
Media hydration records and typed provider payload variants.
"""

from enum import Enum
from typing import Annotated, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, Field

from zapflow.models.conversation import MessageType


class HydrationKey(NamedTuple):
    """Dedup key: one in-flight lookup per (media type, provider message id)."""
    media_type: MessageType
    message_id: str


class HydrationState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FOUND = "found"
    RETRY_WAIT = "retry_wait"
    EXHAUSTED = "exhausted"


class HydrationOutcome(str, Enum):
    """What schedule() decided for a call."""
    SCHEDULED = "scheduled"
    SKIPPED = "skipped"        # payload lacks message id / remote jid
    LOCKED = "locked"          # a lookup for the key is in flight or cooling down
    EXHAUSTED = "exhausted"    # attempt budget spent


class FetchState:
    __slots__ = ("attempts", "locked", "state")

    def __init__(self) -> None:
        self.attempts = 0
        self.locked = False
        self.state = HydrationState.IDLE

    def __repr__(self) -> str:
        return f"FetchState(attempts={self.attempts}, locked={self.locked}, state={self.state.value})"


class StoredMedia(BaseModel):
    """A media blob persisted by the webhook receiver, keyed by provider message id."""
    message_id: Optional[str] = Field(default=None, alias="messageId")
    data_url: Optional[str] = Field(default=None, alias="dataUrl")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    model_config = {"populate_by_name": True}


# --- Payload variants ---

class _ResolvedVariant(BaseModel):
    reference: str
    path: str  # dotted path the reference was read from


class ImageVariant(_ResolvedVariant):
    kind: Literal["image"] = "image"


class VideoVariant(_ResolvedVariant):
    kind: Literal["video"] = "video"


class AudioVariant(_ResolvedVariant):
    kind: Literal["audio"] = "audio"


class DocumentVariant(_ResolvedVariant):
    kind: Literal["document"] = "document"


class StickerVariant(_ResolvedVariant):
    kind: Literal["sticker"] = "sticker"


class UnknownVariant(BaseModel):
    """Payload shape with no well-known media path; only the generic walker applies."""
    kind: Literal["unknown"] = "unknown"


PayloadVariant = Annotated[
    Union[ImageVariant, VideoVariant, AudioVariant, DocumentVariant, StickerVariant, UnknownVariant],
    Field(discriminator="kind"),
]

VARIANT_BY_TYPE: dict[MessageType, type[_ResolvedVariant]] = {
    MessageType.IMAGE: ImageVariant,
    MessageType.VIDEO: VideoVariant,
    MessageType.AUDIO: AudioVariant,
    MessageType.DOCUMENT: DocumentVariant,
    MessageType.STICKER: StickerVariant,
}
