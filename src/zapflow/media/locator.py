"""
Media locator — find a media reference inside an arbitrary provider payload.

Gateway versions nest the media node differently (`message.imageMessage`,
`data.message.imageMessage`, bare `imageMessage`, ...). Well-known paths are
tried first and classify the payload into a typed variant; payloads that
match none of them are searched with a bounded depth-first walk.
"""

import re
from datetime import date, datetime, time
from typing import Any, Iterator, Optional, Union

from pydantic import TypeAdapter

from zapflow.models.conversation import MessageType
from zapflow.models.media import VARIANT_BY_TYPE, PayloadVariant, UnknownVariant

MAX_DEPTH = 5

REFERENCE_FIELDS = ("url", "mediaUrl", "directPath")

PRIORITY_KEYS: dict[MessageType, tuple[str, ...]] = {
    MessageType.IMAGE: ("imageMessage", "message", "media"),
    MessageType.VIDEO: ("videoMessage", "imageMessage", "message", "media"),
    MessageType.AUDIO: ("audioMessage", "message", "media"),
    MessageType.DOCUMENT: ("documentMessage", "messageDocument", "message", "media"),
    MessageType.STICKER: ("stickerMessage", "imageMessage", "message", "media"),
}

_LEAF_TYPES = (str, bytes, int, float, bool, datetime, date, time, re.Pattern)

_variant_adapter = TypeAdapter(PayloadVariant)


def _valid(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _well_known_paths(media_type: MessageType) -> Iterator[tuple[str, ...]]:
    node = f"{media_type.value}Message"
    for field in REFERENCE_FIELDS:
        yield ("message", node, field)
    for field in REFERENCE_FIELDS:
        yield (node, field)
    yield ("message", "url")
    yield ("message", "mediaUrl")
    yield ("url",)
    yield ("mediaUrl",)
    yield ("data", "message", node, "url")
    yield ("data", "message", node, "mediaUrl")
    yield ("data", node, "url")
    yield ("data", node, "mediaUrl")


def _dig(raw: Any, path: tuple[str, ...]) -> Any:
    node = raw
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def classify_payload(raw: Any, media_type: Union[MessageType, str]) -> PayloadVariant:
    """Typed view of a payload: the variant for `media_type` when a well-known
    path holds a reference, UnknownVariant otherwise."""
    media_type = MessageType(media_type)
    variant_cls = VARIANT_BY_TYPE.get(media_type)
    if variant_cls is None or not isinstance(raw, dict):
        return UnknownVariant()
    for path in _well_known_paths(media_type):
        value = _dig(raw, path)
        if _valid(value):
            return _variant_adapter.validate_python(
                {"kind": media_type.value, "reference": value, "path": ".".join(path)}
            )
    return UnknownVariant()


def _walk(node: Any, priority: tuple[str, ...], depth: int, visited: set[int]) -> Optional[str]:
    if depth > MAX_DEPTH or not isinstance(node, (dict, list, tuple)):
        return None
    if id(node) in visited:
        return None
    visited.add(id(node))

    if isinstance(node, (list, tuple)):
        for item in node:
            found = _walk(item, priority, depth + 1, visited)
            if found:
                return found
        return None

    for field in REFERENCE_FIELDS:
        value = node.get(field)
        if _valid(value):
            return value

    for key in priority:
        child = node.get(key)
        if child:
            found = _walk(child, priority, depth + 1, visited)
            if found:
                return found

    for key, child in node.items():
        if key in priority or not child or isinstance(child, _LEAF_TYPES):
            continue
        found = _walk(child, priority, depth + 1, visited)
        if found:
            return found
    return None


def locate_media(raw: Any, media_type: Union[MessageType, str]) -> Optional[str]:
    """Return the first media reference found in `raw`, or None.

    Pure and bounded (depth 5, cycle-safe); malformed payloads yield None.
    """
    if not raw:
        return None
    try:
        media_type = MessageType(media_type)
    except ValueError:
        return None
    variant = classify_payload(raw, media_type)
    if not isinstance(variant, UnknownVariant):
        return variant.reference
    return _walk(raw, PRIORITY_KEYS.get(media_type, ("message", "media")), 0, set())


def extract_message_key(raw: Any) -> tuple[Optional[str], Optional[str]]:
    """(provider message id, remote jid) from the shapes the gateway is known to emit."""
    if not isinstance(raw, dict):
        return None, None

    message_id = None
    for path in (("key", "id"), ("data", "key", "id"), ("message", "key", "id")):
        value = _dig(raw, path)
        if _valid(value):
            message_id = value
            break

    remote_jid = None
    for path in (
        ("key", "remoteJid"),
        ("key", "remoteJidAlt"),
        ("data", "key", "remoteJid"),
        ("data", "key", "remoteJidAlt"),
        ("message", "key", "remoteJid"),
    ):
        value = _dig(raw, path)
        if _valid(value):
            remote_jid = value
            break

    return message_id, remote_jid
