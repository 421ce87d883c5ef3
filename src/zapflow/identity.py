"""
Identity resolver — derive the sendable phone number for a conversation.

Sources disagree: the conversation id may be a jid, a bare number or an
internal id; message authors may be list (`@lid`) or group (`@g.us`) jids;
the stored contact number may be a generated id. The resolver walks a fixed
priority chain and returns "" when nothing sendable is found.
"""

import logging
import re

from zapflow.errors import UnresolvableIdentityError
from zapflow.models.conversation import Conversation

logger = logging.getLogger(__name__)

MIN_DIGITS = 10
MAX_DIGITS = 14  # anything longer is a broadcast-list id, not a phone number

GROUP_SUFFIX = "@g.us"
LIST_SUFFIXES = ("@lid", "@broadcast")
SYNTHETIC_PREFIX = "chat_"
SYNTHETIC_MARKER = "cmin"

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def is_group_address(value: str) -> bool:
    return GROUP_SUFFIX in value


def is_list_address(value: str) -> bool:
    return any(suffix in value for suffix in LIST_SUFFIXES)


def is_synthetic_id(value: str) -> bool:
    """Ids generated by the console itself (never phone numbers)."""
    return value.startswith(SYNTHETIC_PREFIX) or SYNTHETIC_MARKER in value


def _in_window(count: int) -> bool:
    return MIN_DIGITS <= count <= MAX_DIGITS


def _local_part(jid: str) -> str:
    return jid.split("@", 1)[0]


def _from_address_id(conversation_id: str) -> str:
    if (
        "@" not in conversation_id
        or is_group_address(conversation_id)
        or is_list_address(conversation_id)
        or is_synthetic_id(conversation_id)
    ):
        return ""
    digits = digits_only(_local_part(conversation_id))
    if _in_window(len(digits)):
        return digits
    if len(digits) > MAX_DIGITS:
        logger.debug("ignoring over-long jid %s (%d digits, likely a list id)", conversation_id, len(digits))
    return ""


def _from_authors(conversation: Conversation, current: str) -> str:
    best = len(current)
    for message in reversed(conversation.messages):
        author = message.author
        if not author:
            continue
        if is_list_address(author) or is_group_address(author):
            continue
        digits = digits_only(_local_part(author))
        if _in_window(len(digits)) and len(digits) > best:
            return digits
        if len(digits) > MAX_DIGITS:
            logger.debug("ignoring over-long author %s (%d digits)", author, len(digits))
    return current


def _contact_digits(contact_number: str | None) -> str:
    if not contact_number or is_synthetic_id(contact_number):
        return ""
    digits = digits_only(contact_number)
    return digits if len(digits) >= MIN_DIGITS else ""


def _from_bare_id(conversation_id: str) -> str:
    if is_list_address(conversation_id) or is_group_address(conversation_id):
        return ""
    local = _local_part(conversation_id)
    if is_synthetic_id(local):
        return ""
    digits = digits_only(local)
    if _in_window(len(digits)):
        return digits
    if len(digits) > MAX_DIGITS:
        logger.debug("ignoring over-long conversation id %s (%d digits)", local, len(digits))
    return ""


def _needs_more(candidate: str) -> bool:
    return len(candidate) < MIN_DIGITS


def resolve_phone_number(conversation: Conversation) -> str:
    """Return the digits-only target number, or "" when the conversation is unsendable.

    Never raises. A non-empty result always has between 10 and 14 digits.
    """
    candidate = _from_address_id(conversation.id)
    if candidate:
        logger.debug("number %s taken from conversation id", candidate)

    if _needs_more(candidate):
        candidate = _from_authors(conversation, candidate)

    if _needs_more(candidate):
        contact = _contact_digits(conversation.contact_number)
        if len(contact) > len(candidate):
            candidate = contact
            logger.debug("number %s taken from stored contact number", candidate)

    if _needs_more(candidate):
        bare = _from_bare_id(conversation.id)
        if bare:
            candidate = bare
            logger.debug("number %s taken from bare conversation id", candidate)

    if _needs_more(candidate):
        contact = _contact_digits(conversation.contact_number)
        if not contact:
            logger.error(
                "no valid phone number for conversation %s (contact number %r, %d messages)",
                conversation.id, conversation.contact_number, len(conversation.messages),
            )
            return ""
        candidate = contact

    if not _in_window(len(candidate)):
        logger.error("rejecting number with %d digits for conversation %s", len(candidate), conversation.id)
        return ""
    return candidate


def require_phone_number(conversation: Conversation) -> str:
    """Same as resolve_phone_number, but unsendable conversations raise."""
    number = resolve_phone_number(conversation)
    if not number:
        raise UnresolvableIdentityError(conversation.id, {"contact_number": conversation.contact_number})
    return number
