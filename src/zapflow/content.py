"""
Message text helpers: agent header stripping and link extraction.

Outbound agent messages are sent with a "Name:\n" or "Name - Department:\n"
header so the customer sees who answered. The console renders the author
separately, so the header is stripped for display, including the duplicated
headers a retried send can leave behind.
"""

import re
from typing import Optional, Union

from zapflow.models.conversation import AuthorRole

_HEADER_PATTERNS = (
    re.compile(r"^[^:\n]+:\n+"),             # "Name:\n"
    re.compile(r"^[^:\n]+ - [^:\n]+:\n+"),   # "Name - Department:\n"
    re.compile(r"^[^:\n]+:\s+"),             # "Name: "
)

_URL_PATTERN = re.compile(r"(https?://[^\s]+|www\.[^\s]+)", re.IGNORECASE)
_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def _strip_headers_once(text: str) -> str:
    text = text.lstrip()
    for pattern in _HEADER_PATTERNS:
        text = pattern.sub("", text, count=1)
    return text


def normalize_content(content: Optional[str], role: Union[AuthorRole, str, None]) -> str:
    """Strip injected agent headers until nothing changes, then trim.

    Messages from any role other than the agent are returned as-is.
    """
    if not content or role != AuthorRole.AGENT:
        return content or ""
    previous = None
    normalized = content
    while normalized != previous:
        previous = normalized
        normalized = _strip_headers_once(normalized)
    return normalized.strip()


def build_agent_header(agent_name: str, department: Optional[str] = None) -> str:
    """Header injected in front of outbound agent text."""
    if department:
        return f"{agent_name} - {department}:\n"
    return f"{agent_name}:\n"


def normalize_preview_url(raw: Optional[str], secure_origin: bool = True) -> Optional[str]:
    """Give scheme-less links a scheme matching the console origin (avoids mixed content)."""
    if not raw:
        return None
    trimmed = raw.strip()
    if not trimmed:
        return None
    if _SCHEME_PATTERN.match(trimmed):
        return trimmed
    return f"{'https' if secure_origin else 'http'}://{trimmed}"


def extract_urls(text: Optional[str], secure_origin: bool = True) -> list[str]:
    """All links in a message, normalized, first occurrence order."""
    if not text:
        return []
    urls: dict[str, None] = {}
    for match in _URL_PATTERN.findall(text):
        normalized = normalize_preview_url(match, secure_origin)
        if normalized:
            urls.setdefault(normalized, None)
    return list(urls)


def extract_first_url(text: Optional[str], secure_origin: bool = True) -> Optional[str]:
    if not text:
        return None
    match = _URL_PATTERN.search(text)
    return normalize_preview_url(match.group(1), secure_origin) if match else None
