"""
Link preview cache — one fetch per normalized URL for the life of the process.

Entries are never evicted and errors are never retried. The in-flight set is
kept apart from the entry map so marking an entry `loading` and starting the
fetch cannot race.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from zapflow.content import normalize_preview_url
from zapflow.models.preview import LinkPreview, LinkPreviewEntry, PreviewStatus

logger = logging.getLogger(__name__)

PreviewFetcher = Callable[[str], Awaitable[LinkPreview]]
PreviewListener = Callable[[str, LinkPreviewEntry], None]


class LinkPreviewCache:
    def __init__(
        self,
        fetcher: PreviewFetcher,
        secure_origin: bool = True,
        on_change: Optional[PreviewListener] = None,
    ):
        self._fetcher = fetcher
        self._secure_origin = secure_origin
        self._on_change = on_change
        self._entries: dict[str, LinkPreviewEntry] = {}
        self._in_flight: set[str] = set()

    def normalize(self, raw_url: str) -> Optional[str]:
        return normalize_preview_url(raw_url, self._secure_origin)

    def get(self, url: str) -> Optional[LinkPreviewEntry]:
        normalized = self.normalize(url)
        return self._entries.get(normalized) if normalized else None

    def entries(self) -> dict[str, LinkPreviewEntry]:
        return dict(self._entries)

    def is_in_flight(self, url: str) -> bool:
        return self.normalize(url) in self._in_flight

    async def ensure_preview(self, raw_url: str) -> Optional[LinkPreviewEntry]:
        """Fetch the preview for `raw_url` once; later calls return the cached entry."""
        normalized = self.normalize(raw_url)
        if not normalized:
            return None
        existing = self._entries.get(normalized)
        if existing is not None:
            return existing
        if normalized in self._in_flight:
            return None

        self._in_flight.add(normalized)
        self._set(normalized, LinkPreviewEntry(status=PreviewStatus.LOADING))
        try:
            data = await self._fetcher(normalized)
        except Exception as e:
            logger.warning("link preview failed for %s: %s", normalized, e)
            self._set(normalized, LinkPreviewEntry(status=PreviewStatus.ERROR))
        else:
            self._set(normalized, LinkPreviewEntry(status=PreviewStatus.READY, data=data))
        finally:
            self._in_flight.discard(normalized)
        return self._entries[normalized]

    async def ensure_many(self, urls: Iterable[str]) -> None:
        await asyncio.gather(*(self.ensure_preview(url) for url in urls))

    def _set(self, url: str, entry: LinkPreviewEntry) -> None:
        self._entries[url] = entry
        if self._on_change is not None:
            self._on_change(url, entry)
