"""Document reference resolution through the file-serving service."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote, urlparse

import httpx

log = logging.getLogger(__name__)

PREVIEW_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def is_absolute_url(reference: str) -> bool:
    return urlparse(reference).scheme in ("http", "https")


def is_previewable(url: str) -> bool:
    """Whether the document can be shown inline as an image."""
    return urlparse(url).path.lower().endswith(PREVIEW_EXTENSIONS)


class FileResolver:
    """Turn storage keys into fetchable URLs.

    Resolution never fails: when the file service cannot answer, the direct
    ``{base_url}/{key}`` URL is returned so review can continue.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")

    def fallback_url(self, reference: str) -> str:
        return f"{self.base_url}/{quote(reference.lstrip('/'))}"

    async def resolve(self, reference: str) -> str:
        if is_absolute_url(reference):
            return reference
        try:
            response = await self.http.get(self.fallback_url(reference))
            response.raise_for_status()
            url = response.json().get("url")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            log.warning("Could not resolve document %s: %s", reference, e)
            return self.fallback_url(reference)
        if not isinstance(url, str) or not url:
            log.warning("File service returned no URL for %s", reference)
            return self.fallback_url(reference)
        return url

    async def resolve_many(self, documents: dict[str, str]) -> dict[str, str]:
        """Resolve a kind -> reference map concurrently, preserving keys."""
        kinds = list(documents)
        urls = await asyncio.gather(*(self.resolve(documents[kind]) for kind in kinds))
        return dict(zip(kinds, urls))
