"""
Ephemeral Chat Relay - GIF Search Service

Looks up GIFs on the configured upstream search API and falls back to a
fixed local pool when the upstream is unavailable.
"""

import hashlib
import logging
from typing import Dict, List, Optional

import httpx

from relay.config import Settings
from relay.errors import UpstreamUnavailable
from relay.sanitize import is_http_url

logger = logging.getLogger(__name__)

FALLBACK_GIFS: List[Dict[str, str]] = [
    {"name": "hello wave", "url": "https://media.giphy.com/media/ASd0Ukj0y3qMM/giphy.gif"},
    {"name": "thumbs up", "url": "https://media.giphy.com/media/111ebonMs90YLu/giphy.gif"},
    {"name": "laugh", "url": "https://media.giphy.com/media/10JhviFuU2gWD6/giphy.gif"},
    {"name": "applause clap", "url": "https://media.giphy.com/media/7rj2ZgttvgomY/giphy.gif"},
    {"name": "mind blown", "url": "https://media.giphy.com/media/xT0xeJpnrWC4XWblEk/giphy.gif"},
    {"name": "facepalm", "url": "https://media.giphy.com/media/XsUtdIeJ0MWMo/giphy.gif"},
    {"name": "happy dance", "url": "https://media.giphy.com/media/l0MYt5jPR6QX5pnqM/giphy.gif"},
    {"name": "cat typing", "url": "https://media.giphy.com/media/JIX9t2j0ZTN9S/giphy.gif"},
    {"name": "thinking", "url": "https://media.giphy.com/media/a5viI92PAF89q/giphy.gif"},
    {"name": "bye goodbye", "url": "https://media.giphy.com/media/m9eG1qVjvN56H0MXt8/giphy.gif"},
    {"name": "yes nod", "url": "https://media.giphy.com/media/XreQmk7ETCak0/giphy.gif"},
    {"name": "no nope", "url": "https://media.giphy.com/media/1zSz5MVw4zKg0/giphy.gif"},
]


class GifService:
    """
    GIF search with a deterministic offline fallback.

    The upstream is expected to answer in the Tenor v2 search format.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.api_url = settings.GIF_API_URL
        self.api_key = settings.GIF_API_KEY
        self.limit = max(1, settings.GIF_RESULT_LIMIT)
        self.timeout = settings.OUTBOUND_TIMEOUT_SECONDS
        self.transport = transport

    def search(self, query: str) -> List[Dict[str, str]]:
        """
        Search GIFs.

        Args:
            query: Free text search terms

        Returns:
            Up to ``limit`` dictionaries with ``name`` and ``url``
        """
        query = " ".join((query or "").split())[:100]
        try:
            return self._search_upstream(query)
        except UpstreamUnavailable as e:
            logger.warning("GIF search falling back to local pool: %s", e)
            return self.fallback(query)

    def fallback(self, query: str) -> List[Dict[str, str]]:
        """Matching pool entries first, then the rest rotated by a hash of the query"""
        terms = query.lower().split()
        matches = [g for g in FALLBACK_GIFS if any(t in g["name"] for t in terms)]
        offset = int(hashlib.sha256(query.lower().encode("utf-8")).hexdigest(), 16) % len(FALLBACK_GIFS)
        rotated = FALLBACK_GIFS[offset:] + FALLBACK_GIFS[:offset]
        ordered = matches + [g for g in rotated if g not in matches]
        return [dict(g) for g in ordered[: self.limit]]

    def _search_upstream(self, query: str) -> List[Dict[str, str]]:
        if not self.api_key:
            raise UpstreamUnavailable("GIF_API_KEY is not configured")
        if not query:
            raise UpstreamUnavailable("empty query")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(
                    self.api_url,
                    params={
                        "q": query,
                        "key": self.api_key,
                        "limit": self.limit,
                        "media_filter": "tinygif",
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"GIF search failed: {e}") from e

        results = []
        for item in payload.get("results") or []:
            media = (item.get("media_formats") or {}).get("tinygif") or {}
            url = media.get("url")
            if not is_http_url(url):
                continue
            results.append({"name": item.get("content_description") or query, "url": url})
            if len(results) >= self.limit:
                break

        if not results:
            raise UpstreamUnavailable(f"no results for {query!r}")
        return results
