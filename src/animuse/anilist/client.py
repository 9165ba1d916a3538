"""
AniList GraphQL client.

All requests go through :func:`animuse.util.retry.with_retry`: 5xx, 429 and
network failures are retried with ``2 ** attempt`` second backoff, anything
else (bad query, unknown ID) fails immediately. Once the retry budget is
spent an :class:`AniListError` reaches the caller.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import aiohttp

from animuse.configuration.app_configuration import DEFAULT_ANILIST_URL
from animuse.datatypes.media_datatypes import Media
from animuse.util.logger import get_logger
from animuse.util.retry import with_retry

logger = get_logger("anilist_client")

CACHE_TTL_SECONDS = 60 * 60

AIRING_BATCH_QUERY = """
query ($ids: [Int], $perPage: Int) {
    Page(perPage: $perPage) {
        media(id_in: $ids, type: ANIME) {
            id
            title { romaji english }
            coverImage { extraLarge large color }
            bannerImage
            format
            genres
            seasonYear
            studios(isMain: true) { nodes { name } }
            siteUrl
            nextAiringEpisode { episode airingAt timeUntilAiring }
        }
    }
}
"""

SEARCH_QUERY = """
query ($search: String, $type: MediaType) {
    Page(perPage: 10) {
        media(search: $search, type: $type, sort: POPULARITY_DESC) {
            id
            title { romaji english }
            siteUrl
            format
            startDate { year }
        }
    }
}
"""

MEDIA_QUERY = """
query ($id: Int) {
    Media(id: $id, type: ANIME) {
        id
        title { romaji english }
        coverImage { extraLarge large color }
        bannerImage
        format
        genres
        seasonYear
        studios(isMain: true) { nodes { name } }
        siteUrl
        nextAiringEpisode { episode airingAt timeUntilAiring }
    }
}
"""


class AniListError(Exception):
    """A failed AniList request.

    Attributes:
        status: HTTP status, or None for network errors and timeouts.
    """

    def __init__(self, status: Optional[int], message: str) -> None:
        super().__init__(f"AniList request failed ({status if status is not None else 'network'}): {message}")
        self.status = status

    @property
    def is_transient(self) -> bool:
        return self.status is None or self.status == 429 or 500 <= self.status < 600


def is_retryable_error(exc: BaseException) -> bool:
    """5xx, 429 and transport failures are worth another attempt."""
    if isinstance(exc, AniListError):
        return exc.is_transient
    return isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError))


class AniListClient:
    """Async client for the AniList GraphQL API.

    The aiohttp session is created lazily on first use and must be closed
    with :meth:`close` on shutdown.
    """

    def __init__(
        self,
        url: str = DEFAULT_ANILIST_URL,
        *,
        retries: int = 3,
        timeout_seconds: float = 20.0,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.retries = retries
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._sleep = sleep
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "animuse/1.0 (discord bot)",
        }
        self._search_cache: Dict[str, Tuple[List[Media], float]] = {}
        self._media_cache: Dict[int, Tuple[Media, float]] = {}

    async def _session_ensure(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post_once(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._session_ensure()
        async with session.post(
            self.url,
            json={"query": query, "variables": variables},
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as resp:
            if resp.status != 200:
                text = (await resp.text())[:200]
                raise AniListError(resp.status, text or resp.reason or "no body")
            payload = await resp.json()

        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            errors = payload.get("errors") if isinstance(payload, dict) else None
            message = "; ".join(str(e.get("message", e)) for e in errors or []) or "empty response"
            raise AniListError(200, message)
        return data

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            AniListError: When the request fails and retries are exhausted or pointless.
        """
        variables = variables or {}
        try:
            return await with_retry(
                lambda: self._post_once(query, variables),
                retries=self.retries,
                is_retryable=is_retryable_error,
                sleep=self._sleep,
                name="AniList query",
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AniListError(None, str(exc) or type(exc).__name__) from exc

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def fetch_airing_batch(self, ids: Sequence[int]) -> List[Media]:
        """Fetch media (with their next airing episode) for up to 50 IDs in one request."""
        if not ids:
            return []
        data = await self.query(AIRING_BATCH_QUERY, {"ids": list(ids), "perPage": len(ids)})
        nodes = ((data.get("Page") or {}).get("media")) or []

        media: List[Media] = []
        for node in nodes:
            try:
                media.append(Media.from_payload(node))
            except ValueError as exc:
                logger.warning("[ANILIST] Skipping malformed media node: %s", exc)
        return media

    async def search_media(self, term: str, media_type: str = "ANIME") -> List[Media]:
        """Search by title, most popular first. Results are cached for an hour."""
        key = f"{media_type}:{term.strip().lower()}"
        cached = self._search_cache.get(key)
        if cached and time.monotonic() - cached[1] < CACHE_TTL_SECONDS:
            return cached[0]

        data = await self.query(SEARCH_QUERY, {"search": term, "type": media_type})
        nodes = ((data.get("Page") or {}).get("media")) or []
        results = [Media.from_payload(node) for node in nodes if node and node.get("id") is not None]
        self._search_cache[key] = (results, time.monotonic())
        return results

    async def get_media(self, media_id: int) -> Optional[Media]:
        """Return one anime by ID, or None if AniList does not know it."""
        cached = self._media_cache.get(media_id)
        if cached and time.monotonic() - cached[1] < CACHE_TTL_SECONDS:
            return cached[0]

        try:
            data = await self.query(MEDIA_QUERY, {"id": media_id})
        except AniListError as exc:
            if exc.status == 404:
                return None
            raise

        node = data.get("Media")
        if not node:
            return None
        media = Media.from_payload(node)
        self._media_cache[media_id] = (media, time.monotonic())
        return media
