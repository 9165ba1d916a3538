"""
Media records returned by the AniList lookup client.

AniList leaves many fields out or sets them to ``null`` (no English title,
no banner, no main studio, no upcoming episode once a series finishes).
Every such field is an explicit ``Optional`` here so callers branch on
``is None`` rather than on truthiness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ANILIST_ANIME_URL = "https://anilist.co/anime/{id}"


@dataclass(slots=True, frozen=True)
class MediaTitle:
    """Romaji and English titles of a media entry."""
    romaji: Optional[str] = None
    english: Optional[str] = None

    @property
    def display(self) -> str:
        """English title when AniList has one, romaji otherwise."""
        return self.english or self.romaji or "Unknown title"


@dataclass(slots=True, frozen=True)
class CoverImage:
    extra_large: Optional[str] = None
    large: Optional[str] = None
    color: Optional[str] = None


@dataclass(slots=True, frozen=True)
class AiringEpisode:
    """The next scheduled episode of a title.

    Attributes:
        episode: Episode number that will air next.
        airing_at: Absolute airing time in unix seconds.
        time_until_airing: Seconds from the lookup until ``airing_at``; negative once aired.
    """
    episode: int
    airing_at: int
    time_until_airing: int


@dataclass(slots=True, frozen=True)
class Media:
    """A single AniList media record as used by the airing pipeline."""
    id: int
    title: MediaTitle = field(default_factory=MediaTitle)
    cover_image: CoverImage = field(default_factory=CoverImage)
    banner_image: Optional[str] = None
    format: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    studio: Optional[str] = None
    site_url: Optional[str] = None
    season_year: Optional[int] = None
    next_airing_episode: Optional[AiringEpisode] = None

    @property
    def display_title(self) -> str:
        return self.title.display

    @property
    def page_url(self) -> str:
        """Canonical AniList page, built from the ID when ``siteUrl`` is missing."""
        return self.site_url or ANILIST_ANIME_URL.format(id=self.id)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Media":
        """Build a Media from one ``Page.media`` / ``Media`` GraphQL node.

        Raises:
            ValueError: If the node has no usable ``id``.
        """
        try:
            media_id = int(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Media payload without a valid id: {payload!r}") from exc

        title = payload.get("title") or {}
        cover = payload.get("coverImage") or {}

        studio: Optional[str] = None
        studio_nodes = (payload.get("studios") or {}).get("nodes") or []
        if studio_nodes and studio_nodes[0].get("name"):
            studio = str(studio_nodes[0]["name"])

        season_year = payload.get("seasonYear")
        if season_year is None:
            season_year = (payload.get("startDate") or {}).get("year")

        return cls(
            id=media_id,
            title=MediaTitle(romaji=title.get("romaji"), english=title.get("english")),
            cover_image=CoverImage(
                extra_large=cover.get("extraLarge"),
                large=cover.get("large"),
                color=cover.get("color"),
            ),
            banner_image=payload.get("bannerImage"),
            format=payload.get("format"),
            genres=[str(g) for g in payload.get("genres") or []],
            studio=studio,
            site_url=payload.get("siteUrl"),
            season_year=int(season_year) if season_year is not None else None,
            next_airing_episode=parse_airing_episode(payload.get("nextAiringEpisode")),
        )


def parse_airing_episode(node: Optional[Dict[str, Any]]) -> Optional[AiringEpisode]:
    """Convert a ``nextAiringEpisode`` node, returning None for null or partial nodes."""
    if not node:
        return None
    try:
        return AiringEpisode(
            episode=int(node["episode"]),
            airing_at=int(node["airingAt"]),
            time_until_airing=int(node["timeUntilAiring"]),
        )
    except (KeyError, TypeError, ValueError):
        return None
