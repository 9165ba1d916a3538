"""Airing notification card rendering.

Draws an 800x250 PNG: blurred banner backdrop, cover poster on the left,
then a header line (format, year, studio), the title, the episode number
and an "AIRING NOW" pill tinted with the cover colour.

Image downloads use ``requests`` and drawing uses Pillow, both blocking, so
:func:`render_airing_card` runs the whole job in a worker thread.
"""

from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Optional, Tuple

import requests
from PIL import Image, ImageDraw, ImageFilter, ImageFont

from animuse.datatypes.media_datatypes import AiringEpisode, Media
from animuse.util.logger import get_logger

logger = get_logger("airing_card")

CARD_SIZE: Tuple[int, int] = (800, 250)
MARGIN = 20
DEFAULT_ACCENT = "#FFACD1"
SURFACE = (10, 10, 14)
DOWNLOAD_TIMEOUT_SECONDS = 5


def parse_hex_color(value: Optional[str], fallback: str = DEFAULT_ACCENT) -> Tuple[int, int, int]:
    """Turn ``#RRGGBB`` (or ``RRGGBB``) into an RGB tuple, falling back on bad input."""
    for candidate in (value, fallback):
        text = (candidate or "").strip().lstrip("#")
        if len(text) == 6:
            try:
                return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
            except ValueError:
                continue
    return (255, 172, 209)


def download_image(url: Optional[str]) -> Image.Image | None:
    """Download an image and return it in RGB mode, or None on any failure."""
    if not url:
        return None
    try:
        response = requests.get(url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        response.raise_for_status()
        return Image.open(BytesIO(response.content)).convert("RGB")
    except requests.RequestException as exc:
        logger.warning("[AIRING CARD] Request failed for %s: %s", url, exc)
    except Exception as exc:
        logger.warning("[AIRING CARD] Could not decode image from %s: %s", url, exc)
    return None


def _cover_crop(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale to fill ``size`` and centre-crop the overflow."""
    target_w, target_h = size
    scale = max(target_w / image.width, target_h / image.height)
    resized = image.resize((max(1, int(image.width * scale)), max(1, int(image.height * scale))))
    left = (resized.width - target_w) // 2
    top = (resized.height - target_h) // 2
    return resized.crop((left, top, left + target_w, top + target_h))


def _load_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _fit_title(draw: ImageDraw.ImageDraw, text: str, max_width: int) -> Tuple[str, ImageFont.ImageFont]:
    """Shrink the title font until it fits, then truncate with an ellipsis."""
    for size in (34, 30, 26, 22):
        font = _load_font(size)
        if draw.textlength(text, font=font) <= max_width:
            return text, font
    font = _load_font(22)
    while text and draw.textlength(text + "…", font=font) > max_width:
        text = text[:-1]
    return text.rstrip() + "…", font


def header_text(media: Media) -> str:
    """``TV  •  2024  •  STUDIO`` line shown above the title."""
    parts = [(media.format or "TV").replace("_", " "), str(media.season_year or "NEW")]
    if media.studio:
        parts.append(media.studio)
    return "  •  ".join(parts).upper()


def draw_airing_card(
    media: Media,
    episode: AiringEpisode,
    backdrop: Image.Image | None = None,
    cover: Image.Image | None = None,
) -> bytes:
    """Draw the card from already-loaded images and return PNG bytes."""
    width, height = CARD_SIZE
    accent = parse_hex_color(media.cover_image.color)

    card = Image.new("RGB", CARD_SIZE, SURFACE)
    if backdrop is not None:
        blurred = _cover_crop(backdrop, CARD_SIZE).filter(ImageFilter.GaussianBlur(24))
        card = Image.blend(card, blurred, 0.35)

    draw = ImageDraw.Draw(card)

    poster_h = height - MARGIN * 2
    poster_w = int(poster_h * 0.72)
    if cover is not None:
        card.paste(_cover_crop(cover, (poster_w, poster_h)), (MARGIN, MARGIN))
    else:
        draw.rectangle((MARGIN, MARGIN, MARGIN + poster_w, MARGIN + poster_h), fill=accent)

    anchor_x = MARGIN + poster_w + 30
    content_w = width - anchor_x - MARGIN

    pill_font = _load_font(13)
    pill_text = "AIRING NOW"
    pill_w = int(draw.textlength(pill_text, font=pill_font)) + 20
    pill_x = width - MARGIN - pill_w
    draw.rounded_rectangle((pill_x, MARGIN, pill_x + pill_w, MARGIN + 24), radius=8, fill=accent)
    draw.text((pill_x + 10, MARGIN + 5), pill_text, font=pill_font, fill=(255, 255, 255))

    draw.text((anchor_x, MARGIN + 5), header_text(media), font=_load_font(13), fill=(170, 170, 170))

    title, title_font = _fit_title(draw, media.display_title, content_w)
    draw.text((anchor_x, MARGIN + 50), title, font=title_font, fill=(255, 255, 255))

    draw.text((anchor_x, height - MARGIN - 90), "EPISODE", font=_load_font(14), fill=(170, 170, 170))
    draw.text((anchor_x, height - MARGIN - 70), str(episode.episode), font=_load_font(56), fill=accent)

    if media.genres:
        genres = "  ·  ".join(media.genres[:3])
        draw.text((anchor_x + 120, height - MARGIN - 30), genres, font=_load_font(13), fill=(200, 200, 200))

    buffer = BytesIO()
    card.save(buffer, format="PNG")
    return buffer.getvalue()


def build_airing_card(media: Media, episode: AiringEpisode) -> bytes:
    """Download artwork and draw the card. Blocking; missing artwork is tolerated."""
    backdrop = download_image(media.banner_image or media.cover_image.extra_large)
    cover = download_image(media.cover_image.large or media.cover_image.extra_large)
    return draw_airing_card(media, episode, backdrop=backdrop, cover=cover)


async def render_airing_card(media: Media, episode: AiringEpisode) -> bytes:
    """Render the card in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(build_airing_card, media, episode)
