"""Talk page scraping: page fetch, player data, subtitle links and listings.

Talk pages embed their player configuration in an inline script that calls
``talkPage.init({...})``. Subtitle links are anchors carrying a
``data-language`` attribute. Topic listings and search results use two
different markup shapes which are both handled by :func:`parse_listing`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup, Tag

from .errors import TransportError
from .models import Talk, VideoFormat


logger = logging.getLogger(__name__)

PLAYER_SCRIPT_MARKER = "talkPage.init"
LISTING_SELECTOR = ".media__message, .search__result"
SEARCH_RESULT_CLASS = "search__result"
SPEAKER_SELECTOR = ".media__message__speaker h4, .search__result__speaker"


def fetch_page(client: httpx.Client, url: str) -> bytes:
    """GET ``url`` and return the raw body.

    Raises:
        TransportError: On network failure or a non-2xx status.
    """

    try:
        response = client.get(url)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(f"failed to fetch page {url}: {exc}") from exc
    return response.content


def parse_document(raw: bytes | str) -> BeautifulSoup:
    """Build a queryable markup tree from a UTF-8 page body."""

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return BeautifulSoup(raw, "html.parser")


def absolutize_url(href: str, base_url: str) -> str:
    """Prefix site-relative links with ``base_url``."""

    if not href or href.startswith("http"):
        return href
    base = base_url.rstrip("/")
    if href.startswith("/"):
        return base + href
    return f"{base}/{href}"


def _element_text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return element.get_text().strip()


def extract_title_speaker(document: BeautifulSoup) -> Tuple[str, str]:
    """Return the text of the first ``<h1>`` and ``<h2>`` of a talk page."""

    return _element_text(document.find("h1")), _element_text(document.find("h2"))


def find_player_payload(document: BeautifulSoup) -> Optional[str]:
    """Locate the JSON argument of the ``talkPage.init`` script.

    The payload spans from the first ``{`` to the last ``}`` of the first
    script mentioning the marker. Anything else in the script that contains
    braces will corrupt the slice; the decode step treats that as absent data.
    """

    for script in document.find_all("script"):
        text = script.string or ""
        if PLAYER_SCRIPT_MARKER not in text:
            continue
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end < start:
            return None
        return text[start : end + 1]
    return None


def _first_mapping(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def _to_size(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def decode_video_formats(payload: str) -> List[VideoFormat]:
    """Decode ``playerData.talks[0].player_talks[0].resources.h264``.

    Malformed JSON or an unexpected structure yields an empty list. Entries
    without a string ``quality`` and a non-empty ``file`` are skipped.
    """

    try:
        data = json.loads(payload)
    except ValueError as exc:
        logger.debug("Failed to parse video JSON data: %s", exc)
        return []

    if not isinstance(data, dict):
        logger.debug("Video JSON data is not an object")
        return []

    player_data = data.get("playerData")
    if not isinstance(player_data, dict):
        return []
    talk_data = _first_mapping(player_data.get("talks"))
    if talk_data is None:
        return []
    player_talk = _first_mapping(talk_data.get("player_talks"))
    if player_talk is None:
        return []
    resources = player_talk.get("resources")
    if not isinstance(resources, dict):
        return []
    h264 = resources.get("h264")
    if not isinstance(h264, list):
        return []

    formats: List[VideoFormat] = []
    for entry in h264:
        if not isinstance(entry, dict):
            continue
        quality = entry.get("quality")
        url = entry.get("file")
        if not isinstance(quality, str) or not isinstance(url, str) or not url:
            logger.debug("Skipping h264 entry without a usable file: %s", entry)
            continue
        formats.append(
            VideoFormat(quality=quality, url=url, size=_to_size(entry.get("size")))
        )
    return formats


def extract_video_formats(document: BeautifulSoup, talk: Talk) -> None:
    """Append player renditions to ``talk.video_formats`` and ``talk.video_urls``."""

    payload = find_player_payload(document)
    if payload is None:
        logger.debug("No %s script found for %s", PLAYER_SCRIPT_MARKER, talk.url)
        return

    for video_format in decode_video_formats(payload):
        talk.video_formats.append(video_format)
        talk.video_urls[video_format.quality] = video_format.url


def extract_subtitle_urls(document: BeautifulSoup, talk: Talk, base_url: str) -> None:
    """Collect ``data-language`` anchors into a fresh ``talk.subtitle_urls``."""

    talk.subtitle_urls = {}
    for anchor in document.select("a[data-language]"):
        language = (anchor.get("data-language") or "").strip().lower()
        href = anchor.get("href")
        if not language or not href:
            continue
        talk.subtitle_urls[language] = absolutize_url(href, base_url)


def parse_listing(document: BeautifulSoup, base_url: str, limit: int) -> List[Talk]:
    """Return up to ``limit`` talk stubs from a topic listing or search page."""

    talks: List[Talk] = []
    if limit <= 0:
        return talks

    for block in document.select(LISTING_SELECTOR):
        if len(talks) >= limit:
            break

        if SEARCH_RESULT_CLASS in (block.get("class") or []):
            title_link = block.select_one("h3 a")
        else:
            title_link = block.select_one(".media__message__title a")

        speaker = "".join(
            element.get_text() for element in block.select(SPEAKER_SELECTOR)
        ).strip()
        href = title_link.get("href") if title_link is not None else ""

        talks.append(
            Talk(
                url=absolutize_url(href or "", base_url),
                title=_element_text(title_link),
                speaker=speaker,
            )
        )

    return talks
