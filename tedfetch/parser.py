"""Resolve talks into normalized :class:`~tedfetch.models.Talk` records.

The structured GraphQL API is tried first for a talk URL. When it fails for
any reason (transport, error payload, no nodes, no usable links) the talk
page itself is scraped instead. Listing searches always use the page
scraper to enrich each entry.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional
from urllib.parse import quote, quote_plus

import httpx

from . import graphql, markup
from .config import Settings, create_http_client, load_settings
from .errors import (
    EmptyResultError,
    InvalidTalkURLError,
    TalkFetchError,
    TransportError,
)
from .models import Talk


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s")


def extract_slug(url: str) -> str:
    """Return the last non-empty path segment of ``url`` without its query."""

    path = url.split("?", 1)[0]
    for part in reversed(path.split("/")):
        if part:
            return part
    return ""


def validate_talk_url(url: str) -> str:
    """Return the slug of a talk URL or raise :class:`InvalidTalkURLError`."""

    without_query = url.split("?", 1)[0]
    slug = extract_slug(url)
    if not slug or "." in slug or "/talks/" not in without_query:
        raise InvalidTalkURLError(f"invalid TED talk URL: {url}")
    return slug


class TalkParser:
    """Fetch and parse talk metadata, video and subtitle links.

    Args:
        settings: Site endpoints and HTTP options; read from the environment
            when omitted.
        client: HTTP client to use. A client created here is closed by
            :meth:`close`; an injected one is left open.
        debug: Keep raw response bodies in :attr:`raw_responses`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        debug: bool = False,
    ) -> None:
        self.settings = settings or load_settings()
        self._owns_client = client is None
        self.client = client or create_http_client(self.settings)
        self.debug = debug
        self.raw_responses: Dict[str, bytes] = {}

    def __enter__(self) -> "TalkParser":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def set_debug(self, debug: bool) -> None:
        self.debug = debug

    def _store_raw_response(self, key: str, data: bytes) -> None:
        if self.debug:
            self.raw_responses[key] = data

    def get_raw_response(self, key: str) -> Optional[bytes]:
        return self.raw_responses.get(key)

    def build_listing_url(self, query: str) -> str:
        """Topic listing URL for a single word, search URL for anything else."""

        base = self.settings.base_url
        query = query.strip()
        if not _WHITESPACE.search(query):
            return f"{base}/talks?topics[]={quote(query)}"
        return f"{base}/search?q={quote_plus(query)}"

    def parse_topic(self, query: str, limit: int) -> List[Talk]:
        """Search talks by topic tag or title and enrich each hit.

        Enrichment failures are logged and the talk is kept with the title,
        speaker and URL from the listing.
        """

        listing_url = self.build_listing_url(query)
        try:
            raw = markup.fetch_page(self.client, listing_url)
        except TransportError as exc:
            raise TransportError(f"failed to fetch talks list: {exc}") from exc

        talks = markup.parse_listing(
            markup.parse_document(raw), self.settings.base_url, limit
        )
        for talk in talks:
            try:
                self._parse_talk_media(talk)
            except TalkFetchError as exc:
                logger.warning(
                    "Failed to parse talk details for %s: %s", talk.url or talk.title, exc
                )
        return talks

    def _parse_talk_media(self, talk: Talk) -> None:
        if not talk.url:
            raise EmptyResultError("listing entry has no talk link")
        raw = markup.fetch_page(self.client, talk.url)
        document = markup.parse_document(raw)
        markup.extract_video_formats(document, talk)
        markup.extract_subtitle_urls(document, talk, self.settings.base_url)

    def parse_talk_details(self, title: str) -> Talk:
        """Find a talk by title and resolve its first search hit."""

        talks = self.parse_topic(title, 1)
        if not talks:
            raise EmptyResultError(f"no talk found with title: {title}")
        return self.parse_url(talks[0].url)

    def parse_url(self, url: str) -> Talk:
        """Resolve a ``/talks/<slug>`` URL, preferring the GraphQL API.

        Raises:
            InvalidTalkURLError: Before any request when the URL is malformed.
            TalkFetchError: When the page fallback fails or finds no media.
        """

        slug = validate_talk_url(url)
        logger.debug("Processing slug: %s", slug)

        try:
            return self._parse_with_graphql(slug, url)
        except TalkFetchError as exc:
            logger.debug("GraphQL parsing failed: %s", exc)

        logger.debug("Falling back to HTML parsing")
        return self._parse_with_html(slug, url)

    def _parse_with_graphql(self, slug: str, url: str) -> Talk:
        video_urls, subtitle_urls = graphql.fetch_share_links(
            self.client,
            self.settings,
            slug,
            url,
            capture=self._store_raw_response,
        )
        talk = Talk(url=url, video_urls=video_urls, subtitle_urls=subtitle_urls)
        if not talk.has_media():
            raise EmptyResultError("no downloadable links in GraphQL response")

        raw = markup.fetch_page(self.client, url)
        self._store_raw_response(f"html_{slug}", raw)
        talk.title, talk.speaker = markup.extract_title_speaker(
            markup.parse_document(raw)
        )

        logger.debug("Successfully parsed talk: %s by %s", talk.title, talk.speaker)
        logger.debug("Available subtitles: %s", sorted(talk.subtitle_urls))
        return talk

    def _parse_with_html(self, slug: str, url: str) -> Talk:
        raw = markup.fetch_page(self.client, url)
        self._store_raw_response(f"html_fallback_{slug}", raw)

        document = markup.parse_document(raw)
        talk = Talk(url=url)
        talk.title, talk.speaker = markup.extract_title_speaker(document)
        markup.extract_video_formats(document, talk)
        markup.extract_subtitle_urls(document, talk, self.settings.base_url)

        logger.debug("Fallback HTML parsing completed for: %s", talk.title)

        if not talk.has_media():
            raise EmptyResultError("no video or subtitle data found")
        return talk
