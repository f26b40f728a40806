"""Client for the ``shareLinks`` GraphQL query."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Tuple

import httpx

from .config import Settings
from .errors import EmptyResultError, PayloadDecodeError, TransportError, UpstreamError


logger = logging.getLogger(__name__)

OPERATION_NAME = "shareLinks"
QUERY_LANGUAGE = "en"

SHARE_LINKS_QUERY = """query shareLinks($slug: String!, $language: String) {
  videos(
    slug: [$slug]
    language: $language
    first: 1
    isPublished: [true, false]
    channel: ALL
  ) {
    nodes {
      id
      canonicalUrl
      audioDownload
      nativeDownloads {
        low
        medium
        high
      }
      subtitledDownloads {
        low
        high
        internalLanguageCode
        languageName
      }
    }
  }
}"""

# Quality labels are assigned to the English subtitled tiers by convention.
LOW_TIER_QUALITY = "720p"
HIGH_TIER_QUALITY = "1080p"

RawCapture = Callable[[str, bytes], None]


def build_request_body(slug: str) -> MutableMapping[str, Any]:
    return {
        "operationName": OPERATION_NAME,
        "variables": {"slug": slug, "language": QUERY_LANGUAGE},
        "query": SHARE_LINKS_QUERY,
    }


def build_request_headers(settings: Settings, talk_url: str) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "*/*",
        "Origin": settings.origin,
        "Referer": talk_url,
        "User-Agent": settings.user_agent,
        "X-Operation-Name": OPERATION_NAME,
    }


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first_error_message(payload: Mapping[str, Any]) -> Optional[str]:
    errors = payload.get("errors")
    if not isinstance(errors, list) or not errors:
        return None
    first = errors[0]
    if isinstance(first, Mapping):
        message = _as_text(first.get("message")).strip()
        if message:
            return message
    return "unknown error"


def _extract_nodes(payload: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    data = payload.get("data")
    if not isinstance(data, Mapping):
        return []
    videos = data.get("videos")
    if not isinstance(videos, Mapping):
        return []
    nodes = videos.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [node for node in nodes if isinstance(node, Mapping)]


def parse_share_links(
    payload: Mapping[str, Any]
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Turn a decoded ``shareLinks`` response into video and subtitle maps.

    Returns:
        ``(video_urls, subtitle_urls)``. Video URLs come from the English
        subtitled download (``low`` as 720p, ``high`` as 1080p). Every
        subtitled download with a ``low`` link contributes that same link
        as the subtitle URL for its lowercased language code.

    Raises:
        UpstreamError: The response carries an ``errors`` array.
        EmptyResultError: No video node was returned.
    """

    message = _first_error_message(payload)
    if message is not None:
        raise UpstreamError(f"GraphQL error: {message}")

    nodes = _extract_nodes(payload)
    if not nodes:
        raise EmptyResultError("no video data found")

    downloads = nodes[0].get("subtitledDownloads")
    entries = [
        entry for entry in (downloads if isinstance(downloads, list) else [])
        if isinstance(entry, Mapping)
    ]

    video_urls: Dict[str, str] = {}
    for entry in entries:
        if _as_text(entry.get("internalLanguageCode")) == QUERY_LANGUAGE:
            video_urls[LOW_TIER_QUALITY] = _as_text(entry.get("low"))
            video_urls[HIGH_TIER_QUALITY] = _as_text(entry.get("high"))
            break

    subtitle_urls: Dict[str, str] = {}
    for entry in entries:
        low = _as_text(entry.get("low"))
        if low:
            language = _as_text(entry.get("internalLanguageCode")).lower()
            subtitle_urls[language] = low

    return video_urls, subtitle_urls


def fetch_share_links(
    client: httpx.Client,
    settings: Settings,
    slug: str,
    talk_url: str,
    capture: Optional[RawCapture] = None,
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """POST the ``shareLinks`` query for ``slug`` and decode the response.

    Args:
        client: HTTP client used for the request.
        settings: Supplies the endpoint, origin and user agent.
        slug: Talk slug.
        talk_url: Sent as ``Referer``.
        capture: Optional callback receiving ``("graphql_<slug>", raw_body)``.

    Raises:
        TransportError: Network failure or non-2xx status without an error payload.
        PayloadDecodeError: The body is not a JSON object.
        UpstreamError: The API reported an error.
        EmptyResultError: The API returned no video node.
    """

    logger.debug("Querying %s for slug %s", settings.graphql_url, slug)
    try:
        response = client.post(
            settings.graphql_url,
            content=json.dumps(build_request_body(slug)).encode("utf-8"),
            headers=build_request_headers(settings, talk_url),
        )
    except httpx.HTTPError as exc:
        raise TransportError(f"failed to send request: {exc}") from exc

    raw = response.content
    if capture is not None:
        capture(f"graphql_{slug}", raw)

    try:
        payload = json.loads(raw)
    except ValueError as exc:
        if response.is_error:
            raise TransportError(
                f"GraphQL request failed with status {response.status_code}"
            ) from exc
        raise PayloadDecodeError(f"failed to decode response: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise PayloadDecodeError("failed to decode response: expected a JSON object")

    if response.is_error and _first_error_message(payload) is None:
        raise TransportError(
            f"GraphQL request failed with status {response.status_code}"
        )

    return parse_share_links(payload)
