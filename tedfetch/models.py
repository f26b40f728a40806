"""Normalized records produced by talk resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping


@dataclass
class VideoFormat:
    """A downloadable rendition scraped from the talk page player data."""

    quality: str
    url: str
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"quality": self.quality, "url": self.url, "size": self.size}


@dataclass
class Talk:
    """A talk with its metadata and media links.

    ``video_urls`` maps a quality label (``"720p"``) to a direct download
    URL. ``subtitle_urls`` maps a lowercase language code to a subtitle
    download URL. ``video_formats`` is only filled by the markup path since
    the structured API does not expose file sizes.
    """

    url: str
    title: str = ""
    speaker: str = ""
    video_urls: Dict[str, str] = field(default_factory=dict)
    video_formats: List[VideoFormat] = field(default_factory=list)
    subtitle_urls: Dict[str, str] = field(default_factory=dict)

    def has_media(self) -> bool:
        """Return True when at least one non-empty media link is present."""

        if any(self.video_urls.values()) or any(self.subtitle_urls.values()):
            return True
        return any(item.url for item in self.video_formats)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "title": self.title,
            "speaker": self.speaker,
            "url": self.url,
            "video_urls": dict(self.video_urls),
            "video_formats": [item.to_dict() for item in self.video_formats],
            "subtitle_urls": dict(self.subtitle_urls),
        }
