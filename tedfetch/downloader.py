"""Download talk videos and subtitles to disk with retries."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import httpx

from .config import Settings, create_http_client, load_settings
from .errors import TalkFetchError, TransportError


logger = logging.getLogger(__name__)

PROGRESS_BAR_WIDTH = 30
DOWNLOAD_CHUNK_SIZE = 64 * 1024
INVALID_FILENAME_CHARS = ("/", "\\", ":", "*", "?", '"', "<", ">", "|")


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in file names with ``_``."""

    result = name
    for char in INVALID_FILENAME_CHARS:
        result = result.replace(char, "_")
    return result


def _update_progress_bar(ratio: float, detail: str) -> None:
    """Render a simple textual progress bar to stdout."""

    ratio = min(max(ratio, 0.0), 1.0)
    filled = int(PROGRESS_BAR_WIDTH * ratio)
    bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
    sys.stdout.write(f"\r[{bar}] {ratio * 100:5.1f}% {detail[:80]}")
    sys.stdout.flush()


def _format_bytes(count: float) -> str:
    for unit in ("B", "KiB", "MiB"):
        if count < 1024.0:
            return f"{count:.1f}{unit}"
        count /= 1024.0
    return f"{count:.1f}GiB"


def _format_progress_detail(label: str, written: int, total: Optional[int]) -> str:
    if total:
        return f"{label} {_format_bytes(written)}/{_format_bytes(total)}"
    return f"{label} {_format_bytes(written)}"


class Downloader:
    """Stream media files into ``base_dir``.

    Each attempt truncates the target file. Transport failures and non-200
    statuses are retried up to ``settings.max_retries`` times.
    """

    def __init__(
        self,
        base_dir: str,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        try:
            os.makedirs(base_dir, exist_ok=True)
        except OSError as exc:
            raise TalkFetchError(f"failed to create base directory: {exc}") from exc
        self.base_dir = base_dir
        self.settings = settings or load_settings()
        self.max_retries = max(1, self.settings.max_retries)
        self._owns_client = client is None
        self.client = client or create_http_client(self.settings)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def get_download_path(self, name: str, filename: str) -> str:
        return os.path.join(self.base_dir, sanitize_filename(name), filename)

    def download_video(self, url: str, path: str) -> None:
        self._download(url, path, "Downloading video")

    def download_subtitle(self, url: str, path: str) -> None:
        self._download(url, path, "Downloading subtitle")

    def _download(self, url: str, path: str, label: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as exc:
                raise TalkFetchError(f"failed to create directory: {exc}") from exc

        for attempt in range(1, self.max_retries + 1):
            try:
                self._download_once(url, path, label)
                return
            except TransportError as exc:
                if attempt == self.max_retries:
                    raise
                logger.debug(
                    "Attempt %d/%d for %s failed: %s",
                    attempt,
                    self.max_retries,
                    url,
                    exc,
                )

    def _download_once(self, url: str, path: str, label: str) -> None:
        try:
            handle = open(path, "wb")
        except OSError as exc:
            raise TalkFetchError(f"failed to create output file: {exc}") from exc

        with handle:
            try:
                with self.client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise TransportError(
                            f"bad status: {response.status_code} {response.reason_phrase}"
                        )
                    total = _content_length(response)
                    written = 0
                    _update_progress_bar(0.0, _format_progress_detail(label, 0, total))
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        handle.write(chunk)
                        written += len(chunk)
                        ratio = written / total if total else 0.0
                        _update_progress_bar(
                            ratio, _format_progress_detail(label, written, total)
                        )
            except httpx.HTTPError as exc:
                raise TransportError(f"failed to download {url}: {exc}") from exc

        _update_progress_bar(1.0, _format_progress_detail(label, written, total))
        sys.stdout.write("\n")
        sys.stdout.flush()


def _content_length(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    try:
        return int(raw) if raw else None
    except ValueError:
        return None
