"""End-to-end tests for the tedfetch command line."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tedfetch import cli
from tedfetch import downloader as downloader_module
from tedfetch import parser as parser_module
from tedfetch.errors import TalkFetchError


BASE_URL = "https://ted.test"
TALK_URL = BASE_URL + "/talks/test_slug"

GRAPHQL_SUCCESS = {
    "data": {
        "videos": {
            "nodes": [
                {
                    "subtitledDownloads": [
                        {
                            "low": "https://download.ted.test/test-low-en.mp4",
                            "high": "https://download.ted.test/test-480p-en.mp4",
                            "internalLanguageCode": "en",
                        },
                        {
                            "low": "https://download.ted.test/test-low-zh-cn.mp4",
                            "high": "https://download.ted.test/test-480p-zh-cn.mp4",
                            "internalLanguageCode": "zh-cn",
                        },
                    ]
                }
            ]
        }
    }
}

TOPIC_HTML = """
<div class="media__message">
    <div class="media__message__title"><h4><a href="/talks/test_slug">Test Title</a></h4></div>
    <div class="media__message__speaker"><h4>Test Speaker</h4></div>
</div>
"""

TALK_HTML = (
    "<h1>Test Title</h1><h2>Test Speaker</h2>"
    "<a href='/talks/subtitles/en' data-language='en'>English</a>"
)

MEDIA: Dict[str, bytes] = {
    "/test-low-en.mp4": b"low video",
    "/test-480p-en.mp4": b"high video",
    "/test-low-zh-cn.mp4": b"zh subtitle",
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "download.ted.test":
        return httpx.Response(200, content=MEDIA[request.url.path])
    if request.url.path == "/graphql":
        return httpx.Response(200, json=GRAPHQL_SUCCESS)
    if request.url.path == "/talks" and "topics" in str(request.url):
        return httpx.Response(200, text=TOPIC_HTML)
    return httpx.Response(200, text=TALK_HTML)


@pytest.fixture(autouse=True)
def _mock_network(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TEDFETCH_BASE_URL", BASE_URL)
    monkeypatch.setenv("TEDFETCH_DOTENV", str(tmp_path / "missing.env"))
    monkeypatch.delenv("TEDFETCH_GRAPHQL_URL", raising=False)

    def fake_client_factory(_settings) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(_handler))

    monkeypatch.setattr(parser_module, "create_http_client", fake_client_factory)
    monkeypatch.setattr(downloader_module, "create_http_client", fake_client_factory)


def test_cli_info_prints_talk_json(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.run(["info", TALK_URL, "--pretty"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["title"] == "Test Title"
    assert payload["speaker"] == "Test Speaker"
    assert payload["url"] == TALK_URL
    assert payload["video_urls"]["1080p"] == "https://download.ted.test/test-480p-en.mp4"
    assert payload["subtitle_urls"]["zh-cn"] == "https://download.ted.test/test-low-zh-cn.mp4"
    assert payload["video_formats"] == []


def test_cli_download_saves_video_and_subtitle(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output_dir = tmp_path / "out"

    exit_code = cli.run(
        ["download", TALK_URL, "-q", "1080p", "-s", "zh-CN", "-o", str(output_dir)]
    )

    assert exit_code == 0
    assert (output_dir / "test_slug" / "1080p.mp4").read_bytes() == b"high video"
    assert (output_dir / "test_slug" / "zh-cn.srt").read_bytes() == b"zh subtitle"

    stdout = capsys.readouterr().out
    assert "Download completed!" in stdout
    assert "Subtitle: " in stdout


def test_cli_download_rejects_unknown_quality(tmp_path: Path) -> None:
    with pytest.raises(TalkFetchError, match="video quality 4k not available"):
        cli.run(["download", TALK_URL, "-q", "4k", "-o", str(tmp_path)])


def test_cli_download_rejects_unknown_subtitle(tmp_path: Path) -> None:
    with pytest.raises(TalkFetchError, match="subtitle language fr not available"):
        cli.run(["download", TALK_URL, "-s", "fr", "-o", str(tmp_path)])


def test_cli_search_prints_enriched_listing(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.run(["search", "education", "--limit", "3"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert len(payload) == 1
    assert payload[0]["title"] == "Test Title"
    assert payload[0]["url"] == TALK_URL
    assert payload[0]["subtitle_urls"] == {"en": BASE_URL + "/talks/subtitles/en"}


def test_cli_dump_raw_writes_captured_responses(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    dump_dir = tmp_path / "raw"

    exit_code = cli.run(["--dump-raw", str(dump_dir), "info", TALK_URL])

    assert exit_code == 0
    capsys.readouterr()
    assert sorted(path.name for path in dump_dir.iterdir()) == [
        "graphql_test_slug.raw",
        "html_test_slug.raw",
    ]
    assert json.loads((dump_dir / "graphql_test_slug.raw").read_bytes()) == GRAPHQL_SUCCESS


def test_cli_invalid_url_is_reported(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(TalkFetchError, match="invalid TED talk URL"):
        cli.run(["info", "https://www.ted.com/"])
