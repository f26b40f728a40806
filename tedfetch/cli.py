"""Command line interface for fetching TED talk videos and subtitles.

The module provides a CLI entry point `run` with three subcommands:
``download`` resolves a talk by title or URL and saves the requested video
quality (and optionally a subtitle), ``info`` prints the resolved talk as
JSON, and ``search`` prints the enriched results of a topic or title search.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from importlib import metadata as importlib_metadata
from typing import Any, List, Optional, Sequence

from .config import load_dotenv_if_present, load_settings
from .downloader import Downloader, sanitize_filename
from .errors import TalkFetchError
from .models import Talk
from .parser import TalkParser, extract_slug

DISTRIBUTION_NAME = "tedfetch"


def _resolve_version() -> str:
    try:
        return importlib_metadata.version(DISTRIBUTION_NAME)
    except importlib_metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = _resolve_version()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tedfetch",
        description="Download TED talk videos and subtitles.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{DISTRIBUTION_NAME} {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log resolution details and keep raw responses.",
    )
    parser.add_argument(
        "--dump-raw",
        dest="dump_raw",
        default=None,
        help="Directory where raw API and page responses are written (implies --debug).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    download = subparsers.add_parser(
        "download",
        help="Download a talk video and optional subtitle.",
        description=(
            "Download TED talk videos and subtitles. For example:\n"
            '  tedfetch download "The power of vulnerability" --quality 720p\n'
            "  tedfetch download https://www.ted.com/talks/<slug> -q 720p -s zh-cn"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    download.add_argument("talk", help="Talk title or URL")
    download.add_argument(
        "-q", "--quality", default="720p", help="Video quality (720p, 1080p)"
    )
    download.add_argument(
        "-s",
        "--subtitle",
        default="",
        help="Subtitle language code (e.g. en, zh-cn). Leave empty to skip subtitles.",
    )
    download.add_argument("-o", "--output", default=".", help="Output directory")

    info = subparsers.add_parser("info", help="Print a talk's media links as JSON.")
    info.add_argument("talk", help="Talk title or URL")
    info.add_argument("--pretty", action="store_true", help="Pretty print JSON output.")

    search = subparsers.add_parser(
        "search", help="List talks for a topic tag or a title search."
    )
    search.add_argument("query", help="Topic tag (single word) or title")
    search.add_argument(
        "-n", "--limit", type=int, default=5, help="Maximum number of talks (default: 5)"
    )
    search.add_argument("--pretty", action="store_true", help="Pretty print JSON output.")

    return parser


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def resolve_talk(talk_parser: TalkParser, identifier: str) -> Talk:
    """Resolve a URL directly, anything else through a title search."""

    if identifier.startswith("http"):
        return talk_parser.parse_url(identifier)
    return talk_parser.parse_talk_details(identifier)


def _emit_json(payload: Any, pretty: bool) -> None:
    indent = 2 if pretty else None
    json.dump(payload, sys.stdout, indent=indent, ensure_ascii=False)
    sys.stdout.write("\n")


def _dump_raw_responses(talk_parser: TalkParser, directory: str) -> None:
    os.makedirs(directory, exist_ok=True)
    for key, data in talk_parser.raw_responses.items():
        path = os.path.join(directory, sanitize_filename(key) + ".raw")
        with open(path, "wb") as handle:
            handle.write(data)


def _run_download(talk_parser: TalkParser, args: argparse.Namespace) -> int:
    downloader = Downloader(args.output, settings=talk_parser.settings)
    try:
        talk = resolve_talk(talk_parser, args.talk)
        slug = extract_slug(talk.url)

        video_url = talk.video_urls.get(args.quality)
        if not video_url:
            raise TalkFetchError(f"video quality {args.quality} not available")

        print(f"Downloading video ({args.quality})...")
        video_path = downloader.get_download_path(slug, f"{args.quality}.mp4")
        downloader.download_video(video_url, video_path)

        subtitle_path: Optional[str] = None
        if args.subtitle:
            language = args.subtitle.lower()
            subtitle_url = talk.subtitle_urls.get(language)
            if not subtitle_url:
                raise TalkFetchError(f"subtitle language {args.subtitle} not available")
            print(f"Downloading subtitle ({language})...")
            subtitle_path = downloader.get_download_path(slug, f"{language}.srt")
            downloader.download_subtitle(subtitle_url, subtitle_path)
    finally:
        downloader.close()

    print("\nDownload completed!")
    print(f"Video: {video_path}")
    if subtitle_path is not None:
        print(f"Subtitle: {subtitle_path}")
    return 0


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Entrypoint for the CLI.

    Args:
        argv: Sequence of command line arguments excluding the program name.

    Returns:
        Process exit code, 0 on success.

    Raises:
        TalkFetchError: When the talk cannot be resolved or downloaded.
    """

    args = _build_parser().parse_args(argv)

    load_dotenv_if_present(os.getenv("TEDFETCH_DOTENV"))
    debug = args.debug or bool(args.dump_raw)
    _configure_logging(debug)

    settings = load_settings()
    with TalkParser(settings=settings, debug=debug) as talk_parser:
        try:
            if args.command == "download":
                return _run_download(talk_parser, args)

            if args.command == "info":
                talk = resolve_talk(talk_parser, args.talk)
                _emit_json(talk.to_dict(), args.pretty)
                return 0

            talks: List[Talk] = talk_parser.parse_topic(args.query, args.limit)
            _emit_json([talk.to_dict() for talk in talks], args.pretty)
            return 0
        finally:
            if args.dump_raw:
                _dump_raw_responses(talk_parser, args.dump_raw)


def main() -> int:  # pragma: no cover - convenience wrapper
    """Console script entry point."""

    try:
        return run()
    except TalkFetchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
