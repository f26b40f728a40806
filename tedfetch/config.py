"""Runtime settings for tedfetch, read from ``TEDFETCH_*`` variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx


DEFAULT_BASE_URL = "https://www.ted.com"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    graphql_url: str = DEFAULT_BASE_URL + "/graphql"
    origin: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def for_base_url(cls, base_url: str, **overrides: object) -> "Settings":
        """Build settings whose GraphQL endpoint and origin follow ``base_url``."""

        base = base_url.rstrip("/")
        values = {"base_url": base, "graphql_url": base + "/graphql", "origin": base}
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings from the environment, falling back to defaults."""

    env = os.environ if environ is None else environ

    base_url = (env.get("TEDFETCH_BASE_URL") or DEFAULT_BASE_URL).strip().rstrip("/")
    graphql_url = (env.get("TEDFETCH_GRAPHQL_URL") or "").strip() or base_url + "/graphql"
    user_agent = (env.get("TEDFETCH_USER_AGENT") or "").strip() or DEFAULT_USER_AGENT

    return Settings.for_base_url(
        base_url,
        graphql_url=graphql_url,
        user_agent=user_agent,
        timeout=_parse_float(env.get("TEDFETCH_TIMEOUT"), DEFAULT_TIMEOUT_SECONDS),
        max_retries=max(
            1, int(_parse_float(env.get("TEDFETCH_MAX_RETRIES"), DEFAULT_MAX_RETRIES))
        ),
    )


def _parse_float(raw: Optional[str], default: float) -> float:
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric setting value: {raw!r}") from exc


def load_dotenv_if_present(explicit_path: Optional[str] = None) -> None:
    """Load environment variables from a dotenv file when available."""

    path = os.path.abspath((explicit_path or "").strip() or ".env")
    if not os.path.isfile(path):
        return

    try:
        with open(path, "r", encoding="utf-8") as handle:
            lines = handle.readlines()
    except OSError as exc:  # pragma: no cover - filesystem failure
        raise RuntimeError(f"Failed to read dotenv file: {path}") from exc

    for line in lines:
        key, sep, value = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#") or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


def create_http_client(settings: Settings) -> httpx.Client:
    """Return the shared HTTP client used for metadata and media requests."""

    return httpx.Client(
        timeout=settings.timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )
