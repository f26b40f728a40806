"""Tests for environment driven settings."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tedfetch import config


def test_load_settings_defaults() -> None:
    settings = config.load_settings({})

    assert settings.base_url == "https://www.ted.com"
    assert settings.graphql_url == "https://www.ted.com/graphql"
    assert settings.origin == "https://www.ted.com"
    assert settings.user_agent == config.DEFAULT_USER_AGENT
    assert settings.timeout == 30.0
    assert settings.max_retries == 3


def test_load_settings_reads_overrides() -> None:
    settings = config.load_settings(
        {
            "TEDFETCH_BASE_URL": "http://localhost:8080/",
            "TEDFETCH_USER_AGENT": "agent/1.0",
            "TEDFETCH_TIMEOUT": "5",
            "TEDFETCH_MAX_RETRIES": "0",
        }
    )

    assert settings.base_url == "http://localhost:8080"
    assert settings.graphql_url == "http://localhost:8080/graphql"
    assert settings.origin == "http://localhost:8080"
    assert settings.user_agent == "agent/1.0"
    assert settings.timeout == 5.0
    assert settings.max_retries == 1


def test_load_settings_rejects_non_numeric_timeout() -> None:
    with pytest.raises(RuntimeError, match="Invalid numeric setting"):
        config.load_settings({"TEDFETCH_TIMEOUT": "soon"})


def test_load_dotenv_does_not_override_existing_values(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    dotenv = tmp_path / "tedfetch.env"
    dotenv.write_text(
        "# comment\nTEDFETCH_TIMEOUT='12'\nTEDFETCH_USER_AGENT=from-file\nnot a pair\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("TEDFETCH_TIMEOUT", raising=False)
    monkeypatch.setenv("TEDFETCH_USER_AGENT", "from-env")

    config.load_dotenv_if_present(str(dotenv))

    assert os.environ["TEDFETCH_TIMEOUT"] == "12"
    assert os.environ["TEDFETCH_USER_AGENT"] == "from-env"
    monkeypatch.delenv("TEDFETCH_TIMEOUT", raising=False)


def test_load_settings_keeps_explicit_graphql_url() -> None:
    settings = config.load_settings(
        {
            "TEDFETCH_BASE_URL": "http://localhost:8080",
            "TEDFETCH_GRAPHQL_URL": "http://api.local/graphql",
        }
    )

    assert settings.graphql_url == "http://api.local/graphql"
    assert settings.origin == "http://localhost:8080"


def test_load_dotenv_ignores_missing_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("TEDFETCH_TIMEOUT", raising=False)

    config.load_dotenv_if_present(str(tmp_path / "absent.env"))

    assert "TEDFETCH_TIMEOUT" not in os.environ
