"""Tests for the ``python -m tubefeed`` entrypoint."""

from __future__ import annotations

from typing import Any

import pytest

from app.config import Settings
from tubefeed import __main__ as launcher


def test_server_options_follow_environment() -> None:
    development = Settings(_env_file=None, HOST="127.0.0.1", PORT="8080")
    production = Settings(_env_file=None, ENVIRONMENT="production")

    assert launcher.server_options(development) == {
        "host": "127.0.0.1",
        "port": 8080,
        "reload": True,
        "log_level": "debug",
    }
    assert launcher.server_options(production)["reload"] is False
    assert launcher.server_options(production)["log_level"] == "info"


def test_main_logs_and_runs_uvicorn(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    calls: list[tuple[str, dict[str, Any]]] = []
    monkeypatch.setattr(
        launcher,
        "settings",
        Settings(_env_file=None, HOST="127.0.0.1", PORT="9000", ENVIRONMENT="production"),
    )
    monkeypatch.setattr(
        launcher.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs))
    )

    with caplog.at_level("INFO", logger="tubefeed"):
        launcher.main()

    assert calls == [
        ("app.main:app", {"host": "127.0.0.1", "port": 9000, "reload": False, "log_level": "info"})
    ]
    assert "http://127.0.0.1:9000" in caplog.text
