"""Unit tests for rscguard/utils/logger.py — structlog configuration."""

from __future__ import annotations

import json

import pytest
import structlog

from rscguard.utils.logger import (
    add_timestamp,
    configure_logging,
    configure_logging_from_env,
    get_logger,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_add_timestamp() -> None:
    event = add_timestamp(None, "info", {"event": "x"})  # type: ignore[arg-type]
    assert isinstance(event["timestamp"], float)


def test_json_output(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(log_level="INFO", json_output=True)
    get_logger("rscguard.test").info("Stripped _rsc from request", path="/x")
    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "Stripped _rsc from request"
    assert payload["path"] == "/x"
    assert payload["level"] == "info"
    assert "timestamp" in payload


def test_level_filtering(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(log_level="WARNING", json_output=True)
    logger = get_logger("rscguard.test")
    logger.info("hidden")
    logger.warning("shown")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out


def test_configure_from_env(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setenv("JSON_LOGS", "true")
    configure_logging_from_env()
    get_logger("rscguard.test").debug("debug enabled")
    assert json.loads(capsys.readouterr().out.strip().splitlines()[-1])["event"] == "debug enabled"
