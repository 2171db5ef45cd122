"""Root test configuration for rscguard.

Isolates every test from the developer's environment: config-related env
vars are cleared, and the working directory and home directory point at a
per-test temporary directory so no ``.rscguard/config.yaml`` is picked up.
"""

from __future__ import annotations

from pathlib import Path

import pytest

_CONFIG_ENV_VARS = (
    "RSCGUARD_CONFIG",
    "RSCGUARD_BLOCK_STATUS",
    "RSCGUARD_DEBUG_HEADERS",
)


@pytest.fixture(autouse=True)
def isolate_config_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Clear rscguard env vars and run each test from an empty home + cwd."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def flight_headers() -> dict[str, str]:
    """Headers of a prefetch Flight request; expected _rsc is "mg7gk"."""
    return {
        "rsc": "1",
        "next-router-state-tree": "{}",
        "next-router-prefetch": "1",
        "next-url": "/x",
    }
