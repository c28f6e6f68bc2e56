"""
pytest configuration and shared fixtures.

Usage:
    pytest                       # everything
    pytest backend/tests -k cache
"""

import os
from datetime import datetime, timezone
from typing import Any

import pytest

from trotd.config import Settings, get_settings
from trotd.schemas import Repo


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the developer's own config, env and cache out of the tests."""
    for key in list(os.environ):
        if key.startswith("TROTD_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TROTD_CONFIG", str(tmp_path / "missing-trotd.toml"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings():
    def _make(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


def make_repo(name: str = "owner/repo", provider: str = "github", **fields: Any) -> Repo:
    icons = {"github": "[GH]", "gitlab": "[GL]", "gitea": "[GE]"}
    data = {
        "provider": provider,
        "icon": icons.get(provider, "[??]"),
        "name": name,
        "url": f"https://example.com/{name}",
        "stars_total": 100,
        "last_activity": datetime.now(timezone.utc),
    }
    data.update(fields)
    return Repo(**data)


class FakeProvider:
    """Provider double that records calls and returns canned repos or raises."""

    icon = "[??]"

    def __init__(self, provider_id: str, repos=None, error: Exception | None = None):
        self.id = provider_id
        self.repos = repos or []
        self.error = error
        self.calls = []

    async def fetch_top(self, cfg, limit, language_filter):
        self.calls.append((cfg, limit, language_filter))
        if self.error is not None:
            raise self.error
        return [repo for repo in self.repos if language_filter.matches(repo.language)][:limit]
