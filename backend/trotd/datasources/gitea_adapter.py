from datetime import datetime, timedelta, timezone
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..errors import ConfigError
from ..schemas import ProviderCfg, Repo
from ..services.filters import LanguageFilter, parse_timestamp
from ..services.http_client import HttpClient
from .base import Provider, parse_payload, take_matching

DEFAULT_BASE_URL = "https://gitea.com"
ACTIVITY_WINDOW_DAYS = 7


class GiteaRepository(BaseModel):
    full_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    html_url: str = Field(..., min_length=1)
    stars_count: Optional[int] = None
    language: Optional[str] = None
    updated_at: Optional[str] = None


class GiteaSearchResponse(BaseModel):
    data: List[GiteaRepository]


def normalize_base_url(base_url: Optional[str]) -> str:
    value = (base_url or DEFAULT_BASE_URL).strip().rstrip("/")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid Gitea base URL: {base_url!r}")
    return value


class GiteaAdapter(Provider):
    """Most recently updated repositories of a Gitea instance (gitea.com by default)."""

    id = "gitea"
    icon = "[GE]"

    def __init__(self, http: HttpClient):
        self.http = http

    async def fetch_top(
        self, cfg: ProviderCfg, limit: int, language_filter: LanguageFilter
    ) -> List[Repo]:
        base_url = normalize_base_url(cfg.base_url)
        url = f"{base_url}/api/v1/repos/search?sort=updated&order=desc&limit=50"
        data = await self.http.fetch_json(url, token=cfg.token, timeout_secs=cfg.timeout_secs)
        response = parse_payload(GiteaSearchResponse, data, url)

        cutoff = datetime.now(timezone.utc) - timedelta(days=ACTIVITY_WINDOW_DAYS)
        repos: List[Repo] = []
        for item in response.data:
            updated = parse_timestamp(item.updated_at)
            # no usable timestamp: keep the repo, recency unknown
            if updated is not None and updated < cutoff:
                continue
            repos.append(
                Repo(
                    provider=self.id,
                    icon=self.icon,
                    name=item.full_name,
                    language=item.language or None,
                    description=item.description or None,
                    url=item.html_url,
                    stars_total=item.stars_count,
                    last_activity=updated,
                )
            )
        return take_matching(repos, language_filter, limit)
