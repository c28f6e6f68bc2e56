from datetime import datetime, timedelta, timezone
from typing import List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup
from loguru import logger
from pydantic import BaseModel, Field

from ..errors import ParseError, TrotdError
from ..schemas import ProviderCfg, Repo
from ..services.filters import LanguageFilter, has_excluded_topic, parse_timestamp
from ..services.http_client import HttpClient
from .base import Provider, parse_payload, take_matching

SEARCH_URL = "https://api.github.com/search/repositories"
TRENDING_URL = "https://github.com/trending"
SEARCH_WINDOW_DAYS = 7


class GitHubRepository(BaseModel):
    full_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    html_url: str = Field(..., min_length=1)
    stargazers_count: int = 0
    language: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    updated_at: Optional[str] = None


class GitHubSearchResponse(BaseModel):
    items: List[GitHubRepository]


def _parse_count(text: str) -> Optional[int]:
    parts = text.replace(",", "").split()
    if not parts:
        return None
    try:
        return int(parts[0])
    except ValueError:
        return None


class GitHubAdapter(Provider):
    """GitHub trending.

    Scrapes the daily trending page, which is the only source of a
    stars-today figure. The page carries no topics, so when topics must be
    excluded the search API is queried instead for repositories created in
    the last week, sorted by stars.
    """

    id = "github"
    icon = "[GH]"

    def __init__(self, http: HttpClient):
        self.http = http

    async def fetch_top(
        self, cfg: ProviderCfg, limit: int, language_filter: LanguageFilter
    ) -> List[Repo]:
        if cfg.exclude_topics:
            repos = await self._search_recent(cfg)
        else:
            repos = await self._scrape_trending(cfg, language_filter)
        return take_matching(repos, language_filter, limit)

    async def _search_recent(self, cfg: ProviderCfg) -> List[Repo]:
        since = (datetime.now(timezone.utc) - timedelta(days=SEARCH_WINDOW_DAYS)).strftime("%Y-%m-%d")
        url = f"{SEARCH_URL}?q=created:>={since}&sort=stars&order=desc&per_page=100"
        data = await self.http.fetch_json(url, token=cfg.token, timeout_secs=cfg.timeout_secs)
        response = parse_payload(GitHubSearchResponse, data, url)

        repos: List[Repo] = []
        for item in response.items:
            if has_excluded_topic(item.topics, cfg.exclude_topics):
                continue
            repos.append(
                Repo(
                    provider=self.id,
                    icon=self.icon,
                    name=item.full_name,
                    language=item.language,
                    description=item.description,
                    url=item.html_url,
                    stars_total=item.stargazers_count,
                    last_activity=parse_timestamp(item.updated_at),
                    topics=item.topics,
                )
            )
        return repos

    async def _scrape_trending(
        self, cfg: ProviderCfg, language_filter: LanguageFilter
    ) -> List[Repo]:
        if not language_filter:
            return await self._fetch_trending_page(None, cfg)

        repos: List[Repo] = []
        last_error: Optional[TrotdError] = None
        fetched_any = False
        for lang in language_filter.languages:
            try:
                repos.extend(await self._fetch_trending_page(lang, cfg))
                fetched_any = True
            except TrotdError as exc:
                logger.warning(f"[github] trending page for {lang} failed: {exc}")
                last_error = exc
        if not fetched_any and last_error is not None:
            raise last_error
        return repos

    async def _fetch_trending_page(self, language: Optional[str], cfg: ProviderCfg) -> List[Repo]:
        if language:
            url = f"{TRENDING_URL}/{quote(language.lower(), safe='')}?since=daily"
        else:
            url = f"{TRENDING_URL}?since=daily"
        html = await self.http.fetch_html(url, timeout_secs=cfg.timeout_secs)
        return self.parse_trending_html(html, url)

    def parse_trending_html(self, html: str, url: str = TRENDING_URL) -> List[Repo]:
        soup = BeautifulSoup(html, "html.parser")
        now = datetime.now(timezone.utc)
        repos: List[Repo] = []

        for article in soup.select("article.Box-row"):
            link = article.select_one("h2 a")
            if link is None:
                continue
            href = (link.get("href") or "").strip()
            name = "".join(link.get_text().split())
            if not href or not name:
                continue

            desc_elem = article.find("p")
            description = desc_elem.get_text().strip() if desc_elem else ""
            lang_elem = article.find("span", attrs={"itemprop": "programmingLanguage"})
            language = lang_elem.get_text().strip() if lang_elem else ""

            stars_today = None
            stars_total = None
            fragments = article.select("a[href$='/stargazers']") + article.select(
                "span.d-inline-block.float-sm-right"
            )
            for fragment in fragments:
                text = fragment.get_text().strip()
                if "today" in text:
                    stars_today = _parse_count(text)
                elif stars_total is None:
                    stars_total = _parse_count(text)

            repos.append(
                Repo(
                    provider=self.id,
                    icon=self.icon,
                    name=name,
                    language=language or None,
                    description=description or None,
                    url=f"https://github.com/{href.lstrip('/')}",
                    stars_today=stars_today,
                    stars_total=stars_total,
                    # on the daily trending page means active today
                    last_activity=now,
                )
            )

        if not repos:
            raise ParseError("Failed to parse any repositories from GitHub trending page", url)
        return repos
