from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, RootModel

from ..schemas import ProviderCfg, Repo
from ..services.filters import LanguageFilter, parse_timestamp
from ..services.http_client import HttpClient
from .base import Provider, parse_payload, take_matching

PROJECTS_URL = "https://gitlab.com/api/v4/projects"
ACTIVITY_WINDOW_DAYS = 7
MIN_STARS = 10

# GitLab has no language field; these topics stand in for one
LANGUAGE_TOPICS = (
    "rust",
    "go",
    "golang",
    "python",
    "javascript",
    "typescript",
    "java",
    "c",
    "cpp",
    "c++",
    "csharp",
    "c#",
    "ruby",
    "php",
    "swift",
    "kotlin",
    "scala",
    "haskell",
    "elixir",
    "erlang",
)
DISPLAY_NAMES = {"golang": "Go", "c++": "C++", "c#": "C#"}


class GitLabProject(BaseModel):
    path_with_namespace: str = Field(..., min_length=1)
    description: Optional[str] = None
    star_count: Optional[int] = None
    web_url: str = Field(..., min_length=1)
    topics: List[str] = Field(default_factory=list)
    last_activity_at: Optional[str] = None


class GitLabProjects(RootModel[List[GitLabProject]]):
    pass


def extract_language(topics: List[str]) -> Optional[str]:
    for topic in topics:
        lower = topic.lower()
        if lower not in LANGUAGE_TOPICS:
            continue
        if lower in DISPLAY_NAMES:
            return DISPLAY_NAMES[lower]
        return topic[:1].upper() + topic[1:]
    return None


class GitLabAdapter(Provider):
    """Recently active public projects on gitlab.com with at least 10 stars."""

    id = "gitlab"
    icon = "[GL]"

    def __init__(self, http: HttpClient):
        self.http = http

    async def fetch_top(
        self, cfg: ProviderCfg, limit: int, language_filter: LanguageFilter
    ) -> List[Repo]:
        since = (datetime.now(timezone.utc) - timedelta(days=ACTIVITY_WINDOW_DAYS)).strftime(
            "%Y-%m-%dT00:00:00Z"
        )
        url = (
            f"{PROJECTS_URL}?order_by=last_activity_at&sort=desc"
            f"&last_activity_after={since}&per_page=100"
        )
        data = await self.http.fetch_json(url, token=cfg.token, timeout_secs=cfg.timeout_secs)
        projects = parse_payload(GitLabProjects, data, url).root

        repos = [
            Repo(
                provider=self.id,
                icon=self.icon,
                name=project.path_with_namespace,
                language=extract_language(project.topics),
                description=project.description,
                url=project.web_url,
                stars_total=project.star_count,
                last_activity=parse_timestamp(project.last_activity_at),
                topics=project.topics,
            )
            for project in projects
            if (project.star_count or 0) >= MIN_STARS
        ]
        return take_matching(repos, language_filter, limit)
