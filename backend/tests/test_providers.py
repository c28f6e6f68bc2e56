"""Provider adapters against canned upstream responses."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from trotd.datasources.gitea_adapter import GiteaAdapter, normalize_base_url
from trotd.datasources.github_adapter import GitHubAdapter
from trotd.datasources.gitlab_adapter import GitLabAdapter, extract_language
from trotd.datasources.registry import build_providers, resolve_provider_ids
from trotd.errors import ClientError, ConfigError, ParseError
from trotd.schemas import ProviderCfg
from trotd.services.filters import LanguageFilter
from trotd.services.http_client import HttpClient, HttpClientConfig

pytestmark = pytest.mark.anyio

NO_FILTER = LanguageFilter([])

TRENDING_HTML = """
<html><body>
<article class="Box-row">
  <h2 class="h3 lh-condensed">
    <a href="/rust-lang/rust">
      <span class="text-normal">rust-lang /</span>
      rust
    </a>
  </h2>
  <p class="col-9 color-fg-muted my-1 pr-4">
    Empowering everyone to build reliable and efficient software.
  </p>
  <div class="f6 color-fg-muted mt-2">
    <span itemprop="programmingLanguage">Rust</span>
    <a class="Link--muted d-inline-block mr-3" href="/rust-lang/rust/stargazers">
      98,765
    </a>
    <span class="d-inline-block float-sm-right">1,234 stars today</span>
  </div>
</article>
<article class="Box-row">
  <h2 class="h3 lh-condensed"><a href="/psf/black"><span>psf /</span> black</a></h2>
  <div class="f6 color-fg-muted mt-2">
    <span itemprop="programmingLanguage">Python</span>
    <a class="Link--muted d-inline-block mr-3" href="/psf/black/stargazers">38,000</a>
    <span class="d-inline-block float-sm-right">56 stars today</span>
  </div>
</article>
<article class="Box-row">
  <h2 class="h3 lh-condensed"><a href="/someone/dotfiles">someone / dotfiles</a></h2>
  <p class="col-9">My dotfiles</p>
</article>
</body></html>
"""


def iso(days_ago: float) -> str:
    moment = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def make_http(handler) -> HttpClient:
    config = HttpClientConfig(max_retries=0, base_delay_ms=0, max_delay_ms=0)
    return HttpClient(config, transport=httpx.MockTransport(handler))


def cfg(**overrides) -> ProviderCfg:
    return ProviderCfg(**{"timeout_secs": 5, **overrides})


class TestGitHub:
    async def test_scrape_parses_trending_page(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=TRENDING_HTML)

        async with make_http(handler) as http:
            repos = await GitHubAdapter(http).fetch_top(cfg(), 10, NO_FILTER)

        assert str(seen[0].url) == "https://github.com/trending?since=daily"
        assert [r.name for r in repos] == ["rust-lang/rust", "psf/black", "someone/dotfiles"]
        rust = repos[0]
        assert rust.provider == "github" and rust.icon == "[GH]"
        assert rust.url == "https://github.com/rust-lang/rust"
        assert rust.language == "Rust"
        assert rust.stars_today == 1234
        assert rust.stars_total == 98765
        assert rust.description.startswith("Empowering everyone")
        assert rust.last_activity is not None
        assert rust.topics == []
        assert repos[2].language is None and repos[2].stars_total is None

    async def test_scrape_with_language_fetches_one_page_per_language(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, text=TRENDING_HTML)

        async with make_http(handler) as http:
            repos = await GitHubAdapter(http).fetch_top(cfg(), 10, LanguageFilter(["rust", "python"]))

        assert seen == [
            "https://github.com/trending/rust?since=daily",
            "https://github.com/trending/python?since=daily",
        ]
        # both pages concatenated, then filtered
        assert [r.name for r in repos] == [
            "rust-lang/rust",
            "psf/black",
            "rust-lang/rust",
            "psf/black",
        ]

    async def test_scrape_limit_applies_after_language_filter(self):
        async with make_http(lambda request: httpx.Response(200, text=TRENDING_HTML)) as http:
            repos = await GitHubAdapter(http).fetch_top(cfg(), 1, LanguageFilter(["python"]))
        assert [r.name for r in repos] == ["psf/black"]

    async def test_failing_language_page_is_skipped(self):
        def handler(request):
            if "/trending/go" in str(request.url):
                return httpx.Response(404)
            return httpx.Response(200, text=TRENDING_HTML)

        async with make_http(handler) as http:
            repos = await GitHubAdapter(http).fetch_top(cfg(), 5, LanguageFilter(["go", "rust"]))
        assert [r.name for r in repos] == ["rust-lang/rust"]

    async def test_all_language_pages_failing_raises(self):
        async with make_http(lambda request: httpx.Response(404)) as http:
            with pytest.raises(ClientError):
                await GitHubAdapter(http).fetch_top(cfg(), 5, LanguageFilter(["go"]))

    async def test_empty_page_is_parse_error(self):
        async with make_http(lambda request: httpx.Response(200, text="<html></html>")) as http:
            with pytest.raises(ParseError):
                await GitHubAdapter(http).fetch_top(cfg(), 5, NO_FILTER)

    async def test_topic_exclusion_uses_search_api(self):
        seen = []
        payload = {
            "items": [
                {
                    "full_name": "a/crypto-bot",
                    "html_url": "https://github.com/a/crypto-bot",
                    "stargazers_count": 900,
                    "language": "Python",
                    "topics": ["Crypto", "bot"],
                    "updated_at": "2024-05-01T12:00:00Z",
                },
                {
                    "full_name": "b/tool",
                    "description": "A tool",
                    "html_url": "https://github.com/b/tool",
                    "stargazers_count": 500,
                    "language": "Go",
                    "topics": ["cli"],
                    "updated_at": "not-a-date",
                },
                {
                    "full_name": "c/lib",
                    "html_url": "https://github.com/c/lib",
                    "stargazers_count": 100,
                    "language": "Rust",
                    "topics": [],
                    "updated_at": "2024-05-02T08:00:00Z",
                },
            ]
        }

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=payload)

        async with make_http(handler) as http:
            repos = await GitHubAdapter(http).fetch_top(
                cfg(token="tok", exclude_topics=["crypto"]), 5, NO_FILTER
            )

        assert seen[0].url.host == "api.github.com"
        assert seen[0].url.path == "/search/repositories"
        assert seen[0].url.params["q"].startswith("created:>=")
        assert seen[0].url.params["sort"] == "stars"
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert [r.name for r in repos] == ["b/tool", "c/lib"]
        assert repos[0].stars_total == 500
        assert repos[0].stars_today is None
        assert repos[0].last_activity is None
        assert repos[1].last_activity == datetime(2024, 5, 2, 8, tzinfo=timezone.utc)
        assert repos[0].topics == ["cli"]

    async def test_search_bad_shape_is_parse_error(self):
        async with make_http(lambda request: httpx.Response(200, json={"message": "nope"})) as http:
            with pytest.raises(ParseError):
                await GitHubAdapter(http).fetch_top(cfg(exclude_topics=["x"]), 5, NO_FILTER)


class TestGitLab:
    PROJECTS = [
        {
            "path_with_namespace": "group/popular",
            "description": "Popular",
            "star_count": 120,
            "web_url": "https://gitlab.com/group/popular",
            "topics": ["cli", "golang"],
            "last_activity_at": "2024-05-01T12:00:00.123Z",
        },
        {
            "path_with_namespace": "group/unpopular",
            "star_count": 3,
            "web_url": "https://gitlab.com/group/unpopular",
            "topics": ["python"],
            "last_activity_at": "2024-05-01T12:00:00Z",
        },
        {
            "path_with_namespace": "group/no-stars",
            "star_count": None,
            "web_url": "https://gitlab.com/group/no-stars",
        },
        {
            "path_with_namespace": "group/pylib",
            "star_count": 10,
            "web_url": "https://gitlab.com/group/pylib",
            "topics": ["Python"],
            "last_activity_at": "garbage",
        },
    ]

    async def test_fetch_applies_star_threshold_and_language(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=self.PROJECTS)

        async with make_http(handler) as http:
            repos = await GitLabAdapter(http).fetch_top(cfg(), 10, NO_FILTER)

        params = seen[0].url.params
        assert seen[0].url.path == "/api/v4/projects"
        assert params["order_by"] == "last_activity_at"
        assert params["sort"] == "desc"
        assert "last_activity_after" in params
        assert [r.name for r in repos] == ["group/popular", "group/pylib"]
        assert repos[0].language == "Go"
        assert repos[0].icon == "[GL]"
        assert repos[0].last_activity is not None
        assert repos[1].language == "Python"
        assert repos[1].last_activity is None
        assert all((r.stars_total or 0) >= 10 for r in repos)

    async def test_language_filter_and_limit(self):
        async with make_http(lambda request: httpx.Response(200, json=self.PROJECTS)) as http:
            repos = await GitLabAdapter(http).fetch_top(cfg(), 1, LanguageFilter(["python"]))
        assert [r.name for r in repos] == ["group/pylib"]

    async def test_non_list_payload_is_parse_error(self):
        async with make_http(lambda request: httpx.Response(200, json={"error": "x"})) as http:
            with pytest.raises(ParseError):
                await GitLabAdapter(http).fetch_top(cfg(), 5, NO_FILTER)

    @pytest.mark.parametrize(
        "topics, expected",
        [
            (["rust", "cli"], "Rust"),
            (["web", "python"], "Python"),
            (["web"], None),
            (["c++"], "C++"),
            (["C#"], "C#"),
            (["golang"], "Go"),
            (["pythonic"], None),
            ([], None),
        ],
    )
    def test_extract_language(self, topics, expected):
        assert extract_language(topics) == expected


class TestGitea:
    async def test_fetch_filters_by_recency(self):
        seen = []
        payload = {
            "data": [
                {
                    "full_name": "org/fresh",
                    "html_url": "https://codeberg.org/org/fresh",
                    "stars_count": 4,
                    "language": "Go",
                    "updated_at": iso(1),
                },
                {
                    "full_name": "org/stale",
                    "html_url": "https://codeberg.org/org/stale",
                    "stars_count": 40,
                    "language": "Go",
                    "updated_at": iso(30),
                },
                {
                    "full_name": "org/unknown",
                    "description": "",
                    "html_url": "https://codeberg.org/org/unknown",
                    "language": "",
                    "updated_at": "whenever",
                },
            ]
        }

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=payload)

        async with make_http(handler) as http:
            repos = await GiteaAdapter(http).fetch_top(
                cfg(base_url="https://codeberg.org/"), 10, NO_FILTER
            )

        assert str(seen[0].url).startswith("https://codeberg.org/api/v1/repos/search?")
        assert seen[0].url.params["sort"] == "updated"
        assert [r.name for r in repos] == ["org/fresh", "org/unknown"]
        assert repos[0].icon == "[GE]"
        assert repos[0].stars_total == 4
        assert repos[1].language is None and repos[1].description is None
        assert repos[1].last_activity is None
        assert all(r.topics == [] for r in repos)

    async def test_default_base_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": []})

        async with make_http(handler) as http:
            assert await GiteaAdapter(http).fetch_top(cfg(), 3, NO_FILTER) == []
        assert seen[0].url.host == "gitea.com"

    async def test_malformed_base_url_is_config_error(self):
        async with make_http(lambda request: httpx.Response(200, json={"data": []})) as http:
            with pytest.raises(ConfigError):
                await GiteaAdapter(http).fetch_top(cfg(base_url="gitea.local"), 3, NO_FILTER)

    def test_normalize_base_url(self):
        assert normalize_base_url("https://try.gitea.io/") == "https://try.gitea.io"
        assert normalize_base_url(None) == "https://gitea.com"
        with pytest.raises(ConfigError):
            normalize_base_url("ftp://example.com")


class TestRegistry:
    def test_short_names_and_dedup(self):
        assert resolve_provider_ids(["gh", "GitLab", "ge", "github", " "]) == [
            "github",
            "gitlab",
            "gitea",
        ]

    def test_unknown_provider(self):
        with pytest.raises(ConfigError):
            resolve_provider_ids(["bitbucket"])

    async def test_build_providers(self):
        async with make_http(lambda request: httpx.Response(200)) as http:
            providers = build_providers(["gitea", "github"], http)
        assert {pid: (p.id, p.icon) for pid, p in providers.items()} == {
            "gitea": ("gitea", "[GE]"),
            "github": ("github", "[GH]"),
        }


@pytest.mark.parametrize("limit", [0, 1, 2])
async def test_limit_contract(limit):
    async with make_http(lambda request: httpx.Response(200, text=TRENDING_HTML)) as http:
        repos = await GitHubAdapter(http).fetch_top(cfg(), limit, NO_FILTER)
    assert len(repos) <= limit
