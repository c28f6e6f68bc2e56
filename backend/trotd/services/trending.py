import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from ..config import Settings
from ..datasources.base import Provider
from ..datasources.registry import build_providers, resolve_provider_ids
from ..errors import AllProvidersFailedError, CacheError, ConfigError
from ..schemas import Repo
from .cache import FileCache
from .filters import LanguageFilter, apply_cross_filters
from .http_client import HttpClient


@dataclass
class TrendingResult:
    repos: List[Repo] = field(default_factory=list)
    # (provider_id, message) for providers that failed while others succeeded
    errors: List[Tuple[str, str]] = field(default_factory=list)


class TrendingService:
    """Fans out to every enabled provider, cache first, and merges the results.

    One provider failing never cancels the others. The call as a whole fails
    only when nothing was collected and at least one provider errored.
    """

    def __init__(
        self,
        settings: Settings,
        cache: Optional[FileCache] = None,
        providers: Optional[Dict[str, Provider]] = None,
        http: Optional[HttpClient] = None,
    ):
        self.settings = settings
        self.cache = cache
        self.http = http
        self._providers = providers

    async def collect(
        self,
        provider_ids: Optional[Iterable[str]] = None,
        language_filter: Optional[LanguageFilter] = None,
    ) -> TrendingResult:
        ids = (
            resolve_provider_ids(provider_ids)
            if provider_ids is not None
            else self.settings.enabled_providers()
        )
        if not ids:
            raise ConfigError("No providers enabled")
        if language_filter is None:
            language_filter = LanguageFilter(self.settings.language_filter)
        providers = self._providers_for(ids)

        tasks = [
            asyncio.ensure_future(self._fetch_one(provider_id, providers[provider_id], language_filter))
            for provider_id in ids
        ]
        repos: List[Repo] = []
        errors: List[Tuple[str, str]] = []
        for next_done in asyncio.as_completed(tasks):
            provider_id, outcome = await next_done
            if isinstance(outcome, Exception):
                logger.warning(f"[trending] {provider_id} failed: {outcome}")
                errors.append((provider_id, str(outcome)))
            elif outcome:
                logger.info(f"[trending] {provider_id} returned {len(outcome)} repos")
                repos.extend(outcome)
            else:
                logger.info(f"[trending] no repositories found for {provider_id}")

        if not repos and errors:
            raise AllProvidersFailedError(errors)

        repos = apply_cross_filters(repos, self.settings.ascii_only, self.settings.min_stars)
        return TrendingResult(repos=repos, errors=errors)

    def _providers_for(self, ids: List[str]) -> Dict[str, Provider]:
        if self._providers is not None:
            missing = [provider_id for provider_id in ids if provider_id not in self._providers]
            if missing:
                raise ConfigError(f"Providers not available: {', '.join(missing)}")
            return self._providers
        if self.http is None:
            raise ConfigError("TrendingService needs an HttpClient to build providers")
        return build_providers(ids, self.http)

    async def _fetch_one(
        self, provider_id: str, provider: Provider, language_filter: LanguageFilter
    ) -> Tuple[str, Union[List[Repo], Exception]]:
        try:
            return provider_id, await self._fetch_records(provider_id, provider, language_filter)
        except Exception as exc:
            return provider_id, exc

    async def _fetch_records(
        self, provider_id: str, provider: Provider, language_filter: LanguageFilter
    ) -> List[Repo]:
        if self.cache is not None:
            try:
                cached = self.cache.get(provider_id)
            except (CacheError, OSError) as exc:
                logger.warning(f"[cache] read for {provider_id} skipped: {exc}")
                cached = None
            if cached is not None:
                return cached

        cfg = self.settings.provider_cfg(provider_id)
        repos = await provider.fetch_top(cfg, self.settings.max_entries(provider_id), language_filter)

        if self.cache is not None:
            try:
                self.cache.set(provider_id, repos)
            except (CacheError, OSError) as exc:
                logger.warning(f"[cache] write for {provider_id} skipped: {exc}")
        return repos


async def fetch_trending(
    settings: Settings,
    provider_ids: Optional[Iterable[str]] = None,
    language_filter: Optional[LanguageFilter] = None,
    use_cache: bool = True,
) -> TrendingResult:
    """One invocation: own the HTTP client and cache handle for its duration."""
    cache = FileCache(settings.resolved_cache_dir(), settings.cache_ttl_mins) if use_cache else None
    async with HttpClient(settings.http_config()) as http:
        service = TrendingService(settings, cache=cache, http=http)
        return await service.collect(provider_ids, language_filter)
