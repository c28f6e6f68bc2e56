from typing import Dict, Iterable, List, Type

from ..errors import ConfigError
from ..services.http_client import HttpClient
from .base import Provider
from .gitea_adapter import GiteaAdapter
from .github_adapter import GitHubAdapter
from .gitlab_adapter import GitLabAdapter

PROVIDERS: Dict[str, Type[Provider]] = {
    "github": GitHubAdapter,
    "gitlab": GitLabAdapter,
    "gitea": GiteaAdapter,
}
SHORT_NAMES = {"gh": "github", "gl": "gitlab", "ge": "gitea"}


def resolve_provider_ids(names: Iterable[str]) -> List[str]:
    """Map short names (gh, gl, ge) to provider ids, dropping duplicates."""
    resolved: List[str] = []
    for raw in names:
        name = raw.strip().lower()
        if not name:
            continue
        provider_id = SHORT_NAMES.get(name, name)
        if provider_id not in PROVIDERS:
            raise ConfigError(f"Unknown provider: {raw}")
        if provider_id not in resolved:
            resolved.append(provider_id)
    return resolved


def build_providers(provider_ids: Iterable[str], http: HttpClient) -> Dict[str, Provider]:
    return {provider_id: PROVIDERS[provider_id](http) for provider_id in provider_ids}
