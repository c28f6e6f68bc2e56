from typing import Iterable, List, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ParseError
from ..schemas import ProviderCfg, Repo
from ..services.filters import LanguageFilter

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class Provider(Protocol):
    id: str
    icon: str

    async def fetch_top(
        self, cfg: ProviderCfg, limit: int, language_filter: LanguageFilter
    ) -> List[Repo]:
        ...


def take_matching(repos: Iterable[Repo], language_filter: LanguageFilter, limit: int) -> List[Repo]:
    """Language filter first, then keep the first ``limit`` in upstream order."""
    out: List[Repo] = []
    if limit <= 0:
        return out
    for repo in repos:
        if not language_filter.matches(repo.language):
            continue
        out.append(repo)
        if len(out) >= limit:
            break
    return out


def parse_payload(model: type[PayloadT], data: object, url: str) -> PayloadT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ParseError(f"Unexpected response shape ({exc.error_count()} errors)", url) from exc
