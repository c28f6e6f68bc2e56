from datetime import datetime, timezone
from typing import FrozenSet, Iterable, List, Optional

from ..schemas import Repo

ASCII_NAME_MIN_RATIO = 0.8
ASCII_DESCRIPTION_MIN_RATIO = 0.7


def split_csv(values: Optional[Iterable[str]]) -> Optional[List[str]]:
    """Flatten repeated and comma-separated values: ``["rust,go", "c"]`` -> rust, go, c."""
    if values is None:
        return None
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


class LanguageFilter:
    """Case-insensitive set of languages. Empty matches everything."""

    def __init__(self, languages: Optional[Iterable[str]] = None):
        # keeps the configured order for providers that fetch one page per language
        self.languages: List[str] = []
        for lang in languages or []:
            lang = (lang or "").strip()
            if lang and lang not in self.languages:
                self.languages.append(lang)
        self._languages: FrozenSet[str] = frozenset(lang.lower() for lang in self.languages)

    def __bool__(self) -> bool:
        return bool(self._languages)

    def __repr__(self) -> str:
        return f"LanguageFilter({self.languages!r})"

    def matches(self, language: Optional[str]) -> bool:
        if not self._languages:
            return True
        if language is None:
            return False
        return language.lower() in self._languages


def has_excluded_topic(topics: Iterable[str], exclude: Iterable[str]) -> bool:
    excluded = {topic.lower() for topic in exclude}
    if not excluded:
        return False
    return any(topic.lower() in excluded for topic in topics)


def ascii_ratio(text: str) -> float:
    if not text:
        return 1.0
    return sum(1 for ch in text if ch.isascii()) / len(text)


def passes_ascii(repo: Repo) -> bool:
    if ascii_ratio(repo.name) < ASCII_NAME_MIN_RATIO:
        return False
    if repo.description and ascii_ratio(repo.description) < ASCII_DESCRIPTION_MIN_RATIO:
        return False
    return True


def passes_min_stars(repo: Repo, min_stars: int) -> bool:
    return (repo.stars_total or 0) >= min_stars


def apply_cross_filters(
    repos: List[Repo], ascii_only: bool = False, min_stars: Optional[int] = None
) -> List[Repo]:
    out = repos
    if ascii_only:
        out = [repo for repo in out if passes_ascii(repo)]
    if min_stars:
        out = [repo for repo in out if passes_min_stars(repo, min_stars)]
    return out


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """RFC3339 / ISO-8601 string to an aware UTC datetime, None if unparsable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
