import json
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import typer

from ..schemas import Repo

NAME_WIDTH_CAP = 40
LANG_WIDTH_CAP = 15
DESCRIPTION_WIDTH = 45

ICON_COLORS = {
    "github": typer.colors.BRIGHT_MAGENTA,
    "gitlab": typer.colors.BRIGHT_RED,
    "gitea": typer.colors.BRIGHT_GREEN,
}

_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_BROKEN_LINK_RE = re.compile(r"\[[^\]]*\]\([^)]*$")
_SPACES_RE = re.compile(r"\s+")


def clean_description(desc: str) -> str:
    """Strip markdown noise so a description fits on one plain line."""
    # images first, otherwise the link rule leaves a stray "!"
    result = _IMAGE_RE.sub("", desc)
    result = _LINK_RE.sub(r"\1", result)
    result = _BROKEN_LINK_RE.sub("", result)
    result = result.replace("**", "").replace("__", "")
    return _SPACES_RE.sub(" ", result).strip()


def clean_truncated_text(text: str) -> str:
    result = text
    bracket = result.rfind("[")
    if bracket != -1:
        tail = result[bracket:]
        if "]" not in tail or ("(" in tail and ")" not in tail):
            result = result[:bracket]
    paren = result.rfind("(")
    if paren != -1 and ")" not in result[paren:]:
        result = result[:paren]
    return result.rstrip()


def format_recency(last_activity: Optional[datetime], now: Optional[datetime] = None) -> str:
    if last_activity is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    diff = now - last_activity
    if diff < timedelta(hours=24):
        return "today"
    if diff < timedelta(hours=48):
        return "yesterday"
    if diff < timedelta(days=7):
        return f"{diff.days}d ago"
    if diff < timedelta(days=30):
        return f"{diff.days // 7}w ago"
    return f"{diff.days // 30}mo ago"


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        text = text[: max(width - 2, 0)] + ".."
    return text.ljust(width)


def _style(text: str, color: bool, **kwargs) -> str:
    return typer.style(text, **kwargs) if color else text


def render_row(repo: Repo, name_width: int, lang_width: int, color: bool = True) -> str:
    icon = _style(repo.icon, color, fg=ICON_COLORS.get(repo.provider, typer.colors.WHITE))
    name = _style(_fit(repo.name, name_width), color, fg=typer.colors.BRIGHT_CYAN, bold=True)
    lang = _style(_fit(repo.language or "-", lang_width), color, fg=typer.colors.BRIGHT_YELLOW)

    if repo.stars_today is not None:
        stars = _style(f"★{repo.stars_today:<4} today", color, fg=typer.colors.BRIGHT_GREEN)
    elif repo.stars_total is not None:
        stars = _style(f"★{repo.stars_total:<10}", color, fg=typer.colors.BRIGHT_BLACK)
    else:
        stars = " " * 11

    recency = format_recency(repo.last_activity)
    recency_color = {"today": typer.colors.BRIGHT_GREEN, "yesterday": typer.colors.YELLOW}
    recency_text = _style(
        recency.ljust(10), color, fg=recency_color.get(recency, typer.colors.BRIGHT_BLACK)
    )

    desc = clean_description(repo.description) if repo.description else ""
    if len(desc) > DESCRIPTION_WIDTH:
        desc = clean_truncated_text(desc[: DESCRIPTION_WIDTH - 3]) + "..."

    return " ".join([icon, name, lang, stars, recency_text, desc]).rstrip()


def render_motd(repos: List[Repo], color: bool = True) -> str:
    if not repos:
        return "No trending repositories found today."
    name_width = min(max(len(repo.name) for repo in repos), NAME_WIDTH_CAP)
    lang_width = min(max((len(repo.language or "-") for repo in repos), default=1), LANG_WIDTH_CAP)
    return "\n".join(render_row(repo, name_width, lang_width, color) for repo in repos)


def render_json(repos: List[Repo]) -> str:
    return json.dumps(
        [repo.model_dump(mode="json") for repo in repos], indent=2, ensure_ascii=False
    )
