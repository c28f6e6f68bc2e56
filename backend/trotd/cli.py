"""CLI for trotd."""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from .config import Settings, load_settings
from .errors import AllProvidersFailedError, CacheError, ConfigError
from .logging_setup import setup_logging
from .services.cache import FileCache
from .services.filters import LanguageFilter, split_csv
from .services.render import render_json, render_motd
from .services.trending import fetch_trending

app = typer.Typer(
    name="trotd",
    help="Trending repositories of the day from GitHub, GitLab and Gitea.",
    add_completion=True,
)


def _load_settings(config_file: Optional[Path], max_per_provider: Optional[int]) -> Settings:
    settings = load_settings(config_file)
    if max_per_provider is not None:
        settings = settings.model_copy(update={"max_per_provider": max_per_provider})
    return settings


@app.command()
def main(
    max_per_provider: Optional[int] = typer.Option(
        None, "--max", "-n", min=0, help="Maximum repositories per provider"
    ),
    provider: Optional[List[str]] = typer.Option(
        None, "--provider", "-p", help="Providers to query (comma-separated: gh,gl,ge)"
    ),
    lang: Optional[List[str]] = typer.Option(
        None, "--lang", "-l", help="Filter by language (comma-separated: rust,go)"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable cache"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON instead of MOTD"),
    clear_cache: bool = typer.Option(False, "--clear-cache", help="Remove cached results and exit"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Set logging level"),
) -> None:
    """Print today's trending repositories."""
    settings = _load_settings(config_file, max_per_provider)
    setup_logging(log_level or settings.log_level)

    if clear_cache:
        try:
            FileCache(settings.resolved_cache_dir(), settings.cache_ttl_mins).clear_all()
        except CacheError as exc:
            typer.echo(f"✗ {exc}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Cache cleared: {settings.resolved_cache_dir()}")
        return

    languages = split_csv(lang)
    language_filter = LanguageFilter(languages) if languages is not None else None

    try:
        result = asyncio.run(
            fetch_trending(
                settings,
                provider_ids=split_csv(provider),
                language_filter=language_filter,
                use_cache=not no_cache,
            )
        )
    except AllProvidersFailedError as exc:
        for provider_id, message in exc.errors:
            typer.echo(f"✗ Error: {provider_id}: {message}", err=True)
        typer.echo("All providers failed", err=True)
        raise typer.Exit(code=1)
    except ConfigError as exc:
        typer.echo(f"✗ {exc}", err=True)
        raise typer.Exit(code=2)

    for provider_id, message in result.errors:
        typer.echo(f"✗ Error: {provider_id}: {message}", err=True)

    if json_output:
        typer.echo(render_json(result.repos))
    else:
        typer.echo(render_motd(result.repos))
    logger.debug(f"[cli] rendered {len(result.repos)} repos")


if __name__ == "__main__":
    app()
