import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional, Tuple, Type

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .errors import ConfigError
from .schemas import ProviderCfg
from .services.http_client import HttpClientConfig

PROVIDER_IDS = ("github", "gitlab", "gitea")


def config_file_path() -> Path:
    explicit = os.environ.get("TROTD_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "trotd" / "trotd.toml"


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / "trotd"


class Settings(BaseSettings):
    max_per_provider: int = Field(default=2, alias="TROTD_MAX_PER_PROVIDER")
    github_max_entries: Optional[int] = Field(default=None, alias="TROTD_GITHUB_MAX_ENTRIES")
    gitlab_max_entries: Optional[int] = Field(default=None, alias="TROTD_GITLAB_MAX_ENTRIES")
    gitea_max_entries: Optional[int] = Field(default=None, alias="TROTD_GITEA_MAX_ENTRIES")

    timeout_secs: int = Field(default=6, alias="TROTD_TIMEOUT_SECS")
    github_timeout_secs: int = Field(default=15, alias="TROTD_GITHUB_TIMEOUT_SECS")
    gitlab_timeout_secs: int = Field(default=10, alias="TROTD_GITLAB_TIMEOUT_SECS")
    gitea_timeout_secs: int = Field(default=10, alias="TROTD_GITEA_TIMEOUT_SECS")
    max_retries: int = Field(default=3, alias="TROTD_MAX_RETRIES")
    retry_base_delay_ms: int = Field(default=500, alias="TROTD_RETRY_BASE_DELAY_MS")
    retry_max_delay_ms: int = Field(default=8000, alias="TROTD_RETRY_MAX_DELAY_MS")

    cache_ttl_mins: int = Field(default=60, alias="TROTD_CACHE_TTL_MINS")
    cache_dir: Optional[Path] = Field(default=None, alias="TROTD_CACHE_DIR")

    language_filter: Annotated[List[str], NoDecode] = Field(
        default_factory=list, alias="TROTD_LANGUAGE_FILTER"
    )
    ascii_only: bool = Field(default=False, alias="TROTD_ASCII_ONLY")
    min_stars: Optional[int] = Field(default=None, alias="TROTD_MIN_STARS")
    github_exclude_topics: Annotated[List[str], NoDecode] = Field(
        default_factory=list, alias="TROTD_GITHUB_EXCLUDE_TOPICS"
    )

    enable_github: bool = Field(default=True, alias="TROTD_ENABLE_GITHUB")
    enable_gitlab: bool = Field(default=True, alias="TROTD_ENABLE_GITLAB")
    enable_gitea: bool = Field(default=True, alias="TROTD_ENABLE_GITEA")

    github_token: Optional[str] = Field(default=None, alias="TROTD_GITHUB_TOKEN")
    gitlab_token: Optional[str] = Field(default=None, alias="TROTD_GITLAB_TOKEN")
    gitea_token: Optional[str] = Field(default=None, alias="TROTD_GITEA_TOKEN")
    gitea_base_url: str = Field(default="https://gitea.com", alias="TROTD_GITEA_BASE_URL")

    log_level: str = Field(default="WARNING", alias="TROTD_LOG_LEVEL")
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"  # ignore unrelated env vars to avoid validation errors

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # env wins over the toml file, matching how overrides are documented
        toml_file = settings_cls.model_config.get("toml_file") or config_file_path()
        toml_settings = TomlConfigSettingsSource(settings_cls, toml_file=toml_file)
        return init_settings, env_settings, dotenv_settings, toml_settings, file_secret_settings

    @field_validator("language_filter", "github_exclude_topics", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("github_token", "gitlab_token", "gitea_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def enabled_providers(self) -> List[str]:
        flags = {
            "github": self.enable_github,
            "gitlab": self.enable_gitlab,
            "gitea": self.enable_gitea,
        }
        return [provider_id for provider_id in PROVIDER_IDS if flags[provider_id]]

    def max_entries(self, provider_id: str) -> int:
        override = {
            "github": self.github_max_entries,
            "gitlab": self.gitlab_max_entries,
            "gitea": self.gitea_max_entries,
        }.get(provider_id)
        return self.max_per_provider if override is None else override

    def timeout_for(self, provider_id: str) -> int:
        return {
            "github": self.github_timeout_secs,
            "gitlab": self.gitlab_timeout_secs,
            "gitea": self.gitea_timeout_secs,
        }.get(provider_id, self.timeout_secs)

    def token_for(self, provider_id: str) -> Optional[str]:
        return {
            "github": self.github_token,
            "gitlab": self.gitlab_token,
            "gitea": self.gitea_token,
        }.get(provider_id)

    def provider_cfg(self, provider_id: str) -> ProviderCfg:
        if provider_id not in PROVIDER_IDS:
            raise ConfigError(f"Unknown provider: {provider_id}")
        return ProviderCfg(
            timeout_secs=self.timeout_for(provider_id),
            token=self.token_for(provider_id),
            base_url=self.gitea_base_url if provider_id == "gitea" else None,
            exclude_topics=self.github_exclude_topics if provider_id == "github" else [],
        )

    def http_config(self) -> HttpClientConfig:
        return HttpClientConfig(
            timeout_secs=self.timeout_secs,
            max_retries=self.max_retries,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
        )

    def resolved_cache_dir(self) -> Path:
        return self.cache_dir.expanduser() if self.cache_dir else default_cache_dir()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """Settings read from ``config_file`` instead of the default TOML location."""
    if config_file is None:
        return get_settings()

    class FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=Path(config_file).expanduser())

    return FileSettings()
