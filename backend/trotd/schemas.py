from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Repo(BaseModel):
    """Repository record shared by every provider."""

    model_config = ConfigDict(frozen=True)

    provider: str
    icon: str
    name: str = Field(..., min_length=1)
    language: Optional[str] = None
    description: Optional[str] = None
    url: str = Field(..., min_length=1)
    stars_today: Optional[int] = None
    stars_total: Optional[int] = None
    last_activity: Optional[datetime] = None
    topics: List[str] = Field(default_factory=list)


class ProviderCfg(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout_secs: int
    token: Optional[str] = None
    base_url: Optional[str] = None  # gitea only
    exclude_topics: List[str] = Field(default_factory=list)  # github only


class CacheEntry(BaseModel):
    timestamp: int
    repos: List[Repo]


class ProviderWarning(BaseModel):
    provider: str
    message: str


class TrendingResponse(BaseModel):
    repos: List[Repo]
    warnings: List[ProviderWarning]
