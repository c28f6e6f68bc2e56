"""HTTP API for trotd.

Serve with the installed `trotd-api` script or `uvicorn trotd.main:app`.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import get_settings
from .errors import AllProvidersFailedError, ConfigError
from .logging_setup import setup_logging
from .schemas import ProviderWarning, TrendingResponse
from .services.filters import LanguageFilter, split_csv
from .services.trending import fetch_trending

settings = get_settings()
setup_logging(settings.log_level)
app = FastAPI(title="trotd", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/trending", response_model=TrendingResponse)
async def trending(
    provider: Optional[List[str]] = Query(None, description="gh, gl, ge or full provider ids"),
    lang: Optional[List[str]] = Query(None),
    limit: Optional[int] = Query(None, ge=0, le=100, description="Max repositories per provider"),
    use_cache: bool = Query(True),
):
    current = get_settings()
    if limit is not None:
        current = current.model_copy(update={"max_per_provider": limit})
    languages = split_csv(lang)
    language_filter = LanguageFilter(languages) if languages else None

    try:
        result = await fetch_trending(
            current,
            provider_ids=split_csv(provider),
            language_filter=language_filter,
            use_cache=use_cache,
        )
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except AllProvidersFailedError as exc:
        logger.error(f"[api] {exc.message}")
        raise HTTPException(
            status_code=502,
            detail=[{"provider": provider_id, "message": message} for provider_id, message in exc.errors],
        )

    return TrendingResponse(
        repos=result.repos,
        warnings=[
            ProviderWarning(provider=provider_id, message=message)
            for provider_id, message in result.errors
        ],
    )


def serve() -> None:
    import uvicorn
    uvicorn.run("trotd.main:app", host="0.0.0.0", port=8020)


if __name__ == "__main__":
    serve()
