"""Error types shared by the HTTP client, providers, cache and orchestrator."""

from typing import List, Optional, Tuple


class TrotdError(Exception):
    """Base exception for all trotd errors."""

    def __init__(self, message: str = "trotd error"):
        self.message = message
        super().__init__(self.message)


class ConfigError(TrotdError):
    """Invalid configuration value (bad token, malformed base URL, unknown provider)."""


class UpstreamError(TrotdError):
    """An upstream request did not produce a usable response."""

    def __init__(self, message: str, url: str):
        self.url = url
        super().__init__(f"{message}: {url}")


class NetworkError(UpstreamError):
    """Connection failure or timeout."""


class UpstreamStatusError(UpstreamError):
    """Non-2xx response."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        super().__init__(f"HTTP request failed with status {status_code}", url)


class ClientError(UpstreamStatusError):
    """4xx response. Never retried."""


class ParseError(TrotdError):
    """Response body did not match the expected shape."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(f"{message}: {url}" if url else message)


class CacheError(TrotdError):
    """Cache read/write failure. Callers degrade to "no cache"."""


class AllProvidersFailedError(TrotdError):
    """No repositories were obtained and at least one provider failed."""

    def __init__(self, errors: List[Tuple[str, str]]):
        self.errors = errors
        details = "; ".join(f"{provider}: {message}" for provider, message in errors)
        super().__init__(f"All providers failed ({details})")
