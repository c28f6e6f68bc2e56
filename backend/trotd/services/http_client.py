from typing import Any, Dict, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ..errors import ClientError, ConfigError, NetworkError, ParseError, UpstreamStatusError

USER_AGENT = "trotd/0.1.0"


class HttpClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout_secs: float = 6
    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=500, ge=0)
    max_delay_ms: int = Field(default=8000, ge=0)
    user_agent: str = USER_AGENT


def is_retryable(exc: BaseException) -> bool:
    """4xx means the request itself is wrong; everything else may be transient."""
    if isinstance(exc, ClientError):
        return False
    return isinstance(exc, (NetworkError, UpstreamStatusError, ParseError))


def bearer_header(token: str) -> str:
    value = f"Bearer {token}"
    if any(not (0x20 <= ord(ch) < 0x7F) for ch in value):
        raise ConfigError("Invalid authentication token: not a valid header value")
    return value


class HttpClient:
    """Thin wrapper over httpx.AsyncClient adding headers, timeouts and retries."""

    def __init__(
        self,
        config: Optional[HttpClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or HttpClientConfig()
        self.client = httpx.AsyncClient(
            transport=transport,
            timeout=self.config.timeout_secs,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def fetch_json(
        self, url: str, token: Optional[str] = None, timeout_secs: Optional[float] = None
    ) -> Any:
        headers = self._headers("application/json", token)
        async for attempt in self._retrying():
            with attempt:
                resp = await self._get(url, headers, timeout_secs)
                try:
                    return resp.json()
                except ValueError as exc:
                    raise ParseError("Failed to parse JSON response", url) from exc

    async def fetch_html(self, url: str, timeout_secs: Optional[float] = None) -> str:
        headers = self._headers("text/html", None)
        async for attempt in self._retrying():
            with attempt:
                resp = await self._get(url, headers, timeout_secs)
                return resp.text

    def _headers(self, accept: str, token: Optional[str]) -> Dict[str, str]:
        headers = {"User-Agent": self.config.user_agent, "Accept": accept}
        if token:
            headers["Authorization"] = bearer_header(token)
        return headers

    def _retrying(self) -> AsyncRetrying:
        base = self.config.base_delay_ms / 1000
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_exponential_jitter(
                initial=base, max=self.config.max_delay_ms / 1000, jitter=base
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _get(
        self, url: str, headers: Dict[str, str], timeout_secs: Optional[float]
    ) -> httpx.Response:
        timeout = self.config.timeout_secs if timeout_secs is None else timeout_secs
        try:
            resp = await self.client.get(url, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out ({type(exc).__name__})", url) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Failed to fetch URL ({type(exc).__name__})", url) from exc

        if 400 <= resp.status_code < 500:
            raise ClientError(resp.status_code, url)
        if not resp.is_success:
            raise UpstreamStatusError(resp.status_code, url)
        return resp


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"[http] attempt {retry_state.attempt_number} failed: {exc}; retrying in {delay:.2f}s"
    )
