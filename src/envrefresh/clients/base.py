from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from envrefresh.core.errors import CollaboratorError

logger = structlog.get_logger()


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


def is_retryable_status(status_code: int) -> bool:
    return status_code in (408, 429, 500, 502, 503, 504)


class BaseHTTPClient:
    """Async JSON client with retry and a per-client circuit breaker.

    Every failure that survives the retries surfaces as CollaboratorError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        backoff_max: float = 30.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_timeout: int = 60,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor
        self._backoff_max = backoff_max
        self._breaker = CircuitBreaker(
            failure_threshold=circuit_failure_threshold,
            recovery_timeout=circuit_recovery_timeout,
            expected_exception=RetryableHTTPError,
        )

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    async def _attempt(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, json=json, headers=headers)
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc

        if is_retryable_status(response.status_code):
            logger.warning("http_retryable_error", status=response.status_code, method=method, url=url)
            raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")
        if response.is_error:
            logger.error("http_permanent_error", status=response.status_code, method=method, url=url)
            raise CollaboratorError(
                f"HTTP {response.status_code} from {url}",
                {"body": response.text[:200]},
            )
        return response.json() if response.content else {}

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, max=self._backoff_max),
            reraise=True,
        )
        return await retrying(self._attempt, method, url, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)
        guarded = self._breaker(self._send)
        try:
            return await guarded(method, url, json=json, headers=req_headers)
        except RetryableHTTPError as exc:
            raise CollaboratorError(
                f"{method} {url} failed after {self._max_retries} attempt(s)",
                {"error": str(exc)},
            ) from exc
        except CircuitBreakerError as exc:
            raise CollaboratorError(f"Circuit open for {self._base_url}", {"error": str(exc)}) from exc

    async def post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        return await self._request("POST", path, json=json, headers=headers)
