"""HTTP client for the object storage REST API.

Provides retry with exponential backoff and bearer-style token auth.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from stowctl.core.exceptions import (
    AuthenticationError,
    CallCanceledError,
    NetworkError,
    ObjectNotFoundError,
    PermissionDeniedError,
    RetryExhaustedError,
    ServerResponseError,
    ServerUnreachableError,
)
from stowctl.core.validation import validate_server_url

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_RETRY_TIME = 2 * 60
RETRY_BACKOFF_BASE = 2
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def is_retryable_status(status_code: int) -> bool:
    """Check if an HTTP status code warrants a retry.

    Retryable: 408 (timeout), 429 (rate limit), 5xx (server errors).
    Non-retryable: 2xx (success), 401/403 (auth), other 4xx (client error).
    """
    return status_code in RETRYABLE_STATUS_CODES


# =============================================================================
# StorageClient
# =============================================================================


@dataclass
class StorageClient:
    """HTTP client for the storage REST API with retry."""

    base_url: str
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    max_retry_time: float = DEFAULT_MAX_RETRY_TIME
    verify_ssl: bool = True
    transport: httpx.BaseTransport | None = field(default=None, repr=False)
    _client: httpx.Client | None = field(init=False, default=None, repr=False)
    _client_lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        """Validate and normalize URL."""
        self.base_url = validate_server_url(self.base_url)

    # =========================================================================
    # Client Management
    # =========================================================================

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    base_url=self.base_url,
                    timeout=self.timeout,
                    verify=self.verify_ssl,
                    follow_redirects=True,
                    transport=self.transport,
                )
            return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> StorageClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # Requests
    # =========================================================================

    @staticmethod
    def auth_headers(token: str | None) -> dict[str, str]:
        """Authorization header for ``token``, empty when unauthenticated."""
        if token:
            return {"Authorization": f"Firebase {token}"}
        return {}

    def request(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
        content_factory: Callable[[], Any] | None = None,
        timeout: int | None = None,
        success_codes: tuple[int, ...] = (200,),
        cancel_event: threading.Event | None = None,
    ) -> httpx.Response:
        """Execute an HTTP request with retry logic.

        Args:
            method: HTTP method.
            url: Path relative to the base URL, or an absolute URL.
            token: Access token, if any.
            params: Query parameters.
            headers: Additional headers.
            content: Raw body.
            content_factory: Builds a fresh body for every attempt (for streamed bodies).
            timeout: Request timeout override.
            success_codes: Status codes treated as success.
            cancel_event: Aborts retries (and backoff waits) once set.

        Returns:
            HTTP response.

        Raises:
            AuthenticationError: On HTTP 401.
            PermissionDeniedError: On HTTP 403.
            ObjectNotFoundError: On HTTP 404.
            ServerResponseError: On any other unexpected status.
            CallCanceledError: If cancel_event was set.
            RetryExhaustedError: If all retries fail.
        """
        client = self._get_client()
        all_headers = {**self.auth_headers(token), **(headers or {})}
        request_timeout = timeout or self.timeout
        deadline = time.monotonic() + self.max_retry_time
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            self._check_canceled(cancel_event, method, url)
            body = content_factory() if content_factory is not None else content
            try:
                resp = client.request(
                    method,
                    url,
                    params=params,
                    headers=all_headers,
                    content=body,
                    timeout=request_timeout,
                )
            except httpx.ConnectError:
                last_error = ServerUnreachableError(self.base_url)
            except httpx.TimeoutException:
                last_error = NetworkError(self.base_url, f"Timeout after {request_timeout}s")
            except httpx.TransportError as e:
                self._check_canceled(cancel_event, method, url)
                last_error = NetworkError(self.base_url, str(e))
            else:
                if resp.status_code in success_codes:
                    return resp
                if not is_retryable_status(resp.status_code):
                    raise self._error_for(resp, url)
                last_error = ServerResponseError(url, resp.status_code, resp.text[:200])

            if attempt >= self.max_retries:
                break
            delay = RETRY_BACKOFF_BASE ** (attempt + 1)
            if time.monotonic() + delay > deadline:
                logger.warning("%s %s: retry time budget exhausted", method, url)
                break
            logger.warning(
                "%s %s: %s on attempt %d/%d, retrying in %ds",
                method,
                url,
                last_error,
                attempt + 1,
                self.max_retries + 1,
                delay,
            )
            self._wait(delay, cancel_event, method, url)

        raise RetryExhaustedError(f"{method} {url}", attempt + 1, last_error)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET request."""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST request."""
        return self.request("POST", url, **kwargs)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_canceled(cancel_event: threading.Event | None, method: str, url: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CallCanceledError(f"{method} {url}")

    def _wait(
        self,
        delay: float,
        cancel_event: threading.Event | None,
        method: str,
        url: str,
    ) -> None:
        if cancel_event is None:
            time.sleep(delay)
            return
        if cancel_event.wait(delay):
            raise CallCanceledError(f"{method} {url}")

    def _error_for(self, resp: httpx.Response, url: str) -> Exception:
        if resp.status_code == 401:
            return AuthenticationError(self.base_url, "Token missing, invalid or expired")
        if resp.status_code == 403:
            return PermissionDeniedError(url)
        if resp.status_code == 404:
            return ObjectNotFoundError(url)
        return ServerResponseError(url, resp.status_code, resp.text[:200])
