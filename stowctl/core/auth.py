"""Authentication management for stowctl.

Handles access token caching and the token providers an upload task
consults before every network step.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Protocol

from stowctl.core.config import ENV_TOKEN, TOKEN_CACHE_FILE
from stowctl.core.exceptions import AuthFailure

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

TOKEN_EXPIRY_MINUTES = 55  # Access tokens are usually valid for one hour


# =============================================================================
# Token Cache
# =============================================================================


@dataclass
class CachedToken:
    """Cached access token with metadata."""

    token: str
    url: str
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self) -> bool:
        """Check if token has expired."""
        if self.expires_at:
            return datetime.now() >= self.expires_at
        return False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "token": self.token,
            "url": self.url,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CachedToken:
        """Create from dictionary."""
        return cls(
            token=data["token"],
            url=data["url"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=(
                datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None
            ),
        )


# =============================================================================
# AuthManager
# =============================================================================


class AuthManager:
    """Manages cached access tokens."""

    def __init__(self, cache_file: Path | None = None):
        """Initialize auth manager.

        Args:
            cache_file: Path to token cache file.
        """
        self.cache_file = cache_file or TOKEN_CACHE_FILE

    def get_token_from_env(self) -> str | None:
        """Get access token from environment variable."""
        return os.getenv(ENV_TOKEN)

    def save_token(
        self,
        token: str,
        url: str,
        expiry_minutes: int = TOKEN_EXPIRY_MINUTES,
    ) -> CachedToken:
        """Save access token to cache.

        Args:
            token: Access token.
            url: Storage endpoint the token is valid for.
            expiry_minutes: Minutes until the token is considered expired.

        Returns:
            Cached token object.
        """
        now = datetime.now()
        cached = CachedToken(
            token=token,
            url=url,
            created_at=now,
            expires_at=now + timedelta(minutes=expiry_minutes),
        )

        self.cache_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.cache_file, "w") as f:
            json.dump(cached.to_dict(), f)

        # Owner read/write only
        try:
            os.chmod(self.cache_file, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.cache_file)

        return cached

    def load_token(self, url: str | None = None) -> CachedToken | None:
        """Load cached access token.

        Args:
            url: Optional URL to match. If provided, only returns a token for that URL.

        Returns:
            Cached token if valid, None otherwise.
        """
        if not self.cache_file.exists():
            return None

        try:
            with open(self.cache_file) as f:
                data = json.load(f)

            cached = CachedToken.from_dict(data)

            if url and cached.url != url:
                return None

            if cached.is_expired():
                self.clear_token()
                return None

            return cached

        except (json.JSONDecodeError, KeyError, ValueError):
            self.clear_token()
            return None

    def clear_token(self) -> bool:
        """Clear cached token.

        Returns:
            True if cache was cleared.
        """
        if self.cache_file.exists():
            try:
                self.cache_file.unlink()
                return True
            except OSError:
                logger.warning("Could not remove token cache %s", self.cache_file)
        return False

    def get_access_token(self, url: str | None = None) -> str | None:
        """Get access token from environment or cache.

        Priority:
        1. Environment variable (STOW_TOKEN)
        2. Cached token
        """
        if token := self.get_token_from_env():
            return token

        if cached := self.load_token(url):
            return cached.token

        return None


# =============================================================================
# Token Providers
# =============================================================================


class TokenProvider(Protocol):
    """Resolves the access token for the next request.

    ``get_token`` may be called many times per upload. The returned future
    resolves to a token, or to None for an unauthenticated request.
    """

    def get_token(self) -> Future[Optional[str]]: ...


def _completed(token: Optional[str]) -> Future[Optional[str]]:
    future: Future[Optional[str]] = Future()
    future.set_result(token)
    return future


class StaticTokenProvider:
    """Always resolves to the same token."""

    def __init__(self, token: Optional[str] = None) -> None:
        self.token = token

    def get_token(self) -> Future[Optional[str]]:
        return _completed(self.token)


class CachedTokenProvider:
    """Reads the token from STOW_TOKEN, then from the token cache."""

    def __init__(self, auth_manager: AuthManager | None = None, url: str | None = None) -> None:
        self.auth_manager = auth_manager or AuthManager()
        self.url = url

    def get_token(self) -> Future[Optional[str]]:
        return _completed(self.auth_manager.get_access_token(self.url))


class CallableTokenProvider:
    """Calls a user function for every token, optionally on an executor.

    Exceptions raised by the function surface as AuthFailure.
    """

    def __init__(
        self,
        fetch: Callable[[], Optional[str]],
        executor: Executor | None = None,
    ) -> None:
        self.fetch = fetch
        self.executor = executor

    def _fetch(self) -> Optional[str]:
        try:
            return self.fetch()
        except AuthFailure:
            raise
        except Exception as e:
            raise AuthFailure(reason=f"token provider raised {type(e).__name__}: {e}") from e

    def get_token(self) -> Future[Optional[str]]:
        if self.executor is not None:
            return self.executor.submit(self._fetch)

        future: Future[Optional[str]] = Future()
        try:
            future.set_result(self._fetch())
        except AuthFailure as e:
            future.set_exception(e)
        return future
