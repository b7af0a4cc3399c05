"""Configuration management for stowctl.

Supports YAML profiles and environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from stowctl.core.exceptions import ConfigurationError, ProfileNotFoundError

# =============================================================================
# Constants
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "stowctl"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
TOKEN_CACHE_FILE = CONFIG_DIR / ".token"

DEFAULT_URL = "https://firebasestorage.googleapis.com"
DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 3
DEFAULT_CHUNK_SIZE = 256 * 1024

# Environment variable names
ENV_URL = "STOW_URL"
ENV_BUCKET = "STOW_BUCKET"
ENV_TOKEN = "STOW_TOKEN"
ENV_PROFILE = "STOW_PROFILE"
ENV_VERIFY_SSL = "STOW_VERIFY_SSL"
ENV_TIMEOUT = "STOW_TIMEOUT"


# =============================================================================
# Profile
# =============================================================================


@dataclass
class Profile:
    """Configuration profile for a storage endpoint."""

    url: str = DEFAULT_URL
    bucket: Optional[str] = None
    verify_ssl: bool = True
    timeout: int = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_status_refetches: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "url": self.url,
            "bucket": self.bucket,
            "verify_ssl": self.verify_ssl,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "chunk_size": self.chunk_size,
        }
        if self.max_status_refetches is not None:
            data["max_status_refetches"] = self.max_status_refetches
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from dictionary."""
        return cls(
            url=data.get("url", DEFAULT_URL),
            bucket=data.get("bucket"),
            verify_ssl=data.get("verify_ssl", True),
            timeout=data.get("timeout", DEFAULT_TIMEOUT),
            max_retries=data.get("max_retries", DEFAULT_MAX_RETRIES),
            chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
            max_status_refetches=data.get("max_status_refetches"),
        )


# =============================================================================
# Config
# =============================================================================


@dataclass
class Config:
    """Application configuration."""

    default_profile: str = "default"
    output_format: str = "table"
    profiles: dict[str, Profile] = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load config from file with environment variable overrides.

        Priority (highest to lowest):
        1. Environment variables
        2. Config file
        3. Defaults

        Args:
            config_path: Optional path to config file.

        Returns:
            Loaded configuration.
        """
        path = config_path or CONFIG_FILE
        config = cls()

        if path.exists():
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

                config.default_profile = data.get("default_profile", "default")
                config.output_format = data.get("output_format", "table")

                for name, pdata in data.get("profiles", {}).items():
                    config.profiles[name] = Profile.from_dict(pdata or {})
            except Exception as e:
                raise ConfigurationError(f"Failed to load config: {e}")

        # Environment variable overrides
        url = os.getenv(ENV_URL)
        bucket = os.getenv(ENV_BUCKET)
        if url or bucket:
            base = config.profiles.get("default", Profile())
            verify_ssl = os.getenv(ENV_VERIFY_SSL, "true").lower() in ("true", "1", "yes")
            timeout = int(os.getenv(ENV_TIMEOUT, str(base.timeout)))

            config.profiles["default"] = Profile(
                url=url or base.url,
                bucket=bucket or base.bucket,
                verify_ssl=verify_ssl,
                timeout=timeout,
                max_retries=base.max_retries,
                chunk_size=base.chunk_size,
                max_status_refetches=base.max_status_refetches,
            )

        if profile := os.getenv(ENV_PROFILE):
            config.default_profile = profile

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save config to file (excludes secrets).

        Args:
            config_path: Optional path to config file.
        """
        path = config_path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "default_profile": self.default_profile,
            "output_format": self.output_format,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def get_profile(self, name: Optional[str] = None) -> Profile:
        """Get profile by name or default.

        Raises:
            ProfileNotFoundError: If profile doesn't exist.
        """
        name = name or self.default_profile
        if name not in self.profiles:
            raise ProfileNotFoundError(name)
        return self.profiles[name]

    def has_profile(self, name: str) -> bool:
        """Check if profile exists."""
        return name in self.profiles

    def add_profile(self, name: str, **settings: Any) -> Profile:
        """Add or update a profile.

        Args:
            name: Profile name.
            **settings: Profile fields (url, bucket, verify_ssl, ...).

        Returns:
            Created profile.
        """
        profile = Profile(**settings)
        self.profiles[name] = profile
        return profile

    def remove_profile(self, name: str) -> bool:
        """Remove a profile.

        Returns:
            True if removed, False if didn't exist.
        """
        if name in self.profiles:
            del self.profiles[name]
            return True
        return False

    def set_default_profile(self, name: str) -> None:
        """Set the default profile.

        Raises:
            ProfileNotFoundError: If profile doesn't exist.
        """
        if name not in self.profiles:
            raise ProfileNotFoundError(name)
        self.default_profile = name


def get_token() -> Optional[str]:
    """Get an access token from the environment.

    Returns:
        Token if set, None otherwise.
    """
    return os.getenv(ENV_TOKEN)
