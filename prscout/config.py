"""
Configuration management for Prscout.

Loads and validates:
- prscout.yml: Optional defaults for the command line (state, page size, ...)
- Environment: GH_TOKEN / GITHUB_TOKEN and GITHUB_API_URL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


DEFAULT_API_URL = "https://api.github.com"
VALID_STATES = ("open", "closed", "all")
MAX_PAGE_SIZE = 100


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


@dataclass
class DefaultsConfig:
    """Command-line defaults."""
    state: str = "open"  # open, closed, all
    last: int = 50  # page size of the PR listing
    comments: bool = False  # scan review comments for mentions
    max_concurrency: int = 8  # simultaneous per-PR lookups

    def validate(self) -> None:
        if self.state not in VALID_STATES:
            raise ConfigError(
                f"Invalid state '{self.state}'. Expected one of: {', '.join(VALID_STATES)}"
            )
        if not 1 <= self.last <= MAX_PAGE_SIZE:
            raise ConfigError(f"'last' must be between 1 and {MAX_PAGE_SIZE}, got {self.last}")
        if self.max_concurrency < 1:
            raise ConfigError(f"'max_concurrency' must be at least 1, got {self.max_concurrency}")


@dataclass
class PrscoutConfig:
    """Complete Prscout configuration."""
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    api_url: str = DEFAULT_API_URL
    token: str | None = None

    def require_token(self) -> str:
        """Return the GitHub token, failing if none is configured."""
        if not self.token:
            raise ConfigError("GH_TOKEN must be set (GITHUB_TOKEN is also accepted)")
        return self.token

    @classmethod
    def load(cls, repo_root: Path) -> "PrscoutConfig":
        """Load configuration from repo root directory and the environment."""
        config = cls()

        config_path = repo_root / "prscout.yml"
        if config_path.exists():
            with open(config_path) as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Could not parse {config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{config_path} must contain a mapping")
            config = cls._parse_config(data)

        config.token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN") or None
        config.api_url = os.environ.get("GITHUB_API_URL") or config.api_url
        config.api_url = config.api_url.rstrip("/")

        config.defaults.validate()
        return config

    @classmethod
    def _parse_config(cls, data: dict[str, Any]) -> "PrscoutConfig":
        """Parse configuration dictionary."""
        config = cls()

        defaults_data = data.get("defaults") or {}
        try:
            config.defaults = DefaultsConfig(
                state=str(defaults_data.get("state", "open")),
                last=int(defaults_data.get("last", 50)),
                comments=bool(defaults_data.get("comments", False)),
                max_concurrency=int(defaults_data.get("max_concurrency", 8)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in 'defaults': {e}") from e

        config.api_url = data.get("api_url") or DEFAULT_API_URL

        return config


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()
