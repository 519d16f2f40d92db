"""Publisher configuration — env-driven, with a fallback config record.

Centralized settings using pydantic-settings.  Reads CACHE_* environment
variables and an optional .env file.

Examples
--------
Override via environment::

    export CACHE_OWNER=example-org
    export CACHE_REPO=nix-cache
    export CACHE_REPO_TOKEN=ghp_...

When the owner or repository is not given on the command line or in the
environment, it is read from the cache config record shared with the
fetch side (``{"cache_repo": {"owner": ..., "repo": ...}}``).  The record
path is taken relative to the working directory, so run from the
repository root or point ``CACHE_CONFIG_RECORD_PATH`` at the record.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from cachepush.core.retry import RetryPolicy
from cachepush.models.objects import Destination

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when the publish destination or credentials are incomplete."""


class PushSettings(BaseSettings):
    """Publisher settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CACHE_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Destination
    owner: str = ""
    repo: str = ""
    branch: str = "main"
    # Relative paths resolve against the working directory; set
    # CACHE_CONFIG_RECORD_PATH to an absolute path to run from elsewhere.
    config_record_path: Path = Path("PULL/cache/config.json")

    # Credentials: CACHE_REPO_TOKEN, falling back to GITHUB_TOKEN
    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("CACHE_REPO_TOKEN", "GITHUB_TOKEN"),
    )

    # API
    api_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    request_timeout: float = 60.0

    # Retry
    max_attempts: int = 5
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    transport_attempts: int = 3

    # Runtime
    workers: int = 1
    log_level: str = "INFO"

    def retry_policy(self) -> RetryPolicy:
        """Backoff policy for conflicting writes."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.backoff_base,
            max_delay=self.backoff_max,
        )

    def transport_policy(self) -> RetryPolicy:
        """Backoff policy for retryable network and rate-limit failures."""
        return RetryPolicy(
            max_attempts=self.transport_attempts,
            base_delay=self.backoff_base,
            max_delay=self.backoff_max,
        )

    def resolve_destination(
        self,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
    ) -> Destination:
        """Combine explicit values, settings and the config record.

        Raises
        ------
        ConfigError
            If owner or repository is still unknown.
        """
        owner = owner or self.owner
        repo = repo or self.repo
        if not owner or not repo:
            record = load_config_record(self.config_record_path)
            owner = owner or record.get("owner", "")
            repo = repo or record.get("repo", "")
        if not owner or not repo:
            raise ConfigError(
                "Repository owner and name required. Set via --owner/--repo "
                "or CACHE_OWNER/CACHE_REPO env vars"
            )
        return Destination(owner=owner, repo=repo, branch=branch or self.branch)

    def require_token(self) -> str:
        """Return the API token or raise ``ConfigError``."""
        if self.token is None or not self.token.get_secret_value():
            raise ConfigError("CACHE_REPO_TOKEN or GITHUB_TOKEN required")
        return self.token.get_secret_value()


def load_config_record(path: Path) -> dict[str, str]:
    """Read ``cache_repo.owner`` and ``cache_repo.repo`` from a JSON record.

    Returns an empty dict when the record is absent.  A record that exists
    but cannot be parsed raises ``ConfigError``.
    """
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read config record {path}: {exc}") from exc
    section = data.get("cache_repo") if isinstance(data, dict) else None
    if not isinstance(section, dict):
        logger.warning("Config record %s has no cache_repo section", path)
        return {}
    return {
        key: str(section[key])
        for key in ("owner", "repo")
        if section.get(key) not in (None, "")
    }
