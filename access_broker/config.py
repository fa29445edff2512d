from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, SecretStr

from .constants import (
    ACCESS_FILE_LOCATION,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_JWKS_CACHE_TTL,
    DEFAULT_JWKS_MIN_REFETCH_INTERVAL,
    GITHUB_ACTIONS_ISSUER,
    GITHUB_API_URL,
)
from .errors import ConfigurationError


class IdentityConfig(BaseModel):
    """Trusted issuer of workload identity tokens."""

    issuer: str = GITHUB_ACTIONS_ISSUER
    audience: Optional[str] = None
    algorithms: List[str] = ["RS256"]
    jwks_cache_ttl: int = DEFAULT_JWKS_CACHE_TTL
    jwks_min_refetch_interval: float = DEFAULT_JWKS_MIN_REFETCH_INTERVAL


class GitHubAppConfig(BaseModel):
    """Standing credential of the GitHub App the broker acts as."""

    app_id: Optional[str] = None
    private_key: Optional[SecretStr] = None
    api_url: str = GITHUB_API_URL

    def require_credentials(self) -> None:
        if not self.app_id or not self.private_key:
            raise ConfigurationError(
                "GitHub App credentials missing: set GITHUB_APP_ID and GITHUB_APP_PRIVATE_KEY"
            )


class BrokerConfig(BaseModel):
    """Top-level configuration model."""

    environment: Literal["production", "development"] = "production"
    access_file_location: str = ACCESS_FILE_LOCATION
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    identity: IdentityConfig = IdentityConfig()
    github: GitHubAppConfig = GitHubAppConfig()

    @property
    def allow_expired(self) -> bool:
        """Accept expired identity tokens, for local debugging only."""
        return self.environment == "development"


def load_config(path: Optional[str] = None) -> BrokerConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ACCESS_BROKER_CONFIG
            env variable or 'config.yaml' in the current directory.

    The GitHub App credential is normally provided through the environment
    (``GITHUB_APP_ID``, ``GITHUB_APP_PRIVATE_KEY``) and overrides the file.
    """

    config_path = path or os.getenv("ACCESS_BROKER_CONFIG", "config.yaml")
    data: dict = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    github = dict(data.get("github") or {})
    env_app_id = os.getenv("GITHUB_APP_ID")
    if env_app_id:
        github["app_id"] = env_app_id
    env_private_key = os.getenv("GITHUB_APP_PRIVATE_KEY")
    if env_private_key:
        # Single-line env values commonly carry escaped newlines
        github["private_key"] = env_private_key.replace("\\n", "\n")
    env_api_url = os.getenv("ACCESS_BROKER_GITHUB_API_URL")
    if env_api_url:
        github["api_url"] = env_api_url
    data["github"] = github

    env_environment = os.getenv("ACCESS_BROKER_ENV")
    if env_environment:
        data["environment"] = env_environment
    return BrokerConfig(**data)
