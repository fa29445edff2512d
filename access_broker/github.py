"""Minimal GitHub REST client acting as a GitHub App."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import jwt
import requests

from .config import BrokerConfig
from .constants import DEFAULT_HTTP_TIMEOUT, GITHUB_API_URL
from .errors import GitHubError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubAppClient:
    """Talks to the GitHub API with the broker's standing App credential.

    The App private key is only used to sign short-lived App JWTs and is never
    logged. Installation tokens passed in by callers are used as-is.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        api_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.app_id = app_id
        self._private_key = private_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: BrokerConfig) -> "GitHubAppClient":
        config.github.require_credentials()
        return cls(
            app_id=config.github.app_id,
            private_key=config.github.private_key.get_secret_value(),
            api_url=config.github.api_url,
            timeout=config.http_timeout,
        )

    def create_app_jwt(self) -> str:
        """Sign a JWT identifying the App itself, valid for nine minutes."""
        now = int(time.time())
        payload = {"iat": now - 60, "exp": now + 540, "iss": str(self.app_id)}
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def _request(
        self, method: str, path: str, token: str, json: Optional[Dict[str, Any]] = None
    ) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": API_VERSION,
        }
        try:
            resp = self.session.request(
                method, f"{self.api_url}{path}", headers=headers, json=json, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise GitHubError(f"{method} {path} failed: {exc.__class__.__name__}") from exc

        if resp.status_code >= 400:
            raise GitHubError(f"{method} {path} returned {resp.status_code}", resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise GitHubError(f"{method} {path} returned invalid JSON", resp.status_code) from exc

    def get_repo_installation(self, owner: str, repo: str) -> Dict[str, Any]:
        """Return the App installation covering ``owner/repo``."""
        return self._request(
            "GET", f"/repos/{quote(owner)}/{quote(repo)}/installation", self.create_app_jwt()
        )

    def create_installation_access_token(
        self, installation_id: int, repositories: List[str], permissions: Dict[str, str]
    ) -> Dict[str, Any]:
        """Mint an installation token limited to ``repositories`` and ``permissions``."""
        return self._request(
            "POST",
            f"/app/installations/{int(installation_id)}/access_tokens",
            self.create_app_jwt(),
            json={"repositories": repositories, "permissions": permissions},
        )

    def get_content(self, token: str, owner: str, repo: str, path: str) -> bytes:
        """Read a single file of ``owner/repo`` with an installation token."""
        data = self._request(
            "GET", f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}", token
        )
        if not isinstance(data, dict) or data.get("type", "file") != "file" or "content" not in data:
            raise GitHubError(f"{path} is not a file")
        return base64.b64decode(data["content"])
