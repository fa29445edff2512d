"""Minting of the final scoped access token."""

from __future__ import annotations

import logging

from .errors import GitHubError, IssuanceError
from .github import GitHubAppClient
from .models import Authority, IssuedToken, PermissionSet, split_repo

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Mints installation tokens limited to one repository."""

    def __init__(self, github: GitHubAppClient) -> None:
        self.github = github

    def issue(self, target: str, authority: Authority, permissions: PermissionSet) -> IssuedToken:
        """Mint a token for ``target`` carrying exactly ``permissions``.

        Raises:
            ValueError: when ``permissions`` is empty. Callers must deny the
                request before reaching this point.
            IssuanceError: when GitHub does not return a usable token.
        """
        if not permissions:
            raise ValueError("No permission requested")

        _owner, name = split_repo(target)
        try:
            data = self.github.create_installation_access_token(
                authority.installation_id, [name], dict(permissions)
            )
            return IssuedToken(
                token=data["token"],
                expires_at=data["expires_at"],
                permissions=data.get("permissions") or dict(permissions),
                repo=target,
            )
        except (GitHubError, KeyError, TypeError, ValueError) as exc:
            raise IssuanceError(f"Failed to issue token for {target}") from exc
