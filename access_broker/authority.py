"""Resolution of the delegated authority the broker holds for a repository."""

from __future__ import annotations

import logging

from .errors import GitHubError, NoAuthority
from .github import GitHubAppClient
from .models import Authority, split_repo

logger = logging.getLogger(__name__)


class AuthorityResolver:
    """Looks up the GitHub App installation covering a target repository."""

    def __init__(self, github: GitHubAppClient) -> None:
        self.github = github

    def resolve(self, target: str) -> Authority:
        """Return the installation and its granted permissions for ``target``.

        A repository that does not exist and one that has not installed the
        App both raise :class:`NoAuthority`.
        """
        owner, name = split_repo(target)
        try:
            installation = self.github.get_repo_installation(owner, name)
            authority = Authority(
                installation_id=installation["id"],
                permissions=installation.get("permissions") or {},
            )
        except (GitHubError, KeyError, TypeError, ValueError) as exc:
            logger.debug(f"No installation found for {target}: {exc}")
            raise NoAuthority() from exc
        return authority
