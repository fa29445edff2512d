"""Retrieval of a repository's self-declared access policy."""

from __future__ import annotations

import binascii
import logging
from typing import Optional

import yaml
from pydantic import ValidationError

from ..constants import ACCESS_FILE_LOCATION
from ..errors import GitHubError, PolicyFetchFailure
from ..github import GitHubAppClient
from ..models import AccessPolicy, Authority, split_repo

logger = logging.getLogger(__name__)

# The only permission needed to read the access file
POLICY_READ_PERMISSIONS = {"single_file": "read"}


def parse_policy(raw: bytes) -> AccessPolicy:
    """Parse and validate the contents of an access file.

    Raises:
        PolicyFetchFailure: when the document is not YAML or lacks the
            required ``self`` and ``policies`` fields.
    """
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise PolicyFetchFailure(f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise PolicyFetchFailure("access file is not a mapping")
    try:
        return AccessPolicy.model_validate(data)
    except ValidationError as exc:
        raise PolicyFetchFailure(f"invalid access file: {exc.error_count()} errors") from exc


class PolicyFetcher:
    """Reads ``.github/access.yaml`` from a target repository."""

    def __init__(self, github: GitHubAppClient, location: str = ACCESS_FILE_LOCATION) -> None:
        self.github = github
        self.location = location

    def _read_policy(self, target: str, authority: Authority) -> AccessPolicy:
        owner, name = split_repo(target)
        try:
            read_token = self.github.create_installation_access_token(
                authority.installation_id, [name], POLICY_READ_PERMISSIONS
            )["token"]
            raw = self.github.get_content(read_token, owner, name, self.location)
        except (GitHubError, KeyError, TypeError, binascii.Error) as exc:
            raise PolicyFetchFailure(f"cannot read {self.location}: {exc}") from exc
        return parse_policy(raw)

    def fetch(self, target: str, authority: Authority) -> Optional[AccessPolicy]:
        """Return the access policy of ``target`` or ``None`` when it has none."""
        try:
            return self._read_policy(target, authority)
        except PolicyFetchFailure as exc:
            logger.info(f"No usable access policy in {target}: {exc}")
            return None
