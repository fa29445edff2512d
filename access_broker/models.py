"""Data model for the token exchange pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, StrictStr

from .constants import SELF_SENTINEL
from .errors import InvalidRequest

PermissionSet = Dict[str, str]


def split_repo(repo: str) -> Tuple[str, str]:
    """Split ``owner/name`` into its two parts."""
    if not isinstance(repo, str):
        raise InvalidRequest("repo - must be a string")
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise InvalidRequest(f"repo - invalid repository name '{repo}'")
    return owner, name


class IdentityClaims(BaseModel):
    """Verified claims of a workload identity token."""

    issuer: str
    repository: str
    expires_at: Optional[datetime] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class AccessRequest(BaseModel):
    """Source and target repository of one token exchange."""

    source_repo: str
    target_repo: str

    @classmethod
    def resolve(cls, source_repo: str, repo: str) -> "AccessRequest":
        """Build a request, mapping the ``self`` sentinel to ``source_repo``."""
        target_repo = source_repo if repo == SELF_SENTINEL else repo
        split_repo(target_repo)
        return cls(source_repo=source_repo, target_repo=target_repo)

    @property
    def is_self(self) -> bool:
        return self.source_repo == self.target_repo


class Authority(BaseModel):
    """Installation of the GitHub App covering a repository."""

    installation_id: int
    permissions: PermissionSet = Field(default_factory=dict)


class PolicyRule(BaseModel):
    """One entry of the ``policies`` list in an access file."""

    model_config = ConfigDict(frozen=True)

    repo: StrictStr
    permissions: Dict[StrictStr, StrictStr] = Field(default_factory=dict)


class AccessPolicy(BaseModel):
    """Parsed ``.github/access.yaml`` of a target repository."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    self_repo: StrictStr = Field(alias="self")
    policies: List[PolicyRule]


class IssuedToken(BaseModel):
    """Installation access token scoped to a single repository."""

    token: SecretStr
    expires_at: str
    permissions: PermissionSet
    repo: str

    def to_response(self) -> Dict[str, Any]:
        """Return the JSON body sent back to the caller."""
        return {
            "repo": self.repo,
            "expires_at": self.expires_at,
            "permissions": dict(self.permissions),
            "token": self.token.get_secret_value(),
        }


class TokenRequestBody(BaseModel):
    """Inbound request body of the exchange endpoint."""

    id_token: Optional[str] = None
    repo: Optional[str] = None


class BrokerResponse(BaseModel):
    """Status code and JSON body produced for one request."""

    status_code: int
    body: Dict[str, Any]
