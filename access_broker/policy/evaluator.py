"""Matching callers against access policy rules and narrowing permissions."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ..constants import MAX_REPO_PATTERN_LENGTH, PERMISSION_LEVELS, SELF_SENTINEL
from ..models import AccessPolicy, Authority, PermissionSet, PolicyRule

logger = logging.getLogger(__name__)


def match_repo_pattern(pattern: str, repo: str) -> bool:
    """Whether ``repo`` matches the glob ``pattern`` in full.

    Only ``*`` (any run of characters) and ``?`` (exactly one character) are
    wildcards, every other character matches literally. Runs in
    O(len(pattern) * len(repo)): on a mismatch only the most recent ``*`` is
    widened, earlier ones are never revisited.
    """
    p = i = 0
    star = -1
    mark = 0
    while i < len(repo):
        if p < len(pattern) and pattern[p] == "*":
            star = p
            mark = i
            p += 1
        elif p < len(pattern) and (pattern[p] == "?" or pattern[p] == repo[i]):
            p += 1
            i += 1
        elif star != -1:
            p = star + 1
            mark += 1
            i = mark
        else:
            return False
    while p < len(pattern) and pattern[p] == "*":
        p += 1
    return p == len(pattern)


def is_valid_permission(requested: Optional[str], granted: Optional[str]) -> bool:
    """Whether ``requested`` can be satisfied by ``granted``.

    ``write`` implies ``read``; anything else, including a missing grant,
    satisfies nothing.
    """
    if requested not in PERMISSION_LEVELS or granted not in PERMISSION_LEVELS:
        return False
    if requested == granted:
        return True
    return granted == "write"


def narrow_permissions(requested: Mapping[str, str], granted: Mapping[str, str]) -> PermissionSet:
    """Keep the requested scopes the granted set can satisfy."""
    return {
        scope: level
        for scope, level in requested.items()
        if is_valid_permission(level, granted.get(scope))
    }


class PolicyEvaluator:
    """Decides which permissions a source repository gets on a target."""

    def match_rule(self, policy: AccessPolicy, source: str, target: str) -> Optional[PolicyRule]:
        """Return the first rule of ``policy`` matching ``source``."""
        for rule in policy.policies:
            if rule.repo == SELF_SENTINEL and source == target:
                return rule
            if len(rule.repo) > MAX_REPO_PATTERN_LENGTH:
                logger.warning(f"Ignoring overlong repo pattern in policy of {target}")
                continue
            if match_repo_pattern(rule.repo, source):
                return rule
        return None

    def evaluate(
        self,
        policy: Optional[AccessPolicy],
        source: str,
        target: str,
        authority: Authority,
    ) -> PermissionSet:
        """Return the effective permissions of ``source`` on ``target``.

        Empty when there is no policy, when the policy was written for a
        different repository, when no rule matches, or when the App cannot
        back any of the matched rule's permissions.
        """
        if policy is None:
            return {}
        if policy.self_repo != target:
            logger.info(f"Access policy of {target} declares self '{policy.self_repo}', ignoring")
            return {}

        rule = self.match_rule(policy, source, target)
        if rule is None:
            logger.info(f"No policy rule of {target} matches {source}")
            return {}

        permissions = narrow_permissions(rule.permissions, authority.permissions)
        dropped = sorted(set(rule.permissions) - set(permissions))
        if dropped:
            logger.info(f"Dropped permissions {dropped} for {source} on {target}")
        return permissions
