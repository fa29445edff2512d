"""Access policy retrieval and evaluation."""

from .evaluator import PolicyEvaluator, match_repo_pattern, narrow_permissions
from .fetcher import PolicyFetcher, parse_policy

__all__ = [
    "PolicyEvaluator",
    "PolicyFetcher",
    "match_repo_pattern",
    "narrow_permissions",
    "parse_policy",
]
