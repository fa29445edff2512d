"""Shared constants for the access broker."""

GITHUB_ACTIONS_ISSUER = "https://token.actions.githubusercontent.com"
GITHUB_API_URL = "https://api.github.com"

JWKS_PATH = "/.well-known/jwks"
ACCESS_FILE_LOCATION = ".github/access.yaml"

SELF_SENTINEL = "self"
PERMISSION_LEVELS = ("read", "write")

# Longer repo patterns are rejected before regex compilation
MAX_REPO_PATTERN_LENGTH = 256

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_JWKS_CACHE_TTL = 300
# Unknown key ids trigger at most one refetch per interval
DEFAULT_JWKS_MIN_REFETCH_INTERVAL = 30
