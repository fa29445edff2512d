import logging
import threading
import time
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

import jwt
import requests

from ..config import IdentityConfig
from ..constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_JWKS_CACHE_TTL,
    DEFAULT_JWKS_MIN_REFETCH_INTERVAL,
    JWKS_PATH,
)
from ..errors import InvalidIdentity
from ..models import IdentityClaims

logger = logging.getLogger(__name__)


class JwksCache:
    """Signing keys published by identity issuers, keyed by issuer URL.

    Shared by concurrent requests. Keys of an issuer are refetched when the
    TTL has passed, or when a token names a key id that is not cached and the
    last fetch is at least ``min_refetch_interval`` seconds old.
    """

    def __init__(
        self,
        ttl: int = DEFAULT_JWKS_CACHE_TTL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        min_refetch_interval: float = DEFAULT_JWKS_MIN_REFETCH_INTERVAL,
    ) -> None:
        self.ttl = ttl
        self.timeout = timeout
        self.min_refetch_interval = min_refetch_interval
        self._keys: Dict[str, Tuple[float, List[Mapping]]] = {}
        self._lock = threading.Lock()

    def _fetch_jwks(self, issuer: str) -> List[Mapping]:
        resp = requests.get(f"{issuer.rstrip('/')}{JWKS_PATH}", timeout=self.timeout)
        resp.raise_for_status()
        keys = resp.json().get("keys", [])
        with self._lock:
            self._keys[issuer] = (time.time(), keys)
        logger.debug(f"Fetched {len(keys)} signing keys from {issuer}")
        return keys

    def get_signing_key(self, issuer: str, kid: Optional[str]) -> Mapping:
        """Return the JWK of ``issuer`` with key id ``kid``."""
        with self._lock:
            entry = self._keys.get(issuer)

        if entry is not None:
            fetched_at, keys = entry
            age = time.time() - fetched_at
            if age <= self.ttl:
                for key in keys:
                    if key.get("kid") == kid:
                        return key
                if age < self.min_refetch_interval:
                    raise jwt.exceptions.InvalidSignatureError("No matching JWK found.")

        for key in self._fetch_jwks(issuer):
            if key.get("kid") == kid:
                return key
        raise jwt.exceptions.InvalidSignatureError("No matching JWK found.")


class IdentityVerifier:
    """Validates workload identity tokens against the trusted issuer."""

    def __init__(self, config: Optional[IdentityConfig] = None, cache: Optional[JwksCache] = None) -> None:
        self.config = config or IdentityConfig()
        self.cache = cache or JwksCache(
            ttl=self.config.jwks_cache_ttl,
            min_refetch_interval=self.config.jwks_min_refetch_interval,
        )

    def verify(self, token: str, issuer: Optional[str] = None, allow_expired: bool = False) -> IdentityClaims:
        """Validate ``token`` and return its claims.

        Raises:
            InvalidIdentity: for a malformed, forged, foreign or expired
                token, or when the issuer's keys cannot be fetched.
        """
        issuer = issuer or self.config.issuer
        if not token:
            raise InvalidIdentity("jwt must be provided")

        try:
            header = jwt.get_unverified_header(token)
            jwk = self.cache.get_signing_key(issuer, header.get("kid"))
            decoded = jwt.decode(
                token,
                jwt.algorithms.RSAAlgorithm.from_jwk(dict(jwk)),
                algorithms=self.config.algorithms,
                issuer=issuer,
                audience=self.config.audience,
                options={
                    "require": ["iss"] if allow_expired else ["iss", "exp"],
                    "verify_exp": not allow_expired,
                    "verify_aud": self.config.audience is not None,
                },
            )
        except (jwt.PyJWTError, requests.RequestException, ValueError) as exc:
            raise InvalidIdentity(str(exc) or exc.__class__.__name__) from exc

        repository = decoded.get("repository")
        if not isinstance(repository, str) or not repository:
            raise InvalidIdentity("missing repository claim")

        expires_at = None
        if isinstance(decoded.get("exp"), (int, float)):
            expires_at = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        return IdentityClaims(
            issuer=decoded["iss"],
            repository=repository,
            expires_at=expires_at,
            claims=decoded,
        )
