"""Identity token verification tests."""

import pytest

from access_broker.auth import IdentityVerifier, JwksCache
from access_broker.config import IdentityConfig
from access_broker.constants import GITHUB_ACTIONS_ISSUER
from access_broker.errors import InvalidIdentity


def test_verify_returns_repository_claim(jwks, make_id_token):
    verifier = IdentityVerifier()
    claims = verifier.verify(make_id_token("octo-org/app"))

    assert claims.repository == "octo-org/app"
    assert claims.issuer == GITHUB_ACTIONS_ISSUER
    assert claims.expires_at is not None
    assert jwks == [f"{GITHUB_ACTIONS_ISSUER}/.well-known/jwks"]


def test_signing_keys_are_cached(jwks, make_id_token):
    verifier = IdentityVerifier()
    verifier.verify(make_id_token())
    verifier.verify(make_id_token())
    assert len(jwks) == 1


def test_untrusted_key_is_rejected(jwks, make_id_token, make_signing_keys):
    _, other_pem = make_signing_keys("test")
    token = make_id_token(key=other_pem)

    with pytest.raises(InvalidIdentity) as exc_info:
        IdentityVerifier().verify(token)
    assert exc_info.value.http_status == 400
    assert exc_info.value.__cause__ is not None


def test_unknown_key_id_refetches_then_fails(jwks, make_id_token):
    verifier = IdentityVerifier(cache=JwksCache(min_refetch_interval=0))
    verifier.verify(make_id_token())

    with pytest.raises(InvalidIdentity, match="No matching JWK"):
        verifier.verify(make_id_token(kid="rotated"))
    assert len(jwks) == 2


def test_unknown_key_ids_do_not_refetch_within_interval(jwks, make_id_token):
    verifier = IdentityVerifier(cache=JwksCache(min_refetch_interval=30))
    verifier.verify(make_id_token())

    for _ in range(5):
        with pytest.raises(InvalidIdentity, match="No matching JWK"):
            verifier.verify(make_id_token(kid="unknown"))
    assert len(jwks) == 1

    # known keys keep working meanwhile
    assert verifier.verify(make_id_token()).repository == "org/app-a"


def test_unknown_key_id_refetches_once_interval_passed(jwks, make_id_token):
    cache = JwksCache(min_refetch_interval=30)
    verifier = IdentityVerifier(cache=cache)
    verifier.verify(make_id_token())

    fetched_at, keys = cache._keys[GITHUB_ACTIONS_ISSUER]
    cache._keys[GITHUB_ACTIONS_ISSUER] = (fetched_at - 31, keys)
    with pytest.raises(InvalidIdentity):
        verifier.verify(make_id_token(kid="rotated"))
    assert len(jwks) == 2


def test_wrong_issuer_is_rejected(jwks, make_id_token):
    token = make_id_token(issuer="https://evil.example.com")
    with pytest.raises(InvalidIdentity):
        IdentityVerifier().verify(token)


def test_expired_token_is_rejected(jwks, make_id_token):
    token = make_id_token(expires_in=-600)
    with pytest.raises(InvalidIdentity, match="expired"):
        IdentityVerifier().verify(token)


def test_expired_token_allowed_in_debug_mode(jwks, make_id_token):
    token = make_id_token(expires_in=-600)
    claims = IdentityVerifier().verify(token, allow_expired=True)
    assert claims.repository == "org/app-a"


def test_malformed_token_is_rejected(jwks):
    with pytest.raises(InvalidIdentity):
        IdentityVerifier().verify("not-a-jwt")


def test_missing_token_is_rejected(jwks):
    with pytest.raises(InvalidIdentity, match="jwt must be provided"):
        IdentityVerifier().verify("")


def test_missing_repository_claim_is_rejected(jwks, make_id_token):
    with pytest.raises(InvalidIdentity, match="repository"):
        IdentityVerifier().verify(make_id_token(repository=None))


def test_audience_checked_when_configured(jwks, make_id_token):
    verifier = IdentityVerifier(IdentityConfig(audience="https://other.example.com"))
    with pytest.raises(InvalidIdentity):
        verifier.verify(make_id_token())

    verifier = IdentityVerifier(IdentityConfig(audience="https://broker.example.com"))
    assert verifier.verify(make_id_token()).repository == "org/app-a"


def test_jwks_fetch_failure_is_invalid_identity(monkeypatch, make_id_token):
    import requests

    def failing_get(url, timeout=5, **kwargs):
        raise requests.Timeout("timed out")

    monkeypatch.setattr("requests.get", failing_get)
    with pytest.raises(InvalidIdentity):
        IdentityVerifier(cache=JwksCache()).verify(make_id_token())
