"""Shared fixtures: signing keys, identity tokens and a fake GitHub."""

import json
import time

import jwt
import pytest
import yaml
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from access_broker.constants import GITHUB_ACTIONS_ISSUER
from access_broker.errors import GitHubError


def generate_keys(kid="test"):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    jwk_dict = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(key.public_key()))
    jwk_dict["kid"] = kid
    jwk_dict["use"] = "sig"
    jwk_dict["alg"] = "RS256"
    return jwk_dict, private_pem


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests

            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


class FakeGitHub:
    """In-memory stand-in for :class:`access_broker.github.GitHubAppClient`."""

    def __init__(self):
        self.installations = {}
        self.files = {}
        self.minted = []
        self.content_reads = []
        self.fail_mint_for = set()

    def install(self, repo, permissions, installation_id=1):
        self.installations[repo] = {"id": installation_id, "permissions": permissions}

    def add_policy(self, repo, policy, path=".github/access.yaml"):
        raw = policy if isinstance(policy, str) else yaml.safe_dump(policy)
        self.files[(repo, path)] = raw.encode()

    def get_repo_installation(self, owner, repo):
        installation = self.installations.get(f"{owner}/{repo}")
        if installation is None:
            raise GitHubError("GET installation returned 404", 404)
        return installation

    def create_installation_access_token(self, installation_id, repositories, permissions):
        self.minted.append(
            {"installation_id": installation_id, "repositories": list(repositories), "permissions": dict(permissions)}
        )
        if frozenset(permissions) & self.fail_mint_for:
            raise GitHubError("POST access_tokens returned 422", 422)
        return {
            "token": f"ghs_fake{len(self.minted)}",
            "expires_at": "2030-01-01T00:00:00Z",
            "permissions": dict(permissions),
        }

    def get_content(self, token, owner, repo, path):
        self.content_reads.append((token, f"{owner}/{repo}", path))
        raw = self.files.get((f"{owner}/{repo}", path))
        if raw is None:
            raise GitHubError("GET contents returned 404", 404)
        return raw


@pytest.fixture(scope="session")
def signing_keys():
    return generate_keys("test")


@pytest.fixture
def jwks(monkeypatch, signing_keys):
    """Serve the test JWKS for any issuer; returns the list of fetched URLs."""
    jwk_dict, _ = signing_keys
    fetched = []

    def fake_get(url, timeout=5, **kwargs):
        fetched.append(url)
        return FakeResponse({"keys": [jwk_dict]})

    monkeypatch.setattr("requests.get", fake_get)
    return fetched


@pytest.fixture
def make_id_token(signing_keys):
    """Build a signed Actions ID token for ``repository``."""
    _, private_pem = signing_keys

    def _make(repository="org/app-a", issuer=GITHUB_ACTIONS_ISSUER, expires_in=300, key=None, kid="test", **claims):
        now = int(time.time())
        payload = {
            "iss": issuer,
            "aud": "https://broker.example.com",
            "sub": f"repo:{repository}:ref:refs/heads/main",
            "iat": now,
            "exp": now + expires_in,
        }
        if repository is not None:
            payload["repository"] = repository
        payload.update(claims)
        return jwt.encode(payload, key or private_pem, algorithm="RS256", headers={"kid": kid})

    return _make


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def make_signing_keys():
    return generate_keys
