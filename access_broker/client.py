"""Caller side of the exchange, run inside a GitHub Actions job."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from .constants import DEFAULT_HTTP_TIMEOUT


class ActionsClientError(RuntimeError):
    """The ID token or the access token could not be obtained."""


def fetch_actions_id_token(audience: str, timeout: float = DEFAULT_HTTP_TIMEOUT) -> str:
    """Request an OIDC ID token for ``audience`` from the Actions runtime.

    Requires the job to run with ``permissions: id-token: write``.
    """
    request_url = os.getenv("ACTIONS_ID_TOKEN_REQUEST_URL")
    request_token = os.getenv("ACTIONS_ID_TOKEN_REQUEST_TOKEN")
    if not request_url or not request_token:
        raise ActionsClientError(
            "Unable to get ACTIONS_ID_TOKEN_REQUEST_URL env variable, "
            "is the job granted 'id-token: write'?"
        )

    try:
        resp = requests.get(
            request_url,
            params={"audience": audience},
            headers={"Authorization": f"Bearer {request_token}"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise ActionsClientError(f"Failed to get ID token: {exc.__class__.__name__}") from exc
    if resp.status_code != 200:
        raise ActionsClientError(f"Failed to get ID token: HTTP {resp.status_code}")
    value = _json_object(resp).get("value")
    if not isinstance(value, str) or not value:
        raise ActionsClientError("Failed to get ID token: response has no value")
    return value


def _json_object(resp: requests.Response) -> Dict[str, Any]:
    """Return the JSON body of ``resp`` or ``{}`` when it is not an object."""
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def request_access_token(
    endpoint: str,
    repo: str,
    id_token: Optional[str] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> Dict[str, Any]:
    """Exchange an ID token at the broker ``endpoint`` for an access token.

    Raises:
        ActionsClientError: on any failure, with the broker's error message
            when it sent one.
    """
    id_token = id_token or fetch_actions_id_token(endpoint, timeout=timeout)
    try:
        resp = requests.post(endpoint, json={"id_token": id_token, "repo": repo}, timeout=timeout)
    except requests.RequestException as exc:
        raise ActionsClientError(f"Request to {endpoint} failed: {exc.__class__.__name__}") from exc

    result = _json_object(resp)
    if resp.status_code != 200:
        error = result.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        raise ActionsClientError(message if isinstance(message, str) and message else f"HTTP {resp.status_code}")
    if not isinstance(result.get("token"), str) or not result["token"]:
        raise ActionsClientError("Response has no token")
    return result


def export_access_token(token: str) -> None:
    """Expose ``token`` to later steps of the job as env variable and output."""
    env_file = os.getenv("GITHUB_ENV")
    if env_file:
        with open(env_file, "a") as f:
            f.write(f"GITHUB_ACCESS_TOKEN={token}\n")
    output_file = os.getenv("GITHUB_OUTPUT")
    if output_file:
        with open(output_file, "a") as f:
            f.write(f"token={token}\n")
