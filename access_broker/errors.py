"""Error taxonomy for the access broker.

Client errors carry the HTTP status and public name they are reported with.
Everything else is internal and only ever reported as an opaque 500.
"""

from __future__ import annotations

from typing import Optional


class BrokerError(Exception):
    """Base class for all access broker errors."""


class ConfigurationError(BrokerError):
    """The broker was started without the settings it needs."""


class ClientError(BrokerError):
    """Failure caused by the caller, reported with a 4xx status."""

    http_status: int = 400
    error_name: str = "ClientError"

    def __init__(self, message: str, http_status: Optional[int] = None) -> None:
        status = http_status if http_status is not None else self.http_status
        if status < 400 or status >= 500:
            raise ValueError(f"invalid client error status {status}")
        super().__init__(message)
        self.message = message
        self.http_status = status


class InvalidRequest(ClientError):
    """Malformed request body or repository name."""

    error_name = "InvalidRequest"


class InvalidIdentity(ClientError):
    """The identity token could not be verified."""

    error_name = "InvalidIdentity"

    def __init__(self, reason: str) -> None:
        super().__init__(f"token - {reason}")


class AccessDenied(ClientError):
    """No permission can be granted for the requested repository."""

    http_status = 403
    error_name = "AccessDenied"

    def __init__(self, message: str = "No permission granted") -> None:
        super().__init__(message)


class NoAuthority(AccessDenied):
    """The broker holds no installation for the target repository.

    Rendered exactly like :class:`AccessDenied` so callers cannot tell a
    missing repository from one that has not installed the app.
    """


class GitHubError(BrokerError):
    """A call to the GitHub API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PolicyFetchFailure(BrokerError):
    """The access policy could not be retrieved or parsed."""


class IssuanceError(BrokerError):
    """Minting the scoped access token failed."""
