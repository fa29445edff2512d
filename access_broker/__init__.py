"""Access broker: exchange CI identity tokens for repository scoped access tokens."""

__version__ = "0.1.0"

from .broker import AccessBroker, Stage
from .config import BrokerConfig, load_config
from .errors import (
    AccessDenied,
    BrokerError,
    ClientError,
    InvalidIdentity,
    IssuanceError,
    NoAuthority,
)
from .models import AccessPolicy, Authority, IssuedToken, PolicyRule

__all__ = [
    "AccessBroker",
    "AccessDenied",
    "AccessPolicy",
    "Authority",
    "BrokerConfig",
    "BrokerError",
    "ClientError",
    "InvalidIdentity",
    "IssuanceError",
    "IssuedToken",
    "NoAuthority",
    "PolicyRule",
    "Stage",
    "load_config",
]
