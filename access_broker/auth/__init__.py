"""Workload identity verification."""

from .identity import IdentityVerifier, JwksCache

__all__ = ["IdentityVerifier", "JwksCache"]
