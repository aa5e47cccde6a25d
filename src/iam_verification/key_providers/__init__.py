"""
Key provider implementations for resolving JWT signing keys.

This package contains implementations of the KeyProvider protocol.
"""

from .jwks import HttpxJWKClient, JWKSKeyProvider

__all__ = ["HttpxJWKClient", "JWKSKeyProvider"]
