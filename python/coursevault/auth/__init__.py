"""Authentication module.

This module provides:
- Token verification (shared-secret JWT verifier)
- Auth middleware for FastAPI
- Request state with viewer identity
"""

from coursevault.auth.middleware import AuthMiddleware, Viewer, get_viewer
from coursevault.auth.verifier import SharedSecretVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "SharedSecretVerifier",
    "TokenVerifier",
]
