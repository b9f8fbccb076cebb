"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
"""

import time
from uuid import UUID, uuid4

import jwt

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    secret: str = TEST_JWT_SECRET,
    **extra_claims,
) -> str:
    """Mint a valid HS256 test token with `sub` set to user_id."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def mint_expired_token(user_id: UUID | str) -> str:
    # Well past the 60s clock skew allowance
    return mint_test_token(user_id, expires_in=-3600)


def mint_token_with_bad_signature(user_id: UUID | str) -> str:
    return mint_test_token(user_id, secret="some-other-secret-that-is-long-enough")


def auth_headers(user_id: UUID | str, **extra_headers: str) -> dict[str, str]:
    """Authorization headers for a test request."""
    return {"Authorization": f"Bearer {mint_test_token(user_id)}", **extra_headers}


def create_test_user_id() -> UUID:
    return uuid4()
