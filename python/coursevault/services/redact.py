"""Log guard for secret-bearing keys.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: blocks forbidden keys at the logging call site

Never-log policy:
- Course usernames and passwords (plaintext or decrypted)
- Ciphertext, nonces and auth tags
- Encryption keys, provider credentials and bearer tokens

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "username",
        "password",
        "credentials",
        "plaintext",
        "ciphertext",
        "encrypted_credentials",
        "nonce",
        "iv",
        "auth_tag",
        "encryption_key",
        "api_key",
        "access_key_secret",
        "secret",
        "token",
        "bearer",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string, for correlating without exposing it."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("course_launched", **safe_kv(
            course_id=str(course_id),
            username_sha256=hash_text(username),   # OK: _sha256 suffix
            # password=password,                    # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for VAULT_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("VAULT_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger(__name__).warning("safe_kv_violation", forbidden_keys=violations)

    return kwargs
