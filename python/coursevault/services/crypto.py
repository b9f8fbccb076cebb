"""Credential vault: authenticated encryption of stored course credentials.

Implements AES-256-GCM for short secret strings (JSON-encoded
username/password pairs) using the `cryptography` package.

Storage format:
- ciphertext, nonce and tag are stored as separate hex strings
- nonce is 16 random bytes, generated fresh for every encryption
- tag is the 16-byte GCM authentication tag

Security invariants:
- Never log plaintext, ciphertext or decrypted output
- The key is supplied by VaultConfig at construction; the vault never reads
  the environment
- A missing or wrongly sized key fails the operation that needs it
- Decryption either verifies the tag and returns the full plaintext, or
  raises; partial plaintext is never returned
"""

import base64
import binascii
import json
import os
import re
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from coursevault.config import VaultConfig
from coursevault.logging import get_logger

logger = get_logger(__name__)

# GCM nonce size used for stored credentials (16 bytes)
NONCE_SIZE = 16

# GCM authentication tag size (16 bytes)
TAG_SIZE = 16

# AES-256 key size (32 bytes)
KEY_SIZE = 32

HEX_PATTERN = re.compile(r"(?:[0-9a-fA-F]{2})*")


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


class ConfigurationError(CryptoError):
    """Key material is missing or malformed. Not recoverable by retry."""

    pass


class AuthenticationError(CryptoError):
    """The authentication tag did not verify (tampered data or wrong key)."""

    pass


class MalformedInputError(CryptoError):
    """A stored field is not valid hex or has an unexpected length."""

    pass


@dataclass(frozen=True)
class EncryptedSecret:
    """One encrypted credential blob, all fields hex-encoded."""

    ciphertext: str
    nonce: str
    auth_tag: str


@dataclass(frozen=True)
class CourseCredentials:
    username: str
    password: str


def decode_key(encoded: str | None) -> bytes:
    """Decode and validate base64 key material.

    Raises:
        ConfigurationError: If the key is missing, invalid base64, or wrong size.
    """
    if not encoded:
        raise ConfigurationError("ENCRYPTION_KEY is not set")

    try:
        key = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"ENCRYPTION_KEY is not valid base64: {e}") from e

    if len(key) != KEY_SIZE:
        raise ConfigurationError(f"ENCRYPTION_KEY must be {KEY_SIZE} bytes, got {len(key)} bytes")

    return key


def generate_nonce() -> bytes:
    """Generate a random 16-byte nonce.

    Each encryption operation MUST use a unique nonce.
    """
    return os.urandom(NONCE_SIZE)


def _unhex(value: str, field: str, expected_size: int | None = None) -> bytes:
    # bytes.fromhex skips whitespace; stored fields must be strictly hex
    if not isinstance(value, str) or not HEX_PATTERN.fullmatch(value):
        raise MalformedInputError(f"{field} is not valid hex")
    raw = bytes.fromhex(value)

    if expected_size is not None and len(raw) != expected_size:
        raise MalformedInputError(f"{field} must be {expected_size} bytes, got {len(raw)}")

    return raw


class CredentialVault:
    """Reversible, authenticated encryption of small secret strings.

    Args:
        config: Vault configuration holding the base64-encoded key.
    """

    def __init__(self, config: VaultConfig):
        self._config = config
        self._key: bytes | None = None

    def _require_key(self) -> bytes:
        if self._key is None:
            self._key = decode_key(self._config.encryption_key)
        return self._key

    def encrypt(self, plaintext: str) -> EncryptedSecret:
        """Encrypt a UTF-8 string with a fresh nonce.

        Raises:
            ConfigurationError: If the key is missing or not 32 bytes.
        """
        aead = AESGCM(self._require_key())
        nonce = generate_nonce()

        # AESGCM appends the tag to the ciphertext; they are stored separately
        sealed = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

        return EncryptedSecret(
            ciphertext=ciphertext.hex(),
            nonce=nonce.hex(),
            auth_tag=tag.hex(),
        )

    def decrypt(self, ciphertext: str, nonce: str, auth_tag: str) -> str:
        """Decrypt a triple produced by encrypt().

        Raises:
            ConfigurationError: If the key is missing or not 32 bytes.
            MalformedInputError: If a field is not hex or has the wrong length.
            AuthenticationError: If the tag does not verify.
        """
        raw_ciphertext = _unhex(ciphertext, "ciphertext")
        raw_nonce = _unhex(nonce, "nonce", NONCE_SIZE)
        raw_tag = _unhex(auth_tag, "auth_tag", TAG_SIZE)

        aead = AESGCM(self._require_key())
        try:
            plaintext = aead.decrypt(raw_nonce, raw_ciphertext + raw_tag, None)
        except InvalidTag as e:
            logger.warning("vault_decrypt_failed", reason="invalid_tag")
            raise AuthenticationError("Credential authentication failed") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError("Decrypted data is not valid UTF-8") from e

    def encrypt_credentials(self, username: str, password: str) -> EncryptedSecret:
        """Encrypt a username/password pair as a JSON object."""
        payload = json.dumps({"username": username, "password": password}, ensure_ascii=False)
        return self.encrypt(payload)

    def decrypt_credentials(self, secret: EncryptedSecret) -> CourseCredentials:
        """Decrypt a stored triple back into a username/password pair.

        Raises:
            MalformedInputError: If the decrypted payload is not the expected JSON shape.
        """
        plaintext = self.decrypt(secret.ciphertext, secret.nonce, secret.auth_tag)
        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise MalformedInputError("Decrypted credentials are not valid JSON") from e

        if not isinstance(data, dict):
            raise MalformedInputError("Decrypted credentials are not a JSON object")

        return CourseCredentials(
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
        )
