"""Response Encryptor: deterministic opaque transform of outbound response bodies.

Invariants:
    - encrypt() is deterministic: the same key and body always give the same bytes
    - decrypt(encrypt(body)) == body
    - Empty bodies are returned unchanged
    - Any cryptography failure surfaces as EncryptionError

Design Decisions:
    - AES-SIV (RFC 5297) without nonce: deterministic authenticated encryption
    - Output is urlsafe base64 so encrypted bodies travel as text/plain
"""

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESSIV

from billing.core.errors import ConfigurationError, EncryptionError

ALGORITHM = "aes-siv"
VALID_KEY_LENGTHS = (32, 48, 64)


def decode_key(key_b64: str) -> bytes:
    """Decode a urlsafe base64 AES-SIV key and check its length."""
    try:
        key = base64.urlsafe_b64decode(key_b64.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise ConfigurationError(
            "response_encryption_key", "not valid urlsafe base64",
        ) from e
    if len(key) not in VALID_KEY_LENGTHS:
        raise ConfigurationError(
            "response_encryption_key",
            f"expected 32, 48 or 64 bytes, got {len(key)}",
        )
    return key


class ResponseEncryptor:
    """Encrypts response bodies with a process-wide AES-SIV key."""

    algorithm = ALGORITHM

    def __init__(self, key: bytes, associated_data: bytes | None = None):
        if len(key) not in VALID_KEY_LENGTHS:
            raise ConfigurationError(
                "response_encryption_key",
                f"expected 32, 48 or 64 bytes, got {len(key)}",
            )
        self._aead = AESSIV(key)
        self._associated_data = [associated_data] if associated_data else None

    @classmethod
    def from_b64(cls, key_b64: str, associated_data: bytes | None = None) -> "ResponseEncryptor":
        return cls(decode_key(key_b64), associated_data)

    def encrypt(self, body: bytes) -> bytes:
        if not body:
            return body
        try:
            sealed = self._aead.encrypt(body, self._associated_data)
        except (ValueError, TypeError, OverflowError) as e:
            raise EncryptionError(f"Response encryption failed: {e}") from e
        return base64.urlsafe_b64encode(sealed)

    def decrypt(self, token: bytes) -> bytes:
        if not token:
            return token
        try:
            sealed = base64.urlsafe_b64decode(token)
            return self._aead.decrypt(sealed, self._associated_data)
        except (InvalidTag, binascii.Error, ValueError) as e:
            raise EncryptionError("Response body could not be decrypted") from e
