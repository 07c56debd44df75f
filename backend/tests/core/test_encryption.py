"""Response Encryptor: determinism, round trip, key validation.

Tests cover:
    - Same input → same bytes (deterministic AES-SIV)
    - Output is opaque urlsafe base64
    - Empty bodies pass through
    - Wrong key / tampered token → EncryptionError
    - Key length validation → ConfigurationError
"""

import base64

import pytest

from billing.core.encryption import ResponseEncryptor, decode_key
from billing.core.errors import ConfigurationError, EncryptionError

KEY = bytes(range(64))


def test_encrypt_is_deterministic():
    enc = ResponseEncryptor(KEY)
    assert enc.encrypt(b'{"ok":true}') == enc.encrypt(b'{"ok":true}')


def test_encrypt_is_opaque_and_urlsafe():
    body = b'{"ok":true}'
    token = ResponseEncryptor(KEY).encrypt(body)
    assert body not in token
    base64.urlsafe_b64decode(token)


def test_decrypt_restores_body():
    enc = ResponseEncryptor(KEY)
    body = b'{"items":[1,2,3]}'
    assert enc.decrypt(enc.encrypt(body)) == body


def test_different_bodies_give_different_tokens():
    enc = ResponseEncryptor(KEY)
    assert enc.encrypt(b"a") != enc.encrypt(b"b")


def test_empty_body_passes_through():
    enc = ResponseEncryptor(KEY)
    assert enc.encrypt(b"") == b""
    assert enc.decrypt(b"") == b""


def test_associated_data_binds_tokens():
    token = ResponseEncryptor(KEY, associated_data=b"tenant-a").encrypt(b"body")
    with pytest.raises(EncryptionError):
        ResponseEncryptor(KEY, associated_data=b"tenant-b").decrypt(token)


def test_wrong_key_cannot_decrypt():
    token = ResponseEncryptor(KEY).encrypt(b"body")
    with pytest.raises(EncryptionError):
        ResponseEncryptor(bytes(64)).decrypt(token)


def test_tampered_token_is_rejected():
    enc = ResponseEncryptor(KEY)
    raw = bytearray(base64.urlsafe_b64decode(enc.encrypt(b"body")))
    raw[-1] ^= 0x01
    with pytest.raises(EncryptionError):
        enc.decrypt(base64.urlsafe_b64encode(bytes(raw)))


@pytest.mark.parametrize("length", [0, 16, 31, 65])
def test_invalid_key_length_is_rejected(length):
    with pytest.raises(ConfigurationError):
        ResponseEncryptor(bytes(length))


def test_decode_key_accepts_urlsafe_base64():
    key_b64 = base64.urlsafe_b64encode(KEY).decode("ascii")
    assert decode_key(key_b64) == KEY
    assert ResponseEncryptor.from_b64(key_b64).encrypt(b"x") == ResponseEncryptor(KEY).encrypt(b"x")


def test_decode_key_rejects_garbage():
    with pytest.raises(ConfigurationError):
        decode_key("not base64!!")
