"""
Client-side password-based encryption.

- Key derivation: PBKDF2-HMAC-SHA256, 100K iterations, 256-bit key
- Encryption: AES-256-GCM (the 16-byte auth tag is appended to the ciphertext)
- Delete authorization: a second PBKDF2 output over ``salt || ":delete"``

Neither the derived key nor the plaintext ever leaves this module's caller.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from pastecore.encoding import b64url_encode
from pastecore.errors import AuthenticationError

SALT_SIZE = 16
IV_SIZE = 12
KEY_SIZE = 32
TAG_SIZE = 16
PBKDF2_ITERATIONS = 100_000

DELETE_AUTH_LABEL = b":delete"


@dataclass(frozen=True)
class EncryptedPayload:
    """AES-256-GCM output plus everything needed to decrypt it with the password.

    Attributes:
        ciphertext: Encrypted content including the GCM auth tag.
        iv: The 12-byte nonce, fresh for every encryption.
        salt: The 16-byte PBKDF2 salt, fresh for every paste.
    """

    ciphertext: bytes
    iv: bytes
    salt: bytes


def _pbkdf2(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive the 256-bit content key from a password and salt."""
    return _pbkdf2(password, salt)


def derive_delete_auth(password: str, salt: bytes) -> str:
    """
    Derive the delete authorization for a paste, base64url encoded.

    Uses the paste's salt with a ``:delete`` label appended, so the result is
    computationally independent of :func:`derive_key` and cannot decrypt.
    """
    return b64url_encode(_pbkdf2(password, salt + DELETE_AUTH_LABEL))


def encrypt(plaintext: str | bytes, password: str) -> EncryptedPayload:
    """Encrypt content under a password with a fresh salt and iv."""
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")

    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = derive_key(password, salt)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    return EncryptedPayload(ciphertext=ciphertext, iv=iv, salt=salt)


def decrypt_bytes(payload: EncryptedPayload, password: str) -> bytes:
    """Decrypt to raw bytes. Raises AuthenticationError on any failure."""
    if len(payload.iv) != IV_SIZE or len(payload.ciphertext) < TAG_SIZE:
        raise AuthenticationError()

    key = derive_key(password, payload.salt)
    try:
        return AESGCM(key).decrypt(payload.iv, payload.ciphertext, None)
    except InvalidTag as e:
        raise AuthenticationError() from e


def decrypt(payload: EncryptedPayload, password: str) -> str:
    """Decrypt to text. Raises AuthenticationError on any failure."""
    data = decrypt_bytes(payload, password)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthenticationError() from e
