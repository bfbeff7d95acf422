"""Protocol primitives and client engine for zkpaste."""

from pastecore.client import CreatedPaste, PasteClient, ViewedPaste
from pastecore.crypto import (
    EncryptedPayload,
    decrypt,
    decrypt_bytes,
    derive_delete_auth,
    derive_key,
    encrypt,
)
from pastecore.encoding import b64url_decode, b64url_encode, b64url_size
from pastecore.errors import (
    AuthenticationError,
    DecodeError,
    InvalidToken,
    NotFound,
    PasteError,
    PowCancelled,
    PowInvalid,
    PowRequired,
    RateLimited,
    ServerError,
    ValidationError,
)
from pastecore.links import ShareLink, build_share_url, parse_share_url
from pastecore.pow import leading_zero_bits, meets_difficulty, solve_pow, solve_pow_async

__all__ = [
    "AuthenticationError",
    "CreatedPaste",
    "DecodeError",
    "EncryptedPayload",
    "InvalidToken",
    "NotFound",
    "PasteClient",
    "PasteError",
    "PowCancelled",
    "PowInvalid",
    "PowRequired",
    "RateLimited",
    "ServerError",
    "ShareLink",
    "ValidationError",
    "ViewedPaste",
    "b64url_decode",
    "b64url_encode",
    "b64url_size",
    "build_share_url",
    "decrypt",
    "decrypt_bytes",
    "derive_delete_auth",
    "derive_key",
    "encrypt",
    "leading_zero_bits",
    "meets_difficulty",
    "parse_share_url",
    "solve_pow",
    "solve_pow_async",
]
