"""URL-safe base64 without padding, the only binary-to-text codec on the wire."""

import base64
import re

from pastecore.errors import DecodeError

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url text."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """
    Strictly decode unpadded base64url text.

    Rejects padding, whitespace, characters outside the URL-safe alphabet,
    impossible lengths and non-canonical trailing bits.
    """
    if not isinstance(text, str) or not _B64URL_RE.match(text):
        raise DecodeError(message="Invalid base64url characters")
    if len(text) % 4 == 1:
        raise DecodeError(message="Invalid base64url length")

    padded = text + "=" * (-len(text) % 4)
    try:
        data = base64.urlsafe_b64decode(padded)
    except (ValueError, TypeError) as e:
        raise DecodeError(message="Invalid base64url encoding") from e

    # Two encodings of the same bytes would let tampered values slip past
    # equality checks, so only the canonical form is accepted.
    if b64url_encode(data) != text:
        raise DecodeError(message="Non-canonical base64url encoding")
    return data


def b64url_size(text: str) -> int:
    """Decoded byte length of ``text``, or -1 if it is not valid base64url."""
    try:
        return len(b64url_decode(text))
    except DecodeError:
        return -1
