"""
Error taxonomy shared by the client engine and the server.

Every error carries a stable ``code`` (the label that crosses the wire) and a
generic human-readable message. Messages never include plaintext, passwords
or internal details, so they are safe to show to end users.
"""


class PasteError(Exception):
    """Base class for all expected, recoverable paste errors."""

    code = "error"
    message = "An unexpected error occurred. Please try again."

    def __init__(self, code: str | None = None, message: str | None = None):
        if code is not None:
            self.code = code
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r})"


class ValidationError(PasteError):
    code = "validation_error"
    message = "Invalid input. Please check your data and try again."


class DecodeError(ValidationError):
    code = "decode_error"
    message = "Malformed encoded value."


class AuthenticationError(PasteError):
    # Wrong password and corrupted data are deliberately indistinguishable.
    code = "decrypt_failed"
    message = "Decryption failed. The content may be corrupted or the password may be incorrect."


class PowRequired(PasteError):
    code = "pow_required"
    message = "Proof of work is required. Please fetch a challenge and try again."


class PowInvalid(PasteError):
    code = "pow_invalid"
    message = "Proof of work verification failed. Please fetch a new challenge and try again."


class PowCancelled(PasteError):
    code = "pow_cancelled"
    message = "Proof of work was cancelled."


class RateLimited(PasteError):
    code = "rate_limited"
    message = "Too many requests. Please wait a moment and try again."


class NotFound(PasteError):
    code = "not_found"
    message = "Content not found or has expired."


class InvalidToken(PasteError):
    code = "invalid_token"
    message = "Access denied. The deletion token is not valid."


class ServerError(PasteError):
    code = "server_error"
    message = "Server error. Please try again later."
