import secrets
import string

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

# Configure Argon2id with secure parameters
# time_cost=3, memory_cost=65536 (64MB), parallelism=4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

ID_ALPHABET = string.ascii_letters + string.digits

# Verified against when there is no stored hash, so a missing paste costs
# the same time as a wrong token.
_DUMMY_HASH = ph.hash(secrets.token_urlsafe(16))


def random_id(length: int) -> str:
    """Generate a random alphanumeric identifier."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def hash_token(token: str) -> str:
    """Hash a token using Argon2id."""
    return ph.hash(token)


def verify_token(token: str, token_hash: str | None) -> bool:
    """Verify a token against its Argon2id hash (constant-time comparison)."""
    if token_hash is None:
        try:
            ph.verify(_DUMMY_HASH, token)
        except VerifyMismatchError:
            pass
        return False
    try:
        ph.verify(token_hash, token)
        return True
    except VerifyMismatchError:
        return False
