"""One-way hashing for passwords and password reset tokens."""

import logging

import bcrypt

from app.config import get_settings
from app.exceptions import InternalError

logger = logging.getLogger("user_data")


class CredentialHasher:
    """bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds if rounds is not None else get_settings().BCRYPT_ROUNDS

    def hash(self, secret: str) -> str:
        """Hash a secret with a fresh salt. Raises InternalError if bcrypt rejects it."""
        try:
            digest = bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        except ValueError as e:
            logger.error("Credential hashing failed: %s", e)
            raise InternalError("Failed to hash credential") from e
        return digest.decode("utf-8")

    def verify(self, secret: str, digest: str | None) -> bool:
        """Check a secret against a stored digest. Malformed digests never match."""
        if not digest:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False


_hasher: CredentialHasher | None = None


def get_hasher() -> CredentialHasher:
    """Get singleton hasher instance."""
    global _hasher
    if _hasher is None:
        _hasher = CredentialHasher()
    return _hasher
