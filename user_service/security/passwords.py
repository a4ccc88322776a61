"""bcrypt password hashing with a configurable work factor."""

from __future__ import annotations

from passlib.context import CryptContext

MIN_ROUNDS = 4
MAX_ROUNDS = 31


class PasswordHasher:
    """One-way password hashing and verification.

    Passwords are run through HMAC-SHA256 before bcrypt (passlib's
    ``bcrypt_sha256``), so every byte of a password longer than bcrypt's
    72-byte input limit takes part in the digest. Each digest embeds its own
    salt and cost, so verification works for hashes produced under an older
    work factor. Instances hold no per-call state and can be shared across
    request threads.
    """

    def __init__(self, rounds: int = 12) -> None:
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}")
        self._context = CryptContext(
            schemes=["bcrypt_sha256"],
            deprecated="auto",
            bcrypt_sha256__default_rounds=rounds,
            bcrypt_sha256__min_rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Return a salted digest for ``password``."""
        return self._context.hash(password)

    def verify(self, hashed: str, password: str) -> bool:
        """Return ``True`` when ``password`` matches ``hashed``; malformed digests never match."""
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """Return ``True`` when ``hashed`` was produced with a lower work factor."""
        try:
            return self._context.needs_update(hashed)
        except (ValueError, TypeError):
            return True
