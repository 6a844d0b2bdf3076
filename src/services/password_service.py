"""Password hashing with bcrypt."""

import bcrypt

DEFAULT_BCRYPT_ROUNDS = 12

# bcrypt only uses the first 72 bytes of its input; newer bcrypt releases
# raise instead of ignoring the rest, so longer passwords are cut here.
BCRYPT_MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


class PasswordService:
    """One-way password hashing and verification."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash; only its first 72 UTF-8
                bytes are significant

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(_password_bytes(password), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        try:
            return bcrypt.checkpw(
                _password_bytes(password),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            # Stored value is not a bcrypt hash
            return False
