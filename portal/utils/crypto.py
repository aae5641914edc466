"""
Crypto utilities — bcrypt password hashing.

Portal accounts are stored as bcrypt ($2b$).  Accounts imported with a
werkzeug hash (scrypt/pbkdf2) still verify, and are re-hashed to bcrypt on
their next successful login (see ``needs_rehash``).
"""

import bcrypt
from werkzeug.security import check_password_hash

BCRYPT_PREFIXES = ("$2b$", "$2a$")


def hash_password(plain_password: str, rounds: int = 12) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against a bcrypt or werkzeug hash."""
    if not password_hash:
        return False
    if password_hash.startswith(BCRYPT_PREFIXES):
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    return check_password_hash(password_hash, plain_password)


def needs_rehash(password_hash: str) -> bool:
    """True for stored hashes that are not bcrypt."""
    return bool(password_hash) and not password_hash.startswith(BCRYPT_PREFIXES)
