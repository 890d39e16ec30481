"""Password hashing utilities.

New hashes are bcrypt. Accounts imported from the previous storefront
carry scrypt hashes in its `<hex digest>.<salt>` format (N=16384, r=8,
p=1, 64-byte key); those still verify and are re-hashed with bcrypt on
the next successful login.
"""

import hashlib
import secrets

import bcrypt


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (passwords are truncated to 72 bytes)."""
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if _is_legacy_hash(password_hash):
        return _verify_legacy(password, password_hash)
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_upgrade(password_hash: str) -> bool:
    return _is_legacy_hash(password_hash)


def _is_legacy_hash(password_hash: str) -> bool:
    return not password_hash.startswith("$2")


def _verify_legacy(password: str, password_hash: str) -> bool:
    try:
        hashed, salt = password_hash.split(".", 1)
        expected = hashlib.scrypt(
            password.encode("utf-8"),
            salt=salt.encode("utf-8"),
            n=16384,
            r=8,
            p=1,
            dklen=64,
        ).hex()
        return secrets.compare_digest(hashed, expected)
    except (ValueError, AttributeError):
        return False
