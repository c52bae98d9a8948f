# lyceum/utils/security.py

from werkzeug.security import generate_password_hash

_HASH_PREFIXES = ("pbkdf2:", "scrypt:", "$2a$", "$2b$", "$2y$", "{bcrypt}")


def hash_secret(plain_text):
    """Hash a plain-text password for storage."""
    return generate_password_hash(plain_text)


def looks_hashed(value):
    """Return True when ``value`` is already a stored password hash."""
    return bool(value) and value.startswith(_HASH_PREFIXES)
