"""Password hashing in the ``pbkdf2_sha256$<iterations>$<saltHex>$<keyHex>`` format."""

import secrets

from passlib.crypto.digest import pbkdf2_hmac
from passlib.utils import consteq

PASSWORD_SCHEME = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 180_000
SALT_BYTES = 16
KEY_LENGTH = 32


def hash_password(password: str, iterations: int = PASSWORD_ITERATIONS) -> str:
    """Hash a password with a fresh random salt.

    Args:
        password: Plain password
        iterations: PBKDF2 iteration count

    Returns:
        Encoded hash string
    """
    salt = secrets.token_bytes(SALT_BYTES)
    derived = pbkdf2_hmac("sha256", password, salt, iterations, KEY_LENGTH)
    return f"{PASSWORD_SCHEME}${iterations}${salt.hex()}${derived.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Verify a password against a stored hash.

    Fails closed: any malformed stored value yields False instead of
    raising.

    Args:
        password: Plain password
        stored: Encoded hash string

    Returns:
        True if matches
    """
    if not isinstance(stored, str) or not isinstance(password, str):
        return False

    parts = stored.split("$")
    if len(parts) != 4:
        return False

    scheme, iterations_raw, salt_hex, key_hex = parts
    if scheme != PASSWORD_SCHEME:
        return False

    if not (iterations_raw.isascii() and iterations_raw.isdigit()):
        return False
    iterations = int(iterations_raw)
    if iterations <= 0:
        return False

    try:
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(key_hex)
    except ValueError:
        return False
    if not expected:
        return False

    derived = pbkdf2_hmac("sha256", password, salt, iterations, len(expected))
    return consteq(derived, expected)
