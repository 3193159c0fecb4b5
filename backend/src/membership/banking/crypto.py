"""AES-256-GCM vault for IBANs plus a deterministic lookup hash.

Payload format: ``nonceHex:ciphertextHex:tagHex``.
"""

import hashlib
import os
import re
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from membership.banking.iban import normalize_iban
from membership.errors import ConfigurationError, CryptoError
from membership.settings import settings

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16
_HEX = re.compile(r"^[0-9a-fA-F]+$")


def lookup_hash(iban: str) -> str:
    """SHA-256 hex digest of the normalized IBAN, for equality lookups."""
    return hashlib.sha256(normalize_iban(iban).encode("utf-8")).hexdigest()


class IbanVault:
    """Authenticated encryption with one process-wide key."""

    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise CryptoError("encryption key must be 32 bytes")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, hex_key: str) -> "IbanVault":
        """Build a vault from a 64-hex-character key."""
        if not hex_key or len(hex_key) != KEY_BYTES * 2 or not _HEX.match(hex_key):
            raise CryptoError("encryption key must be 64 hex characters (32 bytes)")
        return cls(bytes.fromhex(hex_key))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt with a fresh random nonce.

        Returns:
            nonceHex:ciphertextHex:tagHex
        """
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{nonce.hex()}:{ciphertext.hex()}:{tag.hex()}"

    def decrypt(self, payload: str) -> str:
        """Decrypt and authenticate a payload.

        Raises:
            CryptoError: Malformed payload, tampering or wrong key
        """
        parts = payload.split(":") if isinstance(payload, str) else []
        if len(parts) != 3 or not all(p and _HEX.match(p) and len(p) % 2 == 0 for p in parts):
            raise CryptoError("invalid ciphertext format, expected nonce:ciphertext:tag (hex)")

        nonce, ciphertext, tag = (bytes.fromhex(p) for p in parts)
        if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
            raise CryptoError("invalid nonce or tag length")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise CryptoError("authentication tag verification failed") from e
        return plaintext.decode("utf-8")


def decrypt_payload(payload: str, hex_key: str) -> str:
    """Decrypt a payload with an explicitly supplied key."""
    return IbanVault.from_hex(hex_key).decrypt(payload)


@lru_cache(maxsize=1)
def get_vault() -> IbanVault:
    """Process-wide vault, built once from BANK_SECRET_KEY.

    Raises:
        ConfigurationError: Key missing or malformed
    """
    if not settings.bank_secret_key:
        raise ConfigurationError("BANK_SECRET_KEY env var is required (64 hex chars for 32 bytes)")
    try:
        return IbanVault.from_hex(settings.bank_secret_key)
    except CryptoError as e:
        raise ConfigurationError("BANK_SECRET_KEY must be 32 bytes (64 hex chars)") from e
