from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from byobucket.core.errors import PersistenceError


def generate_key() -> str:
    """Return a new url-safe base64 encoded Fernet key."""
    return Fernet.generate_key().decode("utf-8")


class SecretCipher:
    """Fernet encryption for secrets at rest, with key rotation.

    Tokens are AES-128-CBC + HMAC-SHA256 and embed their creation timestamp,
    so ``decrypt`` can reject tokens older than ``ttl`` seconds. The first key
    encrypts; every key is tried on decrypt.
    """

    def __init__(self, keys: list[str]) -> None:
        if not keys:
            raise ValueError("At least one Fernet key is required")
        try:
            self._fernet = MultiFernet([Fernet(k.encode("utf-8")) for k in keys])
        except ValueError as exc:
            raise ValueError("Invalid Fernet key. Keys must be 32 url-safe base64-encoded bytes") from exc

    def encrypt(self, plaintext: str) -> bytes:
        return self._fernet.encrypt(plaintext.encode("utf-8"))

    def decrypt(self, token: bytes, ttl: int | None = None) -> str:
        try:
            return self._fernet.decrypt(token, ttl=ttl).decode("utf-8")
        except InvalidToken as exc:
            raise PersistenceError("Stored secret is not recoverable with the configured keys") from exc

    def rotate(self, token: bytes) -> bytes:
        """Re-encrypt ``token`` under the primary key, keeping its timestamp."""
        try:
            return self._fernet.rotate(token)
        except InvalidToken as exc:
            raise PersistenceError("Stored secret is not recoverable with the configured keys") from exc
