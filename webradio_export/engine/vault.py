"""Encryption of delivery credentials at rest (AES-256-GCM envelopes)."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import CredentialError
from ..logging_conf import configure_logging

ENVELOPE_VERSION = "v1"
NONCE_LENGTH = 12
TAG_LENGTH = 16
DEVELOPMENT_SECRET = "webradio-development-secret"


class CredentialVault:
    """Encrypt and decrypt FTP passwords with a process-wide secret.

    Envelopes look like ``v1:<nonce>:<tag>:<ciphertext>`` with every part
    base64 encoded. The key is the SHA-256 digest of the secret and is fixed
    for the lifetime of the vault.
    """

    def __init__(self, secret: str | None) -> None:
        self.logger = configure_logging().bind(component="vault")
        if not secret:
            self.logger.warning(
                "secret_missing",
                message="Encryption secret not configured, falling back to development default.",
            )
            secret = DEVELOPMENT_SECRET
        self._aead = AESGCM(hashlib.sha256(secret.encode("utf-8")).digest())

    @staticmethod
    def is_encrypted(value: object) -> bool:
        return isinstance(value, str) and value.startswith(f"{ENVELOPE_VERSION}:")

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        data, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        parts = [ENVELOPE_VERSION, *(base64.b64encode(chunk).decode("ascii") for chunk in (nonce, tag, data))]
        return ":".join(parts)

    def decrypt(self, ciphertext: str) -> str:
        if not self.is_encrypted(ciphertext):
            raise CredentialError("Stored credential is not an encrypted envelope.")
        parts = ciphertext.split(":")
        if len(parts) != 4 or not all(parts[1:]):
            raise CredentialError("Unsupported encrypted payload format.")
        try:
            nonce, tag, data = (base64.b64decode(part, validate=True) for part in parts[1:])
        except (binascii.Error, ValueError) as exc:
            raise CredentialError("Encrypted payload is not valid base64.") from exc
        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise CredentialError("Encrypted payload has an invalid nonce or tag.")
        try:
            plaintext = self._aead.decrypt(nonce, data + tag, None)
        except InvalidTag as exc:
            self.logger.error("secret_decrypt_failed", error_class=type(exc).__name__)
            raise CredentialError("Stored credential cannot be decrypted (wrong key or corrupted data).") from exc
        return plaintext.decode("utf-8")

    def migrate(self, value: str) -> str:
        """Encrypt ``value`` unless it is already an envelope."""

        if not value or self.is_encrypted(value):
            return value
        return self.encrypt(value)


__all__ = ["CredentialVault", "ENVELOPE_VERSION"]
