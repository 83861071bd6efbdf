"""
Credential vault for per-user API keys.

Keys are stored one per (user_id, service_name), encrypted with AES-256-GCM
under a single process-wide master key. Each record carries its own random
nonce, and the owning user/service pair is bound as associated data so a
ciphertext copied onto another record does not decrypt.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import ConfigurationError, CredentialError
from .models import ApiKeyRecord, utcnow
from .storage import DataStore

logger = logging.getLogger(__name__)

CIPHERTEXT_VERSION = "v1"
NONCE_SIZE = 12  # 96-bit GCM nonce


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text.encode("ascii"))


def _associated_data(user_id: str, service_name: str) -> bytes:
    return f"{user_id}/{service_name}".encode("utf-8")


class CredentialVault:
    """Encrypts, stores and retrieves API keys through the data store."""

    def __init__(self, store: DataStore, master_key: Optional[bytes]):
        """
        Initialize the vault.

        Args:
            store: Data store holding ApiKeyRecord rows
            master_key: 32 raw bytes (see Settings.master_key_bytes)

        Raises:
            ConfigurationError: If the master key is missing or the wrong size
        """
        if not master_key or len(master_key) != 32:
            raise ConfigurationError("Credential vault requires a 32-byte master key")
        self.store = store
        self._aead = AESGCM(master_key)

    # ----------------------------------------------------------------------- #
    # Encryption
    # ----------------------------------------------------------------------- #

    def encrypt(self, plaintext: str, user_id: str, service_name: str) -> str:
        """
        Encrypt a key for storage.

        Returns:
            "v1:<nonce>:<ciphertext>" with both parts urlsafe base64
        """
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(
            nonce,
            plaintext.encode("utf-8"),
            _associated_data(user_id, service_name),
        )
        return f"{CIPHERTEXT_VERSION}:{_b64encode(nonce)}:{_b64encode(ciphertext)}"

    def decrypt(self, token: str, user_id: str, service_name: str) -> str:
        """
        Decrypt a stored key.

        Raises:
            CredentialError: If the token is malformed, tampered with, or was
                encrypted under another master key or for another record
        """
        parts = token.split(":")
        if len(parts) != 3 or parts[0] != CIPHERTEXT_VERSION:
            raise CredentialError("Unrecognized encrypted key format")

        try:
            nonce = _b64decode(parts[1])
            ciphertext = _b64decode(parts[2])
        except (binascii.Error, ValueError) as e:
            raise CredentialError(f"Malformed encrypted key: {e}") from e

        if len(nonce) != NONCE_SIZE:
            raise CredentialError("Malformed encrypted key: bad nonce length")

        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, _associated_data(user_id, service_name))
        except InvalidTag as e:
            raise CredentialError("Failed to decrypt API key") from e
        return plaintext.decode("utf-8")

    # ----------------------------------------------------------------------- #
    # Storage
    # ----------------------------------------------------------------------- #

    def save_key(self, user_id: str, service_name: str, api_key: str) -> ApiKeyRecord:
        """
        Save an API key for a service, replacing any existing one.

        Args:
            user_id: The user's ID
            service_name: The service name (e.g., "openai")
            api_key: Plaintext key; never persisted as-is

        Returns:
            The stored record
        """
        encrypted_key = self.encrypt(api_key, user_id, service_name)
        existing = self.store.get_api_key(user_id, service_name)

        if existing:
            record = self.store.update_api_key(existing.id, {
                "encrypted_key": encrypted_key,
                "is_active": True,
                "updated_at": utcnow(),
            })
            logger.info(f"Updated {service_name} key for user {user_id}")
            return record

        record = self.store.insert_api_key(ApiKeyRecord(
            user_id=user_id,
            service_name=service_name,
            encrypted_key=encrypted_key,
        ))
        logger.info(f"Stored new {service_name} key for user {user_id}")
        return record

    def get_key(self, user_id: str, service_name: str) -> Optional[str]:
        """
        Get the plaintext API key for a service.

        Returns:
            The key, or None if no active key is stored
        """
        record = self.store.get_api_key(user_id, service_name)
        if not record or not record.is_active:
            return None
        return self.decrypt(record.encrypted_key, user_id, service_name)

    def deactivate_key(self, user_id: str, service_name: str) -> bool:
        """
        Deactivate a stored key without deleting it.

        Returns:
            True if a key was deactivated, False if none existed
        """
        record = self.store.get_api_key(user_id, service_name)
        if not record:
            return False
        self.store.update_api_key(record.id, {"is_active": False, "updated_at": utcnow()})
        return True

    def list_services(self, user_id: str) -> List[str]:
        """Names of services the user has an active key for."""
        return sorted(r.service_name for r in self.store.list_api_keys(user_id) if r.is_active)
