"""
Key providers.

Doc Facade never stores or rotates long-term keys. It asks a key provider
for the current key each time a field is encrypted or decrypted. Keys are
exchanged as base64 text and used as 32 raw bytes.
"""

import base64
import binascii
import logging
import os
import threading
from typing import Protocol, runtime_checkable

from ..config import DocFacadeConfig
from ..errors import ConfigurationError, MissingEncryptionKey
from ..metadata import EntityTypeDescriptor
from .cipher import KEY_SIZE


logger = logging.getLogger(__name__)


@runtime_checkable
class KeyProvider(Protocol):
    """Supplies the key material used for field encryption."""

    def current_key(self) -> bytes:
        ...


def generate_key() -> str:
    """Generate a new random AES-256 key, base64 encoded."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


def decode_key(encoded: str) -> bytes:
    """
    Decode a base64 key and check its length.

    Raises:
        ConfigurationError: If the text is not base64 for a 32-byte key
    """
    try:
        key = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"Encryption key is not valid base64: {e}") from e
    if len(key) != KEY_SIZE:
        raise ConfigurationError(f"Encryption key must decode to {KEY_SIZE} bytes, got {len(key)}")
    return key


class StaticKeyProvider:
    """A key provider for a fixed key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes")
        self._key = bytes(key)

    @classmethod
    def from_base64(cls, encoded: str) -> "StaticKeyProvider":
        return cls(decode_key(encoded))

    def current_key(self) -> bytes:
        return self._key


class ConfigKeyProvider:
    """
    Key provider backed by ``encryption.own_key`` in the configuration.

    In development mode a missing key is replaced by a random key that
    lives as long as the provider. Data encrypted with it cannot be read
    after a restart. In production mode a missing key is an error.
    """

    def __init__(self) -> None:
        self._key: bytes | None = None
        self._lock = threading.Lock()

    def current_key(self) -> bytes:
        if self._key is None:
            # A generated development key must be chosen exactly once
            with self._lock:
                if self._key is None:
                    self._key = self._load()
        return self._key

    def _load(self) -> bytes:
        encoded = DocFacadeConfig.get_own_key()
        if encoded:
            return decode_key(encoded)

        if DocFacadeConfig.is_dev_mode():
            logger.warning(
                "No encryption.own_key configured, generated a development key. "
                "Set DOCFACADE_ENCRYPTION_KEY to keep data readable across restarts."
            )
            return decode_key(generate_key())

        raise MissingEncryptionKey("No encryption key configured (encryption.own_key)")


class KeyRing:
    """
    Chooses the key provider for an entity type.

    Types replicated from another module use that module's key; all
    other types use this module's own key.
    """

    def __init__(
        self,
        own: KeyProvider,
        modules: dict[str, KeyProvider] | None = None,
    ) -> None:
        self.own = own
        self.modules = dict(modules or {})

    @classmethod
    def from_config(cls) -> "KeyRing":
        """Build a key ring from ``encryption.own_key`` and ``encryption.module_keys``."""
        modules: dict[str, KeyProvider] = {
            name: StaticKeyProvider.from_base64(encoded)
            for name, encoded in DocFacadeConfig.get_module_keys().items()
        }
        return cls(ConfigKeyProvider(), modules)

    def provider_for(self, descriptor: EntityTypeDescriptor) -> KeyProvider:
        """
        Get the key provider for a described entity type.

        Raises:
            MissingEncryptionKey: If the type's source module has no key
        """
        if descriptor.source_module is None:
            return self.own

        provider = self.modules.get(descriptor.source_module)
        if provider is None:
            raise MissingEncryptionKey(
                f"No key for module '{descriptor.source_module}' "
                f"(needed by {descriptor.type_name})"
            )
        return provider

    def key_for(self, descriptor: EntityTypeDescriptor) -> bytes:
        return self.provider_for(descriptor).current_key()
