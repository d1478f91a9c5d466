"""
Store/load interception for encrypted fields.

The document store adapter calls ``before_store`` on every entity it writes
and ``after_load`` on every entity it reads. Only fields marked Encrypted
are touched; types without markers pass through unchanged.
"""

import copy
import dataclasses
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel

from ..config import DocFacadeConfig
from ..errors import AuthenticationFailed, ConfigurationError, EnvelopeFormatError, FieldDecryptionError
from ..metadata import EntityTypeDescriptor, MetadataRegistry
from .cipher import CipherEnvelope, FieldCipher
from .keys import KeyRing


logger = logging.getLogger(__name__)

E = TypeVar("E")


class LegacyPlaintextPolicy(str, Enum):
    """What ``after_load`` does with an encrypted field that holds no envelope."""

    # Hand the stored value back unchanged
    PASSTHROUGH = "passthrough"

    # Raise FieldDecryptionError
    REJECT = "reject"

    @classmethod
    def from_config(cls) -> "LegacyPlaintextPolicy":
        name = DocFacadeConfig.get_legacy_plaintext_policy()
        try:
            return cls(name)
        except ValueError as e:
            raise ConfigurationError(
                f"encryption.on_legacy_plaintext must be 'passthrough' or 'reject', got {name!r}"
            ) from e


def _entity_id(entity: object) -> str | None:
    if isinstance(entity, Mapping):
        value = entity.get("id", entity.get("_key"))
    else:
        value = getattr(entity, "id", None)
    return None if value is None else str(value)


class FieldEncryptionInterceptor:
    """
    Encrypts marked fields on store and decrypts them on load.

    Both hooks return a transformed copy and leave the caller's entity
    untouched. When nothing changes the original object is returned.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        key_ring: KeyRing,
        cipher: FieldCipher | None = None,
        on_legacy_plaintext: LegacyPlaintextPolicy | str = LegacyPlaintextPolicy.PASSTHROUGH,
    ) -> None:
        """
        Initialize the interceptor.

        Args:
            registry: Registry used to find the Encrypted fields of a type
            key_ring: Source of the key for each entity type
            cipher: Cipher to use, a FieldCipher by default
            on_legacy_plaintext: Policy for stored values that are not envelopes
        """
        self.registry = registry
        self.key_ring = key_ring
        self.cipher = cipher or FieldCipher()
        self.on_legacy_plaintext = LegacyPlaintextPolicy(on_legacy_plaintext)

    @classmethod
    def from_config(cls, registry: MetadataRegistry) -> "FieldEncryptionInterceptor":
        """Create an interceptor with the configured keys and legacy policy."""
        return cls(
            registry,
            KeyRing.from_config(),
            on_legacy_plaintext=LegacyPlaintextPolicy.from_config(),
        )

    def before_store(self, entity: E) -> E:
        """
        Encrypt the marked fields of an entity about to be stored.

        Null values stay null. Values that already hold a valid envelope
        are kept verbatim, so storing the same entity twice never
        encrypts twice.

        Args:
            entity: The entity to store

        Returns:
            The entity with ciphertext envelopes in its encrypted fields
        """
        descriptor = self.registry.describe(type(entity))
        updates = self._encrypt(descriptor, lambda name: getattr(entity, name, None))
        return self._with_updates(entity, updates)

    def after_load(self, entity: E) -> E:
        """
        Decrypt the marked fields of an entity just loaded.

        Args:
            entity: The entity as read from the store

        Returns:
            The entity with plaintext in its encrypted fields

        Raises:
            FieldDecryptionError: If a field cannot be decrypted, or holds
                plain text while the legacy policy is ``reject``
        """
        descriptor = self.registry.describe(type(entity))
        updates = self._decrypt(
            descriptor, _entity_id(entity), lambda name: getattr(entity, name, None)
        )
        return self._with_updates(entity, updates)

    def before_store_document(self, entity_type: type, document: Mapping[str, object]) -> dict[str, object]:
        """Apply ``before_store`` to a raw document of the given entity type."""
        descriptor = self.registry.describe(entity_type)
        return {**document, **self._encrypt(descriptor, document.get)}

    def after_load_document(self, entity_type: type, document: Mapping[str, object]) -> dict[str, object]:
        """Apply ``after_load`` to a raw document of the given entity type."""
        descriptor = self.registry.describe(entity_type)
        return {**document, **self._decrypt(descriptor, _entity_id(document), document.get)}

    def _encrypt(
        self,
        descriptor: EntityTypeDescriptor,
        read: Callable[[str], object],
    ) -> dict[str, object]:
        updates: dict[str, object] = {}
        key: bytes | None = None

        for spec in descriptor.encrypted_fields:
            value = read(spec.field_name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise TypeError(
                    f"{descriptor.type_name}.{spec.field_name} is encrypted "
                    f"but holds {type(value).__name__}"
                )
            if CipherEnvelope.try_parse(value) is not None:
                logger.debug("%s.%s already encrypted", descriptor.type_name, spec.field_name)
                continue

            if key is None:
                key = self.key_ring.key_for(descriptor)
            updates[spec.field_name] = self.cipher.encrypt(value, key).serialize()

        return updates

    def _decrypt(
        self,
        descriptor: EntityTypeDescriptor,
        entity_id: str | None,
        read: Callable[[str], object],
    ) -> dict[str, object]:
        updates: dict[str, object] = {}
        key: bytes | None = None

        for spec in descriptor.encrypted_fields:
            value = read(spec.field_name)
            if value is None:
                continue

            envelope = CipherEnvelope.try_parse(value)
            if envelope is None:
                if self.on_legacy_plaintext is LegacyPlaintextPolicy.REJECT:
                    raise FieldDecryptionError(
                        entity_id, spec.field_name, "stored value is not an encrypted envelope"
                    )
                logger.debug(
                    "%s.%s of %s holds plain text, passing through",
                    descriptor.type_name,
                    spec.field_name,
                    entity_id,
                )
                continue

            if key is None:
                key = self.key_ring.key_for(descriptor)
            try:
                updates[spec.field_name] = self.cipher.decrypt(envelope, key)
            except (AuthenticationFailed, EnvelopeFormatError) as e:
                raise FieldDecryptionError(entity_id, spec.field_name, str(e)) from e

        return updates

    @staticmethod
    def _with_updates(entity: E, updates: dict[str, object]) -> E:
        if not updates:
            return entity
        if isinstance(entity, BaseModel):
            return entity.model_copy(update=updates)
        if dataclasses.is_dataclass(entity):
            return dataclasses.replace(entity, **updates)

        changed = copy.copy(entity)
        for name, value in updates.items():
            setattr(changed, name, value)
        return changed
