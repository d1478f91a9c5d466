"""
This module connects entity models to the document store.

Every write goes through the interceptor's ``before_store`` hook and every
read through ``after_load``, whether or not the type has marked fields.
The store is also a candidate provider for reference resolution: targets
of one type are loaded with a single request per batch.
"""

import logging
import uuid
from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import TypeVar

from pydantic import BaseModel

from .db.arangodb import ArangoDocumentClient
from .encryption.cipher import CipherEnvelope
from .encryption.interceptor import FieldEncryptionInterceptor
from .errors import FieldDecryptionError


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class EntityStore:
    """
    Stores and loads pydantic entities with transparent field encryption.

    Each entity type lives in the collection named after the type. Entities
    without an id get a new UUID on first store.
    """

    def __init__(
        self,
        client: ArangoDocumentClient,
        interceptor: FieldEncryptionInterceptor,
        entity_types: Iterable[type[BaseModel]] = (),
    ) -> None:
        """
        Initialize the entity store.

        Args:
            client: Document client used for persistence
            interceptor: Hooks applied around every write and read
            entity_types: Entity types to register up front, so that
                reference targets of these types can be loaded by name
        """
        self.client = client
        self.interceptor = interceptor
        self.registry = interceptor.registry
        self.registry.register_all(entity_types)

    def store(self, entity: BaseModel) -> str:
        """
        Store an entity, inserting or overwriting it.

        The caller's entity is not modified.

        Args:
            entity: The entity to store

        Returns:
            The id of the stored entity
        """
        if not isinstance(entity, BaseModel):
            raise TypeError("Entity must be a pydantic model")

        entity_id = getattr(entity, "id", None) or str(uuid.uuid4())
        stored = self.interceptor.before_store(entity)
        document = stored.model_dump(mode="json", exclude={"id"})

        self.client.insert(type(entity).__name__, entity_id, document)
        logger.debug("Stored %s %s", type(entity).__name__, entity_id)
        return entity_id

    def load(self, entity_class: type[T], entity_id: str) -> T:
        """
        Load an entity by id.

        Raises:
            ValueError: If the entity does not exist
            FieldDecryptionError: If an encrypted field cannot be decrypted
        """
        document = self.client.get(entity_class.__name__, entity_id)
        if document is None:
            raise ValueError(f"{entity_class.__name__} {entity_id} not found")
        return self.interceptor.after_load(entity_class.model_validate(document))

    def query(
        self,
        entity_class: type[T],
        filters: Mapping[str, object],
        limit: int = 50,
    ) -> list[T]:
        """
        Query entities by field equality.

        Encrypted fields cannot be filtered on, since every stored value
        has its own nonce.

        Raises:
            ValueError: If a filter names an encrypted field
        """
        descriptor = self.registry.describe(entity_class)
        encrypted = {spec.field_name for spec in descriptor.encrypted_fields}
        rejected = sorted(encrypted.intersection(filters))
        if rejected:
            raise ValueError(f"Cannot filter on encrypted field(s): {', '.join(rejected)}")

        documents = self.client.query(entity_class.__name__, filters, limit)
        return [self.interceptor.after_load(entity_class.model_validate(d)) for d in documents]

    def delete(self, entity_class: type[BaseModel], entity_id: str) -> None:
        """Delete an entity by id."""
        self.client.delete(entity_class.__name__, entity_id)

    def fetch(self, target_type: str, ids: Collection[str]) -> Sequence[object]:
        """
        Load reference targets of one type in a single request.

        Targets of a registered type come back as decrypted entities; other
        targets as plain documents.

        Raises:
            FieldDecryptionError: If a target of an unregistered type holds
                encrypted values, which could otherwise end up as labels
        """
        documents = self.client.get_many(target_type, ids)
        entity_class = self.registry.lookup(target_type)
        if entity_class is None or not issubclass(entity_class, BaseModel):
            for document in documents:
                _check_no_envelopes(target_type, document)
            return documents
        return [self.interceptor.after_load(entity_class.model_validate(d)) for d in documents]


def _check_no_envelopes(target_type: str, document: Mapping[str, object]) -> None:
    for name, value in document.items():
        if CipherEnvelope.looks_like_envelope(value) and CipherEnvelope.try_parse(value) is not None:
            raise FieldDecryptionError(
                document.get("id"),
                name,
                f"{target_type} is not a registered entity type, pass it to EntityStore(entity_types=...)",
            )
