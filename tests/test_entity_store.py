"""
Tests for the EntityStore.

The document client is mocked with an in-memory dictionary; these tests
check that every write and read goes through the encryption hooks.
"""

from collections.abc import Collection, Mapping
from typing import Annotated
from unittest.mock import MagicMock

import pytest

from docfacade.encryption import CipherEnvelope, FieldEncryptionInterceptor, KeyRing, StaticKeyProvider
from docfacade.entity_store import EntityStore
from docfacade.errors import FieldDecryptionError
from docfacade.metadata import MetadataRegistry
from docfacade.models import DocumentEntity, Encrypted, LookupReference
from docfacade.references import ReferenceResolver, prefetch_candidates

from sample_entities import BadlyEncrypted, Car, Company, Note


class InMemoryDocuments:
    """Stand-in for ArangoDocumentClient keeping documents in dictionaries."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, object]]] = {}
        self.get_many_calls: list[tuple[str, frozenset[str]]] = []

    def insert(self, collection: str, key: str, document: Mapping[str, object]) -> str:
        self.collections.setdefault(collection, {})[key] = dict(document)
        return key

    def get(self, collection: str, key: str) -> dict[str, object] | None:
        document = self.collections.get(collection, {}).get(key)
        return None if document is None else {**document, "id": key}

    def get_many(self, collection: str, keys: Collection[str]) -> list[dict[str, object]]:
        self.get_many_calls.append((collection, frozenset(keys)))
        return [d for d in (self.get(collection, key) for key in keys) if d is not None]

    def query(self, collection: str, filters: Mapping[str, object], limit: int = 50) -> list[dict[str, object]]:
        documents = self.collections.get(collection, {})
        return [
            {**document, "id": key}
            for key, document in documents.items()
            if all(document.get(name) == value for name, value in filters.items())
        ][:limit]

    def delete(self, collection: str, key: str) -> None:
        self.collections.get(collection, {}).pop(key, None)


class SecretCompany(DocumentEntity):
    name: Annotated[str | None, Encrypted()] = None


class Lease(DocumentEntity):
    lessee: Annotated[str | None, LookupReference("SecretCompany")] = None


class Sublease(DocumentEntity):
    lessee: Annotated[str | None, LookupReference(SecretCompany)] = None


@pytest.fixture
def documents() -> InMemoryDocuments:
    return InMemoryDocuments()


@pytest.fixture
def store(documents: InMemoryDocuments, interceptor: FieldEncryptionInterceptor) -> EntityStore:
    return EntityStore(documents, interceptor)


class TestEntityStore:
    """Tests for storing and loading entities."""

    def test_store_encrypts_at_rest(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        car = Car(id="1", license_plate="1-ABC-123", vin="WDB1234561A123456")

        assert store.store(car) == "1"

        raw = documents.collections["Car"]["1"]
        assert "id" not in raw
        assert raw["license_plate"] == "1-ABC-123"
        assert CipherEnvelope.try_parse(raw["vin"]) is not None
        assert car.vin == "WDB1234561A123456"

    def test_store_assigns_id(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        entity_id = store.store(Car(license_plate="1-ABC-123"))
        assert entity_id in documents.collections["Car"]

    def test_load_decrypts(self, store: EntityStore) -> None:
        car = Car(id="1", license_plate="1-ABC-123", vin="WDB1234561A123456", notes=None)
        store.store(car)

        assert store.load(Car, "1") == car

    def test_load_missing(self, store: EntityStore) -> None:
        with pytest.raises(ValueError):
            store.load(Car, "missing")

    def test_restore_does_not_double_encrypt(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        store.store(Car(id="1", vin="WDB1234561A123456"))
        first = documents.collections["Car"]["1"]["vin"]

        # A raw, still encrypted copy stored again, e.g. by a retrying caller
        raw = Car.model_validate({**documents.collections["Car"]["1"], "id": "1"})
        store.store(raw)

        assert documents.collections["Car"]["1"]["vin"] == first
        assert store.load(Car, "1").vin == "WDB1234561A123456"

    def test_unmarked_types_pass_through(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        store.store(Note(id="1", title="hello", body="world"))

        assert documents.collections["Note"]["1"] == {"title": "hello", "body": "world"}
        assert store.load(Note, "1") == Note(id="1", title="hello", body="world")

    def test_load_with_tampered_field(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        store.store(Car(id="1", vin="WDB1234561A123456"))
        envelope = CipherEnvelope.parse(documents.collections["Car"]["1"]["vin"])
        documents.collections["Car"]["1"]["vin"] = CipherEnvelope(
            envelope.algorithm_id, envelope.nonce, envelope.ciphertext, bytes(16)
        ).serialize()

        with pytest.raises(FieldDecryptionError) as exc_info:
            store.load(Car, "1")
        assert exc_info.value.entity_id == "1"

    def test_query(self, store: EntityStore) -> None:
        store.store(Car(id="1", license_plate="1-ABC-123", vin="A"))
        store.store(Car(id="2", license_plate="2-XYZ-999", vin="B"))

        results = store.query(Car, {"license_plate": "2-XYZ-999"})

        assert [(c.id, c.vin) for c in results] == [("2", "B")]

    def test_query_on_encrypted_field_is_rejected(self, store: EntityStore) -> None:
        with pytest.raises(ValueError):
            store.query(Car, {"vin": "A"})

    def test_delete(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        store.store(Note(id="1"))
        store.delete(Note, "1")
        assert documents.collections["Note"] == {}

    def test_store_requires_model(self, store: EntityStore) -> None:
        with pytest.raises(TypeError):
            store.store({"id": "1"})


class TestCandidateProvider:
    """Tests for the store as a source of reference candidates."""

    def test_fetch_registered_type(self, store: EntityStore, registry: MetadataRegistry) -> None:
        registry.describe(Company)
        store.store(Company(id="companies/1", name="Acme"))

        (company,) = store.fetch("Company", {"companies/1", "companies/2"})

        assert company == Company(id="companies/1", name="Acme")

    def test_fetch_unregistered_type_returns_documents(self, store: EntityStore, documents: InMemoryDocuments) -> None:
        documents.insert("CarStatus", "new", {"name": "New"})

        assert store.fetch("CarStatus", {"new"}) == [{"name": "New", "id": "new"}]

    def test_resolve_through_store(self, store: EntityStore, documents: InMemoryDocuments,
                                   registry: MetadataRegistry) -> None:
        registry.describe(Company)
        store.store(Company(id="companies/1", name="Acme", breadcrumb="Group > Acme"))
        documents.insert("CarStatus", "new", {"name": "New"})
        cars = [Car(id=str(i), owner="companies/1", status="new") for i in range(100)]

        candidates = prefetch_candidates(registry, cars, store)
        rows = ReferenceResolver(registry, not_selected_label="-").project(cars, candidates)

        assert sorted(c for c, _ in documents.get_many_calls) == ["CarStatus", "Company"]
        assert rows[0] == {"owner_label": "Group > Acme", "status_label": "New"}
        assert len(rows) == 100


def test_store_uses_interceptor_registry(interceptor: FieldEncryptionInterceptor) -> None:
    store = EntityStore(MagicMock(), interceptor)
    assert store.registry is interceptor.registry


class TestUnseenTargetTypes:
    """Tests for resolving targets the resolving process never described."""

    @pytest.fixture(autouse=True)
    def stored_company(self, documents: InMemoryDocuments, key: bytes) -> None:
        writer = EntityStore(documents, FieldEncryptionInterceptor(MetadataRegistry(), KeyRing(StaticKeyProvider(key))))
        writer.store(SecretCompany(id="companies/1", name="Acme"))

    def _store(self, documents: InMemoryDocuments, key: bytes, **kwargs) -> EntityStore:
        interceptor = FieldEncryptionInterceptor(MetadataRegistry(), KeyRing(StaticKeyProvider(key)))
        return EntityStore(documents, interceptor, **kwargs)

    def _labels(self, store: EntityStore, entities: list[object]) -> list[str]:
        candidates = prefetch_candidates(store.registry, entities, store)
        refs = ReferenceResolver(store.registry, not_selected_label="-").resolve(entities, candidates)
        return [ref.display_label for ref in refs]

    def test_target_types_registered_up_front(self, documents: InMemoryDocuments, key: bytes) -> None:
        store = self._store(documents, key, entity_types=[SecretCompany])

        assert self._labels(store, [Lease(id="leases/1", lessee="companies/1")]) == ["Acme"]

    def test_target_given_as_class(self, documents: InMemoryDocuments, key: bytes) -> None:
        store = self._store(documents, key)

        assert self._labels(store, [Sublease(id="leases/1", lessee="companies/1")]) == ["Acme"]

    def test_unregistered_encrypted_target_fails(self, documents: InMemoryDocuments, key: bytes) -> None:
        store = self._store(documents, key)

        with pytest.raises(FieldDecryptionError) as exc_info:
            self._labels(store, [Lease(id="leases/1", lessee="companies/1")])

        assert exc_info.value.entity_id == "companies/1"
        assert exc_info.value.field_name == "name"

    def test_invalid_entity_types_are_rejected(self, documents: InMemoryDocuments, key: bytes) -> None:
        with pytest.raises(TypeError):
            self._store(documents, key, entity_types=[BadlyEncrypted])
