"""
ArangoDB client for Doc Facade.

This module provides a document client on top of the python-arango driver.
Each entity type is kept in its own collection, named after the type, and
the entity id is the document ``_key``. Transient driver failures are
retried with exponential backoff before they surface as StoreError.
"""

import logging
from collections.abc import Collection, Mapping

from arango import ArangoClient
from arango.exceptions import ArangoError, ArangoServerError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import DocFacadeConfig
from ..errors import StoreError


logger = logging.getLogger(__name__)

_SYSTEM_ATTRIBUTES = ("_key", "_id", "_rev")


def is_transient(error: BaseException) -> bool:
    """True for failures worth retrying: lost connections and 5xx responses."""
    if isinstance(error, OSError):
        return True
    if isinstance(error, ArangoServerError):
        return error.http_code is not None and error.http_code >= 500
    return False


def _to_entity_document(document: Mapping[str, object]) -> dict[str, object]:
    """Turn a stored document into entity data, with ``_key`` as ``id``."""
    data = {k: v for k, v in document.items() if k not in _SYSTEM_ATTRIBUTES}
    data["id"] = document["_key"]
    return data


class ArangoDocumentClient:
    """
    ArangoDB document client.

    Provides insert, get, query and delete on per-type collections, which
    are created the first time they are used.
    """

    def __init__(self, database=None, retry_attempts: int | None = None) -> None:
        """
        Initialize the client.

        Args:
            database: An existing python-arango database handle; a new
                connection is made from the configuration when omitted
            retry_attempts: Attempts per operation, from the configuration
                when omitted
        """
        self.client: ArangoClient | None = None
        if database is None:
            database = self._connect()
        self.db = database

        attempts = retry_attempts or DocFacadeConfig.get_retry_attempts()
        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )
        self._known_collections: set[str] = set()

    def _connect(self):
        credentials = DocFacadeConfig.get_database_credentials()
        self.client = ArangoClient(hosts=DocFacadeConfig.get_database_url())
        try:
            database = self.client.db(
                name=credentials["database"],
                username=credentials["username"],
                password=credentials["password"],
                verify=True,
            )
        except (ArangoError, OSError) as e:
            logger.error("Failed to connect to ArangoDB: %s", e)
            raise StoreError(f"Failed to connect to ArangoDB: {e}") from e
        return database

    def _call(self, action: str, operation, *args, **kwargs):
        """Run a driver operation with retries, mapping failures to StoreError."""
        try:
            return self._retrying(operation, *args, **kwargs)
        except (ArangoError, OSError) as e:
            logger.error("Database error during %s: %s", action, e)
            raise StoreError(f"Database error during {action}: {e}") from e

    def _collection(self, name: str):
        if name not in self._known_collections:
            if not self._call("collection lookup", self.db.has_collection, name):
                logger.info("Creating collection: %s", name)
                self._call("collection create", self.db.create_collection, name)
            self._known_collections.add(name)
        return self.db.collection(name)

    def insert(self, collection: str, key: str, document: Mapping[str, object]) -> str:
        """
        Insert or overwrite a document.

        Args:
            collection: Collection name
            key: Document key (the entity id)
            document: Document body, without system attributes

        Returns:
            The document key
        """
        body = {**document, "_key": key}
        self._call("insert", self._collection(collection).insert, body, overwrite=True)
        return key

    def get(self, collection: str, key: str) -> dict[str, object] | None:
        """Get one document by key, or None if it does not exist."""
        document = self._call("get", self._collection(collection).get, key)
        return None if document is None else _to_entity_document(document)

    def get_many(self, collection: str, keys: Collection[str]) -> list[dict[str, object]]:
        """Get all existing documents for a set of keys in a single request."""
        if not keys:
            return []
        documents = self._call("get_many", self._collection(collection).get_many, list(keys))
        return [_to_entity_document(document) for document in documents]

    def query(
        self,
        collection: str,
        filters: Mapping[str, object],
        limit: int = 50,
    ) -> list[dict[str, object]]:
        """
        Query documents by attribute equality.

        Args:
            collection: Collection name
            filters: Attribute name to required value
            limit: Maximum number of results

        Returns:
            List of matching documents
        """
        self._collection(collection)
        bind_vars: dict[str, object] = {"@collection": collection, "limit": limit}
        conditions = []
        for i, (attribute, value) in enumerate(filters.items()):
            conditions.append(f"doc[@attr{i}] == @value{i}")
            bind_vars[f"attr{i}"] = attribute
            bind_vars[f"value{i}"] = value

        filter_clause = f"FILTER {' AND '.join(conditions)}" if conditions else ""
        aql = f"""
        FOR doc IN @@collection
        {filter_clause}
        LIMIT @limit
        RETURN doc
        """

        cursor = self._call("query", self.db.aql.execute, aql, bind_vars=bind_vars, batch_size=1000)
        return [_to_entity_document(document) for document in cursor]

    def delete(self, collection: str, key: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        self._call("delete", self._collection(collection).delete, key, ignore_missing=True)

    def close(self) -> None:
        """Close the database connection."""
        if self.client is not None:
            self.client.close()
