"""
Database integration for Doc Facade.

This module provides the document store client, with current support for
ArangoDB.
"""

from .arangodb import ArangoDocumentClient

__all__ = ["ArangoDocumentClient"]
