"""
Entity models and declarative field markers for Doc Facade.
"""

from .entity import DocumentEntity
from .markers import Encrypted, FieldMarker, LookupReference, replicated, source_module_of

__all__ = [
    "DocumentEntity",
    "Encrypted",
    "FieldMarker",
    "LookupReference",
    "replicated",
    "source_module_of",
]
