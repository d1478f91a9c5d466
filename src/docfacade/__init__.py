"""
Doc Facade - transparent field encryption and lookup reference resolution.

This package sits between application entities and the document store:
fields marked Encrypted are encrypted on store and decrypted on load, and
identifier fields marked LookupReference are resolved into display labels
for index projections and presentation.
"""

from .config import DocFacadeConfig
from .encryption import (
    CipherEnvelope,
    FieldCipher,
    FieldEncryptionInterceptor,
    KeyRing,
    LegacyPlaintextPolicy,
    StaticKeyProvider,
)
from .errors import (
    AuthenticationFailed,
    ConflictingFieldMarkers,
    DocFacadeError,
    FieldDecryptionError,
    InvalidMarkerTarget,
)
from .metadata import EntityTypeDescriptor, FieldKind, FieldSpec, MetadataRegistry
from .models import DocumentEntity, Encrypted, LookupReference, replicated
from .references import (
    LookupValue,
    ReferenceOutcome,
    ReferenceResolver,
    ResolvedReference,
    lookup_value_candidates,
    prefetch_candidates,
)

__version__ = "0.1.0"

__all__ = [
    "AuthenticationFailed",
    "CipherEnvelope",
    "ConflictingFieldMarkers",
    "DocFacadeConfig",
    "DocFacadeError",
    "DocumentEntity",
    "Encrypted",
    "EntityTypeDescriptor",
    "FieldCipher",
    "FieldDecryptionError",
    "FieldEncryptionInterceptor",
    "FieldKind",
    "FieldSpec",
    "InvalidMarkerTarget",
    "KeyRing",
    "LegacyPlaintextPolicy",
    "LookupReference",
    "LookupValue",
    "MetadataRegistry",
    "ReferenceOutcome",
    "ReferenceResolver",
    "ResolvedReference",
    "StaticKeyProvider",
    "lookup_value_candidates",
    "prefetch_candidates",
    "replicated",
]
