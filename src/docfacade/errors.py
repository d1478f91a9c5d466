"""
Exception types for Doc Facade.

Registration errors (ConflictingFieldMarkers, InvalidMarkerTarget) are raised
while an entity type is described and abort its registration. Decryption
errors are raised on load and are never retried.
"""


class DocFacadeError(Exception):
    """Base class for all Doc Facade errors."""


class ConfigurationError(DocFacadeError, ValueError):
    """A configuration value or key is unusable."""


class ConflictingFieldMarkers(DocFacadeError, TypeError):
    """A field carries both the Encrypted and the LookupReference marker."""

    def __init__(self, owner_type: str, field_names: list[str]) -> None:
        self.owner_type = owner_type
        self.field_names = list(field_names)
        super().__init__(
            f"{owner_type}: fields {', '.join(self.field_names)} carry both "
            "Encrypted and LookupReference markers"
        )


class InvalidMarkerTarget(DocFacadeError, TypeError):
    """
    A marker was placed where it cannot apply: Encrypted on a field that is
    not a string, or any marker nested inside a container type.
    """

    def __init__(self, owner_type: str, field_names: list[str]) -> None:
        self.owner_type = owner_type
        self.field_names = list(field_names)
        super().__init__(
            f"{owner_type}: Encrypted can only be applied to string fields and "
            f"markers cannot be nested in containers, invalid usage on {', '.join(self.field_names)}"
        )


class EnvelopeFormatError(DocFacadeError, ValueError):
    """A value is not a well-formed cipher envelope."""


class AuthenticationFailed(DocFacadeError):
    """Authenticated decryption failed: wrong key or tampered envelope."""


class MissingEncryptionKey(DocFacadeError):
    """No key is available for an entity type that has encrypted fields."""


class FieldDecryptionError(DocFacadeError):
    """
    A stored field could not be turned back into plaintext.

    Carries the entity id and field name. The underlying error, if any,
    is chained as ``__cause__``.
    """

    def __init__(self, entity_id: str | None, field_name: str, reason: str) -> None:
        self.entity_id = entity_id
        self.field_name = field_name
        self.reason = reason
        super().__init__(
            f"Cannot decrypt field '{field_name}' of entity {entity_id!r}: {reason}"
        )


class StoreError(DocFacadeError):
    """The document store failed after all retry attempts."""
