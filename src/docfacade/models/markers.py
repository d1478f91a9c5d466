"""
Declarative field markers.

Markers are attached to entity fields through ``typing.Annotated`` metadata
and are read once per type by the metadata registry:

    class Car(DocumentEntity):
        vin: Annotated[str | None, Encrypted()] = None
        owner: Annotated[str | None, LookupReference("Company")] = None
"""

from typing import TypeVar


class FieldMarker:
    """Base class for markers understood by the metadata registry."""

    __slots__ = ()


class Encrypted(FieldMarker):
    """
    Marks a string field for field-level encryption at rest.

    The value is encrypted before the entity is stored and decrypted after
    it is loaded. Only valid on ``str`` or ``str | None`` fields.
    """

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Encrypted)

    def __hash__(self) -> int:
        return hash(Encrypted)

    def __repr__(self) -> str:
        return "Encrypted()"


class LookupReference(FieldMarker):
    """
    Marks an identifier field as a reference to another entity type.

    The target is matched by name, so entity types may reference each
    other regardless of definition order. When given as a class, the
    registry also learns how to load targets of that name.
    """

    __slots__ = ("target_type", "target_class")

    def __init__(self, target_type: str | type) -> None:
        self.target_class = target_type if isinstance(target_type, type) else None
        if self.target_class is not None:
            target_type = self.target_class.__name__
        if not isinstance(target_type, str) or not target_type:
            raise TypeError("LookupReference needs a target type name or class")
        self.target_type = target_type

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LookupReference) and other.target_type == self.target_type

    def __hash__(self) -> int:
        return hash((LookupReference, self.target_type))

    def __repr__(self) -> str:
        return f"LookupReference({self.target_type!r})"


T = TypeVar("T", bound=type)


def replicated(source_module: str):
    """
    Class decorator for entities whose data originates from another module.

    Encrypted fields of such types are encrypted with that module's key
    instead of this module's own key.

    Args:
        source_module: Name of the module that owns the original data
    """
    if not source_module:
        raise ValueError("replicated() needs a source module name")

    def decorate(cls: T) -> T:
        cls.__replicated_from__ = source_module
        return cls

    return decorate


def source_module_of(entity_type: type) -> str | None:
    """Return the module an entity type is replicated from, if any."""
    return getattr(entity_type, "__replicated_from__", None)
