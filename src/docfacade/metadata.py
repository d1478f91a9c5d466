"""
Entity type metadata.

The metadata registry scans an entity type once for Encrypted and
LookupReference markers and caches the result for the process lifetime.
The registry is an explicit object, created once at startup and handed to
the interceptor and the resolver.
"""

import logging
import threading
import types
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, ClassVar, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from .errors import ConflictingFieldMarkers, InvalidMarkerTarget
from .models.markers import Encrypted, FieldMarker, LookupReference, source_module_of


logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    """How a marked field is handled."""

    ENCRYPTED = "encrypted"
    LOOKUP_REFERENCE = "lookup_reference"


@dataclass(frozen=True)
class FieldSpec:
    """A single marked field of an entity type."""

    owner_type: str
    field_name: str
    kind: FieldKind
    # Target entity type name, only for lookup references
    lookup_target_type: str | None = None


@dataclass(frozen=True)
class EntityTypeDescriptor:
    """The marked fields of an entity type, in declaration order."""

    type_name: str
    fields: tuple[FieldSpec, ...] = ()
    # Module the entity is replicated from; selects the encryption key
    source_module: str | None = None

    @property
    def encrypted_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.kind is FieldKind.ENCRYPTED)

    @property
    def reference_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.kind is FieldKind.LOOKUP_REFERENCE)

    @property
    def has_markers(self) -> bool:
        return bool(self.fields)


def _is_string_annotation(annotation: object) -> bool:
    """True for ``str``, ``str | None`` and ``Optional[str]``."""
    if annotation is str:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        return len(args) == 1 and args[0] is str
    return False


def _split_markers(annotation: object) -> tuple[object, list[FieldMarker], bool]:
    """
    Strip ``Annotated`` wrappers from an annotation and collect its markers.

    Markers are found at any depth of ``Annotated`` and union nesting, so
    ``Optional[Annotated[str, Encrypted()]]`` is read like
    ``Annotated[str | None, Encrypted()]``.

    Returns:
        The annotation without markers, the markers found, and whether a
        marker sits inside a container such as ``list[...]``
    """
    origin = get_origin(annotation)

    if origin is Annotated:
        inner, *metadata = get_args(annotation)
        stripped, markers, contained = _split_markers(inner)
        return stripped, [m for m in metadata if isinstance(m, FieldMarker)] + markers, contained

    if origin in (Union, types.UnionType):
        stripped_args = []
        markers: list[FieldMarker] = []
        contained = False
        for arg in get_args(annotation):
            stripped, arg_markers, arg_contained = _split_markers(arg)
            stripped_args.append(stripped)
            markers.extend(arg_markers)
            contained = contained or arg_contained
        return Union[tuple(stripped_args)], markers, contained

    for arg in get_args(annotation):
        _, arg_markers, arg_contained = _split_markers(arg)
        if arg_markers or arg_contained:
            return annotation, [], True
    return annotation, [], False


def _declared_fields(entity_type: type) -> list[tuple[str, object, list[object], bool]]:
    """
    List (name, annotation, markers, contained) for each declared field.

    Pydantic models are read from ``model_fields``; other classes from
    their annotations.
    """
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        fields = []
        for name, info in entity_type.model_fields.items():
            # Pydantic lifts only the outermost Annotated metadata
            annotation, markers, contained = _split_markers(info.annotation)
            lifted = [m for m in info.metadata if isinstance(m, FieldMarker)]
            fields.append((name, annotation, lifted + markers, contained))
        return fields

    fields = []
    hints = get_type_hints(entity_type, include_extras=True)
    for name, hint in hints.items():
        if name.startswith("_") or get_origin(hint) is ClassVar:
            continue
        fields.append((name, *_split_markers(hint)))
    return fields


def read_field(obj: object, name: str) -> object:
    """Read a field from an entity object or a raw document mapping."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class MetadataRegistry:
    """
    Process-wide cache of entity type descriptors.

    Descriptors are built on first use of a type and never change
    afterwards. Concurrent first use of the same type builds the descriptor
    exactly once; other callers wait for it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._descriptors: dict[type, EntityTypeDescriptor] = {}
        self._types_by_name: dict[str, type] = {}

    def describe(self, entity_type: type) -> EntityTypeDescriptor:
        """
        Get the descriptor for an entity type, building it on first use.

        Args:
            entity_type: The entity class

        Returns:
            The cached descriptor

        Raises:
            ConflictingFieldMarkers: If a field carries both markers
            InvalidMarkerTarget: If Encrypted is placed on a non-string field
        """
        descriptor = self._descriptors.get(entity_type)
        if descriptor is not None:
            return descriptor

        with self._lock:
            descriptor = self._descriptors.get(entity_type)
            if descriptor is None:
                descriptor = self._build(entity_type)
                self._descriptors[entity_type] = descriptor
                self._types_by_name.setdefault(entity_type.__name__, entity_type)
                logger.debug(
                    "Registered %s with %d marked field(s)",
                    descriptor.type_name,
                    len(descriptor.fields),
                )
            return descriptor

    def _build(self, entity_type: type) -> EntityTypeDescriptor:
        type_name = entity_type.__name__
        specs: list[FieldSpec] = []
        conflicting: list[str] = []
        invalid: list[str] = []
        target_classes: dict[str, type] = {}

        for name, annotation, markers, contained in _declared_fields(entity_type):
            encrypted = any(isinstance(m, Encrypted) for m in markers)
            references = [m for m in markers if isinstance(m, LookupReference)]

            if encrypted and references:
                conflicting.append(name)
                continue
            if contained:
                invalid.append(name)
                continue

            if encrypted:
                if not _is_string_annotation(annotation):
                    invalid.append(name)
                    continue
                specs.append(FieldSpec(type_name, name, FieldKind.ENCRYPTED))
            elif references:
                # The last marker wins when a field is annotated more than once
                specs.append(
                    FieldSpec(
                        type_name,
                        name,
                        FieldKind.LOOKUP_REFERENCE,
                        lookup_target_type=references[-1].target_type,
                    )
                )
                if references[-1].target_class is not None:
                    target_classes[references[-1].target_type] = references[-1].target_class

        if conflicting:
            raise ConflictingFieldMarkers(type_name, conflicting)
        if invalid:
            raise InvalidMarkerTarget(type_name, invalid)

        # Targets given as classes can be looked up by name from now on
        for target_name, target_class in target_classes.items():
            self._types_by_name.setdefault(target_name, target_class)

        return EntityTypeDescriptor(
            type_name=type_name,
            fields=tuple(specs),
            source_module=source_module_of(entity_type),
        )

    def register_all(self, entity_types: Iterable[type]) -> list[EntityTypeDescriptor]:
        """
        Describe a set of entity types up front.

        Meant to run at startup so marker errors surface before any store
        operation. Every type is checked; all violations are logged and the
        first one is raised.

        Args:
            entity_types: The entity classes to register

        Returns:
            The descriptors, in the order the types were given
        """
        descriptors = []
        errors: list[ConflictingFieldMarkers | InvalidMarkerTarget] = []
        for entity_type in entity_types:
            try:
                descriptors.append(self.describe(entity_type))
            except (ConflictingFieldMarkers, InvalidMarkerTarget) as e:
                logger.error("Invalid field markers: %s", e)
                errors.append(e)
        if errors:
            raise errors[0]
        return descriptors

    def is_registered(self, entity_type: type) -> bool:
        return entity_type in self._descriptors

    def lookup(self, type_name: str) -> type | None:
        """Resolve a type name used by a LookupReference to a registered type."""
        return self._types_by_name.get(type_name)

    def clear(self) -> None:
        """Drop all cached descriptors."""
        with self._lock:
            self._descriptors.clear()
            self._types_by_name.clear()
