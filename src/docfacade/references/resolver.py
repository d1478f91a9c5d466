"""
Lookup reference resolution.

Turns identifier fields marked LookupReference into display labels, for
index projections and for presentation. The resolver only works on
candidates the caller already fetched; it never loads anything itself and
never raises for a missing target.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from ..config import DocFacadeConfig
from ..metadata import FieldSpec, MetadataRegistry, read_field


logger = logging.getLogger(__name__)


class ReferenceOutcome(str, Enum):
    """How a reference field was resolved."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    # No candidate set was supplied for the target type; labelled like NOT_FOUND
    NO_CANDIDATES = "no_candidates"
    NOT_SELECTED = "not_selected"


@dataclass(frozen=True)
class ResolvedReference:
    """The display value of one reference field of one entity."""

    source_entity_id: str | None
    field_name: str
    display_label: str
    target_entity_id: str | None
    outcome: ReferenceOutcome


Candidates = Mapping[str | type, Iterable[object]]


def _present(value: object) -> bool:
    return value is not None and value != ""


def _type_key(key: str | type) -> str:
    return key.__name__ if isinstance(key, type) else key


class _CandidateIndex:
    """Candidate sets keyed by target type, each indexed by id on first use."""

    def __init__(self, candidates: Candidates) -> None:
        self._sets = {_type_key(key): targets for key, targets in candidates.items()}
        self._indexes: dict[str, dict[object, object]] = {}

    def get(self, target_type: str) -> dict[object, object] | None:
        index = self._indexes.get(target_type)
        if index is None:
            targets = self._sets.get(target_type)
            if targets is None:
                return None
            index = {}
            for target in targets:
                target_id = read_field(target, "id")
                if _present(target_id):
                    index.setdefault(target_id, target)
            self._indexes[target_type] = index
        return index


class ReferenceResolver:
    """
    Resolves LookupReference fields against pre-fetched candidates.

    The label of a found target is its breadcrumb, else its name, else the
    raw identifier. An empty reference gets the "not selected" label.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        not_selected_label: str | None = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            registry: Registry used to find the LookupReference fields of a type
            not_selected_label: Label for empty references, from the
                configuration when not given
        """
        self.registry = registry
        if not_selected_label is None:
            not_selected_label = DocFacadeConfig.get_not_selected_label()
        self.not_selected_label = not_selected_label

    def resolve(
        self,
        entities: Iterable[object],
        candidates: Candidates | None = None,
    ) -> list[ResolvedReference]:
        """
        Resolve every reference field of every entity.

        Args:
            entities: The entities whose references should be resolved
            candidates: Target entities per target type (name or class)

        Returns:
            One ResolvedReference per entity and reference field, in entity
            order and field declaration order
        """
        index = _CandidateIndex(candidates or {})
        results: list[ResolvedReference] = []
        for entity in entities:
            results.extend(self._resolve_entity(entity, index))
        return results

    def project(
        self,
        entities: Iterable[object],
        candidates: Candidates | None = None,
        suffix: str = "_label",
    ) -> list[dict[str, str]]:
        """
        Compute the label columns of an index projection.

        Args:
            entities: The entities being projected
            candidates: Target entities per target type
            suffix: Appended to each reference field name to name its column

        Returns:
            One mapping per entity from ``<field><suffix>`` to the label
        """
        index = _CandidateIndex(candidates or {})
        return [
            {f"{ref.field_name}{suffix}": ref.display_label for ref in self._resolve_entity(entity, index)}
            for entity in entities
        ]

    def label_for(
        self,
        entity: object,
        field_name: str,
        candidates: Candidates | None = None,
    ) -> str:
        """
        Get the display label of a single reference field.

        Raises:
            KeyError: If the field is not a LookupReference field
        """
        descriptor = self.registry.describe(type(entity))
        for spec in descriptor.reference_fields:
            if spec.field_name == field_name:
                return self._resolve_field(entity, spec, _CandidateIndex(candidates or {})).display_label
        raise KeyError(f"{descriptor.type_name}.{field_name} is not a lookup reference")

    def _resolve_entity(self, entity: object, index: _CandidateIndex) -> Sequence[ResolvedReference]:
        descriptor = self.registry.describe(type(entity))
        return [self._resolve_field(entity, spec, index) for spec in descriptor.reference_fields]

    def _resolve_field(self, entity: object, spec: FieldSpec, index: _CandidateIndex) -> ResolvedReference:
        entity_id = read_field(entity, "id")
        source_id = None if entity_id is None else str(entity_id)

        raw = read_field(entity, spec.field_name)
        if not _present(raw):
            return ResolvedReference(
                source_id, spec.field_name, self.not_selected_label, None, ReferenceOutcome.NOT_SELECTED
            )

        target_id = str(raw)
        targets = index.get(spec.lookup_target_type)
        if targets is None:
            logger.debug(
                "No candidates supplied for %s, labelling %s.%s with its id",
                spec.lookup_target_type,
                spec.owner_type,
                spec.field_name,
            )
            return ResolvedReference(
                source_id, spec.field_name, target_id, target_id, ReferenceOutcome.NO_CANDIDATES
            )

        target = targets.get(raw)
        if target is None:
            return ResolvedReference(
                source_id, spec.field_name, target_id, target_id, ReferenceOutcome.NOT_FOUND
            )

        label = next(
            (
                str(value)
                for value in (read_field(target, "breadcrumb"), read_field(target, "name"))
                if _present(value)
            ),
            target_id,
        )
        return ResolvedReference(source_id, spec.field_name, label, target_id, ReferenceOutcome.RESOLVED)
