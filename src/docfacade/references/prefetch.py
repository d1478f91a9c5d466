"""
Batched candidate fetching for reference resolution.

Collects the referenced ids of a batch of entities and fetches the targets
with one provider call per target type, so resolving N entities never
costs N fetches.
"""

import logging
from collections.abc import Collection, Iterable, Sequence
from typing import Protocol, runtime_checkable

from ..metadata import MetadataRegistry, read_field


logger = logging.getLogger(__name__)


@runtime_checkable
class CandidateProvider(Protocol):
    """Loads the target entities of one type by id."""

    def fetch(self, target_type: str, ids: Collection[str]) -> Sequence[object]:
        ...


def collect_reference_ids(
    registry: MetadataRegistry,
    entities: Iterable[object],
) -> dict[str, set[str]]:
    """
    Group the ids referenced by a batch of entities by target type.

    Empty references are skipped.

    Returns:
        Mapping from target type name to the set of referenced ids
    """
    wanted: dict[str, set[str]] = {}
    for entity in entities:
        for spec in registry.describe(type(entity)).reference_fields:
            value = read_field(entity, spec.field_name)
            if value is None or value == "":
                continue
            wanted.setdefault(spec.lookup_target_type, set()).add(value)
    return wanted


def prefetch_candidates(
    registry: MetadataRegistry,
    entities: Iterable[object],
    provider: CandidateProvider,
) -> dict[str, Sequence[object]]:
    """
    Fetch every target referenced by a batch of entities.

    Args:
        registry: Registry used to find the reference fields
        entities: The entities about to be resolved
        provider: Source of target entities

    Returns:
        Candidate sets keyed by target type name, ready for ReferenceResolver
    """
    candidates: dict[str, Sequence[object]] = {}
    for target_type, ids in collect_reference_ids(registry, entities).items():
        candidates[target_type] = list(provider.fetch(target_type, ids))
        logger.debug("Fetched %d of %d %s candidate(s)", len(candidates[target_type]), len(ids), target_type)
    return candidates
