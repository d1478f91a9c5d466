"""
Lookup reference resolution for Doc Facade.
"""

from .lookup_values import LookupValue, lookup_value_candidates
from .prefetch import CandidateProvider, collect_reference_ids, prefetch_candidates
from .resolver import ReferenceOutcome, ReferenceResolver, ResolvedReference

__all__ = [
    "CandidateProvider",
    "LookupValue",
    "ReferenceOutcome",
    "ReferenceResolver",
    "ResolvedReference",
    "collect_reference_ids",
    "lookup_value_candidates",
    "prefetch_candidates",
]
