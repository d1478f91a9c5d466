"""
Tests for the ReferenceResolver.
"""

import os

import pytest

from docfacade.config import DocFacadeConfig
from docfacade.metadata import MetadataRegistry
from docfacade.references import ReferenceOutcome, ReferenceResolver, ResolvedReference

from sample_entities import Car, Company, Note, Person


@pytest.fixture
def resolver(registry: MetadataRegistry) -> ReferenceResolver:
    return ReferenceResolver(registry, not_selected_label="(not selected)")


def _owner(resolver: ReferenceResolver, car: Car, candidates) -> ResolvedReference:
    return next(ref for ref in resolver.resolve([car], candidates) if ref.field_name == "owner")


class TestLabelFallback:
    """Tests for the breadcrumb, name, raw id fallback order."""

    def test_breadcrumb_wins(self, resolver: ReferenceResolver) -> None:
        company = Company(id="companies/1", name="Acme", breadcrumb="Holding > Acme")
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), {"Company": [company]})

        assert ref == ResolvedReference(
            "cars/1", "owner", "Holding > Acme", "companies/1", ReferenceOutcome.RESOLVED
        )

    def test_name_when_no_breadcrumb(self, resolver: ReferenceResolver) -> None:
        company = Company(id="companies/1", name="Acme")
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), {"Company": [company]})

        assert ref.display_label == "Acme"
        assert ref.outcome is ReferenceOutcome.RESOLVED

    def test_raw_id_when_neither(self, resolver: ReferenceResolver) -> None:
        company = Company(id="companies/1")
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), {"Company": [company]})

        assert ref.display_label == "companies/1"
        assert ref.outcome is ReferenceOutcome.RESOLVED

    def test_empty_breadcrumb_falls_back_to_name(self, resolver: ReferenceResolver) -> None:
        company = Company(id="companies/1", name="Acme", breadcrumb="")
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), {"Company": [company]})

        assert ref.display_label == "Acme"

    @pytest.mark.parametrize("owner", [None, ""])
    def test_not_selected(self, resolver: ReferenceResolver, owner) -> None:
        ref = _owner(resolver, Car(id="cars/1", owner=owner), {"Company": [Company(id="companies/1")]})

        assert ref == ResolvedReference("cars/1", "owner", "(not selected)", None, ReferenceOutcome.NOT_SELECTED)

    def test_mapping_candidates(self, resolver: ReferenceResolver) -> None:
        candidates = {"Company": [{"id": "companies/1", "name": "Acme"}]}
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), candidates)

        assert ref.display_label == "Acme"

    def test_candidates_keyed_by_class(self, resolver: ReferenceResolver) -> None:
        candidates = {Company: [Company(id="companies/1", name="Acme")]}
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), candidates)

        assert ref.display_label == "Acme"


class TestMissingTargets:
    """Tests for ids that cannot be matched to a candidate."""

    def test_id_not_in_candidates(self, resolver: ReferenceResolver) -> None:
        ref = _owner(resolver, Car(id="cars/1", owner="companies/9"), {"Company": [Company(id="companies/1")]})

        assert ref == ResolvedReference(
            "cars/1", "owner", "companies/9", "companies/9", ReferenceOutcome.NOT_FOUND
        )

    def test_no_candidate_set_for_target_type(self, resolver: ReferenceResolver) -> None:
        # Unconfirmed behaviour: a missing candidate set is labelled like a
        # missing target, but reported with its own outcome.
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), {})

        assert ref.display_label == "companies/1"
        assert ref.target_entity_id == "companies/1"
        assert ref.outcome is ReferenceOutcome.NO_CANDIDATES

    def test_no_candidates_at_all(self, resolver: ReferenceResolver) -> None:
        refs = resolver.resolve([Car(id="cars/1", owner="companies/1", status="sold")])

        assert [(r.field_name, r.display_label, r.outcome) for r in refs] == [
            ("owner", "companies/1", ReferenceOutcome.NO_CANDIDATES),
            ("status", "sold", ReferenceOutcome.NO_CANDIDATES),
        ]

    def test_exact_id_match_only(self, resolver: ReferenceResolver) -> None:
        candidates = {"Company": [Company(id="Companies/1", name="Acme"), Company(id="companies/10", name="Other")]}
        ref = _owner(resolver, Car(id="cars/1", owner="companies/1"), candidates)

        assert ref.outcome is ReferenceOutcome.NOT_FOUND


class TestResolve:
    """Tests for resolving batches of entities."""

    def test_order_follows_entities_then_fields(self, resolver: ReferenceResolver) -> None:
        cars = [
            Car(id="cars/1", owner="companies/1", status="new"),
            Car(id="cars/2", owner=None, status="sold"),
        ]
        candidates = {
            "Company": [Company(id="companies/1", name="Acme")],
            "CarStatus": [{"id": "new", "name": "New"}, {"id": "sold", "name": "Sold"}],
        }

        refs = resolver.resolve(cars, candidates)

        assert [(r.source_entity_id, r.field_name, r.display_label) for r in refs] == [
            ("cars/1", "owner", "Acme"),
            ("cars/1", "status", "New"),
            ("cars/2", "owner", "(not selected)"),
            ("cars/2", "status", "Sold"),
        ]

    def test_mixed_entity_types(self, resolver: ReferenceResolver) -> None:
        candidates = {"Company": [Company(id="companies/1", name="Acme")]}
        refs = resolver.resolve(
            [Person(id="people/1", company="companies/1"), Note(id="notes/1")],
            candidates,
        )

        assert [(r.source_entity_id, r.display_label) for r in refs] == [("people/1", "Acme")]

    def test_candidates_are_iterated_once(self, resolver: ReferenceResolver) -> None:
        iterations = []

        class CountingCandidates:
            def __iter__(self):
                iterations.append(1)
                return iter([Company(id=f"companies/{i}", name=f"Company {i}") for i in range(100)])

        cars = [Car(id=f"cars/{i}", owner=f"companies/{i}") for i in range(100)]
        refs = resolver.resolve(cars, {"Company": CountingCandidates()})

        assert len(iterations) == 1
        owners = [r for r in refs if r.field_name == "owner"]
        assert [r.display_label for r in owners] == [f"Company {i}" for i in range(100)]

    def test_empty_batch(self, resolver: ReferenceResolver) -> None:
        assert resolver.resolve([], {"Company": []}) == []

    def test_not_selected_label_from_config(self, registry: MetadataRegistry) -> None:
        os.environ["DOCFACADE_NOT_SELECTED_LABEL"] = "Geen"
        DocFacadeConfig.initialize()

        resolver = ReferenceResolver(registry)

        assert resolver.label_for(Car(id="cars/1"), "owner") == "Geen"


class TestProjection:
    """Tests for the projection and single label helpers."""

    def test_project(self, resolver: ReferenceResolver) -> None:
        cars = [Car(id="cars/1", owner="companies/1", status="new"), Car(id="cars/2")]
        candidates = {"Company": [Company(id="companies/1", name="Acme", breadcrumb="Group > Acme")]}

        rows = resolver.project(cars, candidates)

        assert rows == [
            {"owner_label": "Group > Acme", "status_label": "new"},
            {"owner_label": "(not selected)", "status_label": "(not selected)"},
        ]

    def test_project_suffix(self, resolver: ReferenceResolver) -> None:
        rows = resolver.project([Person(id="people/1")], {}, suffix="FullName")
        assert rows == [{"companyFullName": "(not selected)"}]

    def test_label_for(self, resolver: ReferenceResolver) -> None:
        car = Car(id="cars/1", owner="companies/1")
        candidates = {"Company": [Company(id="companies/1", name="Acme")]}

        assert resolver.label_for(car, "owner", candidates) == "Acme"

    def test_label_for_unknown_field(self, resolver: ReferenceResolver) -> None:
        with pytest.raises(KeyError):
            resolver.label_for(Car(id="cars/1"), "license_plate")
