from __future__ import annotations

import pytest

from autoresafety.catalog import COLLECTION_SPECS, Collection, CollectionKind, EntityCatalog
from autoresafety.models import (
    ControllerConstraint,
    FormValidationError,
    Objective,
    Priority,
    SafetyRequirement,
    StepOneScope,
)


def _hazards() -> Collection:
    return Collection(COLLECTION_SPECS[CollectionKind.HAZARDS])


def test_add_assigns_ids_and_inserts_most_recent_first() -> None:
    hazards = _hazards()
    first = hazards.add({"code": "H1", "description": "Overdose delivered", "linked_accidents": "A1"})
    second = hazards.add({"code": "H2", "description": "Underdose delivered", "linked_accidents": "A1, A2"})

    assert (first.id, second.id) == (1, 2)
    assert [record.code for record in hazards.list()] == ["H2", "H1"]
    assert second.linked_accidents == ["A1", "A2"]


def test_add_rejects_invalid_record_without_mutation() -> None:
    objectives = Collection(COLLECTION_SPECS[CollectionKind.OBJECTIVES])

    with pytest.raises(FormValidationError) as excinfo:
        objectives.add({"focus": "abc"})

    assert "focus" in excinfo.value.fields
    assert len(objectives) == 0
    assert objectives.sequencer.current == 0


def test_add_remove_sequence_tracks_length() -> None:
    hazards = _hazards()
    ids = [hazards.add({"description": f"hazard {index}"}).id for index in range(5)]

    assert hazards.remove(ids[1]) is True
    assert hazards.remove(ids[3]) is True
    assert hazards.remove(999) is False
    assert hazards.remove(ids[1]) is False
    assert len(hazards) == 3
    assert [record.id for record in hazards] == [ids[4], ids[2], ids[0]]


def test_update_merges_patch_and_ignores_unknown_id() -> None:
    hazards = _hazards()
    created = hazards.add({"code": "H1", "description": "Overdose delivered"})

    updated = hazards.update(created.id, {"linked_accidents": "A1, A2", "id": 77})

    assert updated is not None
    assert updated.id == created.id
    assert updated.description == "Overdose delivered"
    assert hazards.get(created.id).linked_accidents == ["A1", "A2"]
    assert hazards.update(404, {"description": "missing"}) is None
    assert len(hazards) == 1


def test_update_with_invalid_patch_keeps_previous_record() -> None:
    objectives = Collection(COLLECTION_SPECS[CollectionKind.OBJECTIVES])
    created = objectives.add({"focus": "Demonstrate dosing limits"})

    with pytest.raises(FormValidationError):
        objectives.update(created.id, {"focus": "x"})

    assert objectives.get(created.id).focus == "Demonstrate dosing limits"


def test_replace_all_resets_sequencer_to_max_id() -> None:
    hazards = _hazards()
    for index in range(3):
        hazards.add({"description": f"hazard {index}"})

    hazards.replace_all([{"id": 9, "description": "loaded"}, {"id": 4, "description": "loaded too"}])
    assert hazards.sequencer.next() == 10

    hazards.replace_all([])
    assert hazards.sequencer.next() == 1


def test_seeded_catalog_counters_continue_after_seed_content() -> None:
    catalog = EntityCatalog.seeded()

    assert catalog.collection(CollectionKind.HAZARDS).add({"description": "new"}).id == 3
    assert catalog.collection(CollectionKind.RESPONSIBILITIES).sequencer.peek() == 8
    assert catalog.collection(CollectionKind.LOSS_SCENARIOS).sequencer.peek() == 34
    assert catalog.collection(CollectionKind.SAFETY_REQUIREMENTS).sequencer.peek() == 504


def test_collections_are_not_shared_between_catalogs() -> None:
    left = EntityCatalog.empty()
    right = EntityCatalog.empty()

    left.collection("accidents").add({"code": "A1", "description": "Loss of life"})

    assert len(right.collection("accidents")) == 0


def test_suggest_code_follows_collection_convention() -> None:
    empty = EntityCatalog.empty()
    seeded = EntityCatalog.seeded()

    assert empty.suggest_code(CollectionKind.HAZARDS) == "H1"
    assert seeded.suggest_code(CollectionKind.HAZARDS) == "H3"
    assert seeded.suggest_code(CollectionKind.SAFETY_CONSTRAINTS) == "SC-03"
    assert seeded.suggest_code(CollectionKind.LOSS_SCENARIOS) == "LS-34"
    with pytest.raises(ValueError):
        empty.suggest_code(CollectionKind.ACTORS)


def test_reassign_code_rewrites_inbound_references() -> None:
    catalog = EntityCatalog.seeded()
    accidents = catalog.collection(CollectionKind.ACCIDENTS)
    a1 = accidents.find_by_code("A1")

    rewritten = catalog.reassign_code(CollectionKind.ACCIDENTS, a1.id, "A10")

    assert rewritten == 1
    assert accidents.get(a1.id).code == "A10"
    hazards = catalog.collection(CollectionKind.HAZARDS)
    assert hazards.find_by_code("H1").linked_accidents == ["A10", "A2"]
    assert hazards.find_by_code("H2").linked_accidents == ["A2"]


def test_reassign_code_rejects_blank_and_duplicate_codes() -> None:
    catalog = EntityCatalog.seeded()
    h1 = catalog.collection(CollectionKind.HAZARDS).find_by_code("H1")

    with pytest.raises(ValueError, match="non-empty"):
        catalog.reassign_code(CollectionKind.HAZARDS, h1.id, "  ")
    with pytest.raises(ValueError, match="already used"):
        catalog.reassign_code(CollectionKind.HAZARDS, h1.id, "H2")
    assert catalog.reassign_code(CollectionKind.HAZARDS, h1.id, "H1") == 0
    assert catalog.reassign_code(CollectionKind.HAZARDS, 999, "H9") == 0


def test_renumber_applies_all_renames_at_once() -> None:
    catalog = EntityCatalog.empty()
    hazards = catalog.collection(CollectionKind.HAZARDS)
    hazards.add({"code": "H2", "description": "first"})
    hazards.add({"code": "H1", "description": "second"})
    constraints = catalog.collection(CollectionKind.SAFETY_CONSTRAINTS)
    constraint = constraints.add({"code": "SC-01", "statement": "Never overdose", "linked_hazards": "H1, H2"})

    mapping = catalog.renumber(CollectionKind.HAZARDS)

    assert mapping == {"H2": "H1", "H1": "H2"}
    assert [record.code for record in hazards] == ["H2", "H1"]
    assert constraints.get(constraint.id).linked_hazards == ["H2", "H1"]


def test_snapshot_round_trip_preserves_fingerprint() -> None:
    seeded = EntityCatalog.seeded()
    scope = seeded.to_scope(id=5, last_updated_by="admin")

    restored = EntityCatalog.empty()
    restored.load_scope(StepOneScope.model_validate(scope.to_payload()))

    assert restored.fingerprint() == seeded.fingerprint()
    restored.collection(CollectionKind.ACCIDENTS).add({"code": "A3", "description": "Device loss"})
    assert restored.fingerprint() != seeded.fingerprint()


def test_clear_empties_every_collection() -> None:
    catalog = EntityCatalog.seeded()
    catalog.clear()

    assert all(len(collection) == 0 for collection in catalog)
    assert catalog.collection(CollectionKind.HAZARDS).sequencer.next() == 1


def test_wire_payloads_use_camel_case_and_legacy_aliases() -> None:
    constraint = ControllerConstraint.model_validate(
        {"ucaRef": "UCA-01, UCA-02", "constraint": "Pump must stop on occlusion alarm", "status": "Approved"}
    )
    requirement = SafetyRequirement.model_validate({"title": "Dual check", "linkedScenario": 31})

    assert constraint.linked_ucas == ["UCA-01", "UCA-02"]
    assert constraint.to_payload()["linkedUcas"] == ["UCA-01", "UCA-02"]
    assert constraint.to_payload()["enforcementMechanism"] == ""
    assert requirement.linked_scenarios == ["31"]
    assert requirement.to_payload()["linkedScenarios"] == ["31"]


def test_unknown_enum_values_fall_back_to_defaults() -> None:
    objective = Objective.model_validate({"focus": "Bound bolus volume", "priority": "urgent"})
    assert objective.priority is Priority.MEDIUM


def test_scope_tolerates_missing_and_null_fields() -> None:
    scope = StepOneScope.model_validate(
        {"id": 3, "generalSummary": None, "hazards": None, "objectives": ["one", "two"]}
    )

    assert scope.general_summary.analysis_purpose == ""
    assert scope.hazards == []
    assert scope.objectives == "one\ntwo"


def test_replace_all_keeps_stored_records_that_fail_entry_rules() -> None:
    constraints = Collection(COLLECTION_SPECS[CollectionKind.CONTROLLER_CONSTRAINTS])

    constraints.replace_all([{"id": 3, "constraint": "Stop"}, {"id": 1}])

    assert [record.constraint for record in constraints] == ["Stop", ""]
    with pytest.raises(FormValidationError) as excinfo:
        constraints.update(3, {"enforcement_mechanism": "Watchdog"})
    assert excinfo.value.fields == ["constraint"]


def test_scope_drops_non_object_entries() -> None:
    scope = StepOneScope.model_validate({"accidents": ["junk", {"id": 1, "code": "A1", "description": None}]})

    assert [(record.code, record.description) for record in scope.accidents] == [("A1", "")]


def test_list_entries_with_commas_survive_a_reload() -> None:
    catalog = EntityCatalog.empty()
    catalog.collection(CollectionKind.LOSS_SCENARIOS).replace_all(
        [{"id": 1, "outcome": "Overdose", "mitigations": ["Alarm, then stop", "Dual sign-off"]}]
    )

    restored = EntityCatalog.empty()
    restored.load_scope(StepOneScope.model_validate(catalog.to_scope().to_payload()))

    scenario = restored.collection(CollectionKind.LOSS_SCENARIOS).get(1)
    assert scenario.mitigations == ["Alarm, then stop", "Dual sign-off"]
