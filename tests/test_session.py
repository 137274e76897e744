from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from autoresafety.catalog import CollectionKind, EntityCatalog
from autoresafety.gateway import FilesystemGateway, GatewayError
from autoresafety.lifecycle import CreateProjectRequest
from autoresafety.models import FormValidationError, StepOneScope
from autoresafety.seeds import SYSTEM_DEFINITION
from autoresafety.session import LoadOutcome, ProjectWorkspace, normalize_prefill


class _ScopeGateway:
    """In-memory scope store; ``fail`` makes every call raise a transport error."""

    def __init__(self, scopes: dict[int, StepOneScope] | None = None) -> None:
        self.scopes = dict(scopes or {})
        self.saved: list[tuple[int, StepOneScope]] = []
        self.fail = False
        self.on_load = None

    def list_open_projects(self):  # noqa: ANN201
        return []

    def create_minimal_project(self, request):  # noqa: ANN001,ANN201
        raise NotImplementedError

    def update_project_status(self, project_id, status):  # noqa: ANN001,ANN201
        return None

    def load_step_one_scope(self, project_id: int) -> StepOneScope | None:
        if self.on_load is not None:
            self.on_load()
        if self.fail:
            raise GatewayError("backend down")
        return self.scopes.get(project_id)

    def save_step_one_scope(self, project_id: int, scope: StepOneScope) -> None:
        if self.fail:
            raise GatewayError("backend down")
        self.saved.append((project_id, scope))
        self.scopes[project_id] = scope


def _stored_scope() -> StepOneScope:
    catalog = EntityCatalog.empty()
    catalog.collection(CollectionKind.ACCIDENTS).add({"code": "A1", "description": "Loss of life"})
    catalog.collection(CollectionKind.ACCIDENTS).add({"code": "A4", "description": "Device destroyed"})
    return catalog.to_scope(
        id=9,
        general_summary={"analysisPurpose": "Certification", "systemBoundary": "Pump and app"},
        objectives="Show dosing is bounded",
    )


def test_load_applies_stored_scope_and_resets_sequencers() -> None:
    workspace = ProjectWorkspace(_ScopeGateway({9: _stored_scope()}), 9)

    assert workspace.load() is LoadOutcome.LOADED

    accidents = workspace.catalog.collection(CollectionKind.ACCIDENTS)
    assert [record.code for record in accidents] == ["A4", "A1"]
    assert accidents.sequencer.next() == 3
    assert workspace.analysis_purpose == "Certification"
    assert workspace.system_boundary == "Pump and app"
    assert workspace.objectives_text == "Show dosing is bounded"
    assert workspace.is_dirty is False


@pytest.mark.parametrize(
    ("prefill", "expected_hazards", "expected_definition"),
    [
        ("empty", 0, ""),
        ("seeded", 2, SYSTEM_DEFINITION),
        ("ai", 2, SYSTEM_DEFINITION),
        (None, 2, SYSTEM_DEFINITION),
    ],
)
def test_empty_payload_applies_prefill(prefill: str | None, expected_hazards: int, expected_definition: str) -> None:
    workspace = ProjectWorkspace(_ScopeGateway(), 4)

    assert workspace.load(prefill) is LoadOutcome.PREFILLED
    assert len(workspace.catalog.collection(CollectionKind.HAZARDS)) == expected_hazards
    assert workspace.system_definition == expected_definition


def test_unknown_prefill_is_rejected() -> None:
    with pytest.raises(ValueError, match="prefill"):
        normalize_prefill("lorem")


def test_load_failure_falls_back_to_prefill(caplog: pytest.LogCaptureFixture) -> None:
    gateway = _ScopeGateway()
    gateway.fail = True
    workspace = ProjectWorkspace(gateway, 4)

    with caplog.at_level(logging.ERROR, logger="autoresafety.session"):
        outcome = workspace.load("empty")

    assert outcome is LoadOutcome.FAILED
    assert all(len(collection) == 0 for collection in workspace.catalog)
    assert "loading project 4 failed" in caplog.text


def test_cancelled_load_is_never_applied() -> None:
    gateway = _ScopeGateway({9: _stored_scope()})
    workspace = ProjectWorkspace(gateway, 9)
    pending = workspace.begin_load()
    gateway.on_load = pending.cancel

    assert pending.run() is LoadOutcome.CANCELLED
    assert len(workspace.catalog.collection(CollectionKind.ACCIDENTS)) == 0


def test_newer_load_supersedes_older_one() -> None:
    workspace = ProjectWorkspace(_ScopeGateway({9: _stored_scope()}), 9)
    first = workspace.begin_load()
    second = workspace.begin_load()

    assert first.run() is LoadOutcome.CANCELLED
    assert second.run() is LoadOutcome.LOADED


def test_closed_workspace_ignores_load_and_save() -> None:
    gateway = _ScopeGateway({9: _stored_scope()})
    workspace = ProjectWorkspace(gateway, 9)
    pending = workspace.begin_load()
    workspace.close()

    assert pending.run() is LoadOutcome.CANCELLED
    assert workspace.save("admin") is False
    assert gateway.saved == []
    with pytest.raises(RuntimeError):
        workspace.begin_load()


def test_save_sends_snapshot_and_clears_dirty_flag() -> None:
    gateway = _ScopeGateway()
    workspace = ProjectWorkspace(gateway, 4)
    workspace.load("empty")
    workspace.catalog.collection(CollectionKind.ACCIDENTS).add({"code": "A1", "description": "Loss of life"})
    workspace.out_of_scope = "Hospital IT"
    assert workspace.is_dirty

    assert workspace.save("admin") is True

    project_id, scope = gateway.saved[0]
    assert project_id == 4
    assert scope.id == 4
    assert scope.last_updated_by == "admin"
    assert scope.general_summary.out_of_scope == "Hospital IT"
    assert [record.code for record in scope.accidents] == ["A1"]
    assert workspace.is_dirty is False


def test_failed_save_keeps_local_state() -> None:
    gateway = _ScopeGateway()
    workspace = ProjectWorkspace(gateway, 4)
    workspace.load("empty")
    workspace.catalog.collection(CollectionKind.ACCIDENTS).add({"code": "A1", "description": "Loss of life"})
    gateway.fail = True

    assert workspace.save("admin") is False
    assert workspace.is_dirty
    assert workspace.catalog.collection(CollectionKind.ACCIDENTS).codes() == ["A1"]


def test_workspace_without_project_id() -> None:
    gateway = _ScopeGateway()
    workspace = ProjectWorkspace(gateway, None)

    assert workspace.load("empty") is LoadOutcome.PREFILLED
    assert workspace.save("admin") is False
    assert gateway.saved == []


def test_workspace_over_filesystem_gateway(tmp_path: Path) -> None:
    gateway = FilesystemGateway(tmp_path)
    project = gateway.create_minimal_project(CreateProjectRequest.from_form(name="Insulin pump"))

    editing = ProjectWorkspace(gateway, project.id)
    assert editing.load("seeded") is LoadOutcome.PREFILLED
    editing.catalog.collection(CollectionKind.HAZARDS).add(
        {"code": "H3", "description": "Occlusion undetected", "linked_accidents": "A1"}
    )
    assert editing.save("admin") is True

    reopened = ProjectWorkspace(gateway, project.id)
    assert reopened.load("empty") is LoadOutcome.LOADED
    assert reopened.catalog.fingerprint() == editing.catalog.fingerprint()
    assert reopened.catalog.collection(CollectionKind.HAZARDS).sequencer.next() == 4


def test_stored_records_with_missing_or_short_text_still_load(tmp_path: Path) -> None:
    gateway = FilesystemGateway(tmp_path)
    path = gateway.scope_path(5)
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "id": 5,
                "accidents": [{"id": 1, "code": "A1"}],
                "hazards": [{"id": 2, "code": "H2", "description": "Underdose", "linkedAccidents": ["A1"]}],
                "analysisObjectives": [{"id": 3, "focus": "abc", "priority": None}],
                "controllerConstraints": [{"id": 1, "code": "CC-01", "constraint": "Stop", "linkedUcas": None}],
            }
        ),
        encoding="utf-8",
    )
    workspace = ProjectWorkspace(gateway, 5)

    assert workspace.load() is LoadOutcome.LOADED

    accident = workspace.catalog.collection(CollectionKind.ACCIDENTS).get(1)
    assert accident.description == ""
    assert workspace.catalog.collection(CollectionKind.OBJECTIVES).get(3).focus == "abc"
    assert workspace.catalog.collection(CollectionKind.CONTROLLER_CONSTRAINTS).get(1).constraint == "Stop"
    assert workspace.catalog.collection(CollectionKind.HAZARDS).codes() == ["H2"]
    with pytest.raises(FormValidationError):
        workspace.catalog.collection(CollectionKind.OBJECTIVES).add({"focus": "abc"})


def test_seeded_prefill_fills_the_injected_catalog() -> None:
    injected = EntityCatalog.empty()
    workspace = ProjectWorkspace(_ScopeGateway(), 4, catalog=injected)

    assert workspace.load("seeded") is LoadOutcome.PREFILLED

    assert workspace.catalog is injected
    assert len(injected.collection(CollectionKind.HAZARDS)) == 2
    assert injected.collection(CollectionKind.RESPONSIBILITIES).sequencer.peek() == 8
    assert injected.fingerprint() == EntityCatalog.seeded().fingerprint()
