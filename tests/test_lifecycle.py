from __future__ import annotations

import pytest

from autoresafety.board import ProjectBoard
from autoresafety.gateway import GatewayError
from autoresafety.lifecycle import (
    DEFAULT_ROUTE,
    CreateProjectRequest,
    ProjectLifecycle,
    ProjectStatus,
    ProjectSummary,
    next_step_label,
    normalize_status,
    route_for_step,
)
from autoresafety.models import FormValidationError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("REOPENED", ProjectStatus.IN_PROGRESS),
        ("In-Progress", ProjectStatus.IN_PROGRESS),
        ("in_progress", ProjectStatus.IN_PROGRESS),
        ("complete", ProjectStatus.COMPLETED),
        ("cancelled", ProjectStatus.CANCELED),
        ("removed", ProjectStatus.REMOVED),
        ("archived", ProjectStatus.PENDING),
        ("", ProjectStatus.PENDING),
        (None, ProjectStatus.PENDING),
    ],
)
def test_normalize_status(raw: str | None, expected: ProjectStatus) -> None:
    assert normalize_status(raw) is expected


@pytest.mark.parametrize("step", [0, 8, -3, "x", None])
def test_out_of_range_step_is_clamped_to_one(step: object) -> None:
    in_progress = ProjectSummary.from_payload({"id": 1, "name": "Pump", "status": "in-progress", "currentStep": step})
    pending = ProjectSummary.from_payload({"id": 2, "name": "Pump", "status": "pending", "currentStep": step})

    assert in_progress.current_step == 1
    assert pending.current_step == 1


def test_persisted_step_within_range_is_kept() -> None:
    project = ProjectSummary.from_payload({"id": 1, "name": "Pump", "status": "reopened", "currentStep": "4"})

    assert project.status is ProjectStatus.IN_PROGRESS
    assert project.current_step == 4
    assert project.next_step == "Resume Step 4 · Identify Unsafe Control Actions"
    assert project.route == "/ucas"


def test_next_step_labels_and_routes() -> None:
    assert next_step_label("pending", None) == "Kick-off Step 1 · Define SCS Scope"
    assert next_step_label("in-progress", 1) == "Resume Step 1 · Scope Definition"
    assert next_step_label("in-progress", 6) == "Resume Step 6 · Loss Scenarios & Safety Requirements"
    assert next_step_label(ProjectStatus.COMPLETED, 7) == "Archive evidence & publish traceability report"
    assert next_step_label(ProjectStatus.CANCELED, None) == "Next activity to be defined"
    assert route_for_step(1) == "/scope"
    assert route_for_step(7) == "/model-update"
    assert route_for_step(0) == DEFAULT_ROUTE
    assert route_for_step(12) == DEFAULT_ROUTE


def test_project_payload_tolerates_missing_fields() -> None:
    project = ProjectSummary.from_payload({"name": None, "status": "mystery", "owner": "  "})

    assert project.id is None
    assert project.name == ""
    assert project.owner is None
    assert project.status is ProjectStatus.PENDING
    with pytest.raises(ValueError):
        ProjectSummary.from_payload(["not", "a", "project"])


def _project(status: str = "pending", step: int | None = None) -> ProjectSummary:
    return ProjectSummary.from_payload({"id": 10, "name": "Insulin pump", "status": status, "currentStep": step})


def test_start_then_advance_never_completes_automatically() -> None:
    lifecycle = ProjectLifecycle(_project())

    lifecycle.start()
    assert (lifecycle.status, lifecycle.step) == (ProjectStatus.IN_PROGRESS, 1)

    for _ in range(6):
        lifecycle.advance()
    assert (lifecycle.status, lifecycle.step) == (ProjectStatus.IN_PROGRESS, 7)
    with pytest.raises(ValueError, match="between 1 and 7"):
        lifecycle.advance()

    lifecycle.complete()
    assert (lifecycle.status, lifecycle.step) == (ProjectStatus.COMPLETED, 7)


def test_resume_keeps_step_pointer() -> None:
    lifecycle = ProjectLifecycle(_project("in-progress", 5))

    lifecycle.resume()
    lifecycle.start()

    assert lifecycle.step == 5
    assert lifecycle.route == "/loss-scenarios"


def test_complete_requires_step_seven() -> None:
    lifecycle = ProjectLifecycle(_project("in-progress", 4))

    with pytest.raises(ValueError, match="step 7"):
        lifecycle.complete()


def test_cancel_and_remove_transitions() -> None:
    lifecycle = ProjectLifecycle(_project("in-progress", 3))

    lifecycle.cancel()
    assert lifecycle.status is ProjectStatus.CANCELED
    assert lifecycle.step is None
    assert lifecycle.next_step_label == "Next activity to be defined"

    lifecycle.remove()
    lifecycle.remove()
    assert lifecycle.status is ProjectStatus.REMOVED
    for action in (lifecycle.start, lifecycle.cancel, lifecycle.reopen):
        with pytest.raises(ValueError):
            action()


def test_completed_project_cannot_be_canceled_but_can_be_reopened() -> None:
    lifecycle = ProjectLifecycle(_project("completed", 7))

    with pytest.raises(ValueError, match="Illegal project status transition"):
        lifecycle.cancel()
    with pytest.raises(ValueError, match="reopen"):
        lifecycle.start()

    lifecycle.transition_to("reopened")
    assert (lifecycle.status, lifecycle.step) == (ProjectStatus.IN_PROGRESS, 7)


def test_transition_to_pending_is_rejected_once_started() -> None:
    lifecycle = ProjectLifecycle(_project("in-progress", 2))

    with pytest.raises(ValueError, match="pending"):
        lifecycle.transition_to(ProjectStatus.PENDING)


def test_create_form_validation() -> None:
    request = CreateProjectRequest.from_form(name="  Insulin pump  ", domain="", owner=None, description="")

    assert request.to_payload() == {"name": "Insulin pump", "currentStep": 1}

    with pytest.raises(FormValidationError) as excinfo:
        CreateProjectRequest.from_form(name="abc", domain="ab", owner="o" * 121, description="d" * 501)
    assert excinfo.value.fields == ["name", "domain", "owner", "description"]


# ---------------------------------------------------------------------------
# Project board
# ---------------------------------------------------------------------------

class _FakeGateway:
    def __init__(self, projects: list[dict[str, object]] | None = None) -> None:
        self.records = [dict(item) for item in projects or []]
        self.status_calls: list[tuple[int, ProjectStatus]] = []
        self.created: list[CreateProjectRequest] = []
        self.fail = False

    def list_open_projects(self) -> list[ProjectSummary]:
        if self.fail:
            raise GatewayError("backend down")
        return [ProjectSummary.from_payload(item) for item in self.records if item.get("status") != "removed"]

    def create_minimal_project(self, request: CreateProjectRequest) -> ProjectSummary:
        if self.fail:
            raise GatewayError("backend down")
        self.created.append(request)
        record = {**request.to_payload(), "id": len(self.records) + 1, "status": "pending"}
        self.records.append(record)
        return ProjectSummary.from_payload(record)

    def update_project_status(self, project_id: int, status: ProjectStatus) -> ProjectSummary | None:
        if self.fail:
            raise GatewayError("backend down")
        self.status_calls.append((project_id, status))
        for item in self.records:
            if item["id"] == project_id:
                item["status"] = status.value
                if status is ProjectStatus.IN_PROGRESS and not item.get("currentStep"):
                    item["currentStep"] = 1
        return None

    def load_step_one_scope(self, project_id: int):  # noqa: ANN201
        return None

    def save_step_one_scope(self, project_id: int, scope) -> None:  # noqa: ANN001
        return None


def _board() -> tuple[ProjectBoard, _FakeGateway]:
    gateway = _FakeGateway(
        [
            {"id": 1, "name": "Insulin pump", "status": "pending"},
            {"id": 2, "name": "Rail interlock", "status": "in-progress", "currentStep": 3},
            {"id": 3, "name": "Drone geofence", "status": "completed", "currentStep": 7},
            {"id": 4, "name": "Old study", "status": "cancelled"},
        ]
    )
    board = ProjectBoard(gateway)
    board.refresh()
    return board, gateway


def test_board_views_split_by_status() -> None:
    board, _ = _board()

    assert [project.id for project in board.open_projects] == [1, 2]
    assert [project.id for project in board.completed_projects] == [3]
    assert [project.id for project in board.canceled_projects] == [4]


def test_board_start_sends_status_and_refreshes() -> None:
    board, gateway = _board()

    route = board.start(1)

    assert route == "/scope"
    assert gateway.status_calls == [(1, ProjectStatus.IN_PROGRESS)]
    assert board.get(1).status is ProjectStatus.IN_PROGRESS
    assert board.resume(2) == "/control-structure"


def test_board_remove_hides_project() -> None:
    board, gateway = _board()

    assert board.remove(4) is True

    assert gateway.status_calls == [(4, ProjectStatus.REMOVED)]
    assert [project.id for project in board.projects] == [1, 2, 3]
    with pytest.raises(KeyError):
        board.get(4)


def test_board_rejects_illegal_transition_without_calling_gateway() -> None:
    board, gateway = _board()

    with pytest.raises(ValueError):
        board.set_status(3, ProjectStatus.CANCELED)
    assert gateway.status_calls == []


def test_board_create_validates_before_calling_gateway() -> None:
    board, gateway = _board()

    with pytest.raises(FormValidationError):
        board.create("abc")
    assert gateway.created == []

    created = board.create("Ventilator weaning", domain="Medical", owner="J. Ortiz")
    assert created is not None
    assert created.status is ProjectStatus.PENDING
    assert created.id in [project.id for project in board.open_projects]


def test_board_degrades_on_gateway_failure() -> None:
    board, gateway = _board()
    gateway.fail = True

    assert board.set_status(2, ProjectStatus.CANCELED) is False
    assert board.get(2).status is ProjectStatus.IN_PROGRESS
    assert board.create("Ventilator weaning") is None
    assert board.refresh() == []
