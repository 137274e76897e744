from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError, field_validator, model_validator

from .models import FormValidationError, WireModel

logger = logging.getLogger(__name__)

FIRST_STEP = 1
LAST_STEP = 7

STEP_LABELS: dict[int, str] = {
    1: "Scope Definition",
    2: "iStar4Safety Models",
    3: "Control Structure",
    4: "Identify Unsafe Control Actions",
    5: "Controller Constraints",
    6: "Loss Scenarios & Safety Requirements",
    7: "Update iStar4Safety Models",
}

KICK_OFF_LABEL = "Define SCS Scope"

STEP_ROUTES: dict[int, str] = {
    1: "/scope",
    2: "/istar-models",
    3: "/control-structure",
    4: "/ucas",
    5: "/controller-constraints",
    6: "/loss-scenarios",
    7: "/model-update",
}

DEFAULT_ROUTE = "/"


class ProjectStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REMOVED = "removed"


_STATUS_ALIASES: dict[str, ProjectStatus] = {
    "pending": ProjectStatus.PENDING,
    "in-progress": ProjectStatus.IN_PROGRESS,
    "in_progress": ProjectStatus.IN_PROGRESS,
    "reopened": ProjectStatus.IN_PROGRESS,
    "complete": ProjectStatus.COMPLETED,
    "completed": ProjectStatus.COMPLETED,
    "canceled": ProjectStatus.CANCELED,
    "cancelled": ProjectStatus.CANCELED,
    "removed": ProjectStatus.REMOVED,
}

PROJECT_STATUS_TRANSITIONS: dict[ProjectStatus, set[ProjectStatus]] = {
    ProjectStatus.PENDING: {ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELED, ProjectStatus.REMOVED},
    ProjectStatus.IN_PROGRESS: {
        ProjectStatus.IN_PROGRESS,
        ProjectStatus.COMPLETED,
        ProjectStatus.CANCELED,
        ProjectStatus.REMOVED,
    },
    ProjectStatus.COMPLETED: {ProjectStatus.IN_PROGRESS, ProjectStatus.REMOVED},
    ProjectStatus.CANCELED: {ProjectStatus.IN_PROGRESS, ProjectStatus.REMOVED},
    ProjectStatus.REMOVED: set(),
}

ACTIVE_STATUSES = frozenset({ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS})


def normalize_status(raw: Any) -> ProjectStatus:
    """Map a persisted status string onto the five-state vocabulary.

    Unknown or missing values become ``pending``.
    """
    if isinstance(raw, ProjectStatus):
        return raw
    if raw is None:
        return ProjectStatus.PENDING
    return _STATUS_ALIASES.get(str(raw).strip().lower(), ProjectStatus.PENDING)


def _in_range(step: Any) -> bool:
    return isinstance(step, int) and not isinstance(step, bool) and FIRST_STEP <= step <= LAST_STEP


def normalize_step(status: ProjectStatus, step: Any) -> int | None:
    """Return the step pointer that is valid for *status*.

    Out-of-range values from persisted data are clamped to step 1 rather
    than rejected.
    """
    if status is ProjectStatus.PENDING:
        return FIRST_STEP
    if status is ProjectStatus.IN_PROGRESS:
        return step if _in_range(step) else FIRST_STEP
    if status is ProjectStatus.COMPLETED:
        return step if _in_range(step) else LAST_STEP
    return None


def next_step_label(status: ProjectStatus | str, step: int | None) -> str:
    effective = normalize_status(status)
    if effective is ProjectStatus.PENDING:
        return f"Kick-off Step 1 · {KICK_OFF_LABEL}"
    if effective is ProjectStatus.IN_PROGRESS:
        current = step if _in_range(step) else FIRST_STEP
        return f"Resume Step {current} · {STEP_LABELS[current]}"
    if effective is ProjectStatus.COMPLETED:
        return "Archive evidence & publish traceability report"
    return "Next activity to be defined"


def route_for_step(step: Any) -> str:
    return STEP_ROUTES.get(step, DEFAULT_ROUTE) if _in_range(step) else DEFAULT_ROUTE


# ---------------------------------------------------------------------------
# Project records
# ---------------------------------------------------------------------------

class ProjectSummary(WireModel):
    """Minimal project record as listed on the home dashboard."""

    id: int | None = None
    name: str = ""
    domain: str | None = None
    owner: str | None = None
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PENDING
    current_step: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> ProjectStatus:
        return normalize_status(value)

    @field_validator("current_step", mode="before")
    @classmethod
    def _tolerant_step(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @field_validator("name", mode="before")
    @classmethod
    def _blank_name(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("domain", "owner", "description", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @model_validator(mode="after")
    def _clamp_step(self) -> "ProjectSummary":
        self.current_step = normalize_step(self.status, self.current_step)
        return self

    @property
    def next_step(self) -> str:
        return next_step_label(self.status, self.current_step)

    @property
    def route(self) -> str:
        return route_for_step(self.current_step or FIRST_STEP)

    @classmethod
    def from_payload(cls, payload: Any) -> "ProjectSummary":
        """Validate one inbound project payload, defaulting what is missing."""
        if not isinstance(payload, dict):
            raise ValueError(f"project payload must be an object, got {type(payload).__name__}")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"project payload failed validation: {exc}") from exc


class CreateProjectRequest(WireModel):
    name: str
    current_step: int = FIRST_STEP
    domain: str | None = None
    owner: str | None = None
    description: str | None = None

    @classmethod
    def from_form(
        cls,
        *,
        name: str | None,
        domain: str | None = None,
        owner: str | None = None,
        description: str | None = None,
    ) -> "CreateProjectRequest":
        """Trim and validate the new-project form.

        Raises:
            FormValidationError: Listing every field that failed.
        """
        values = {
            "name": (name or "").strip(),
            "domain": (domain or "").strip(),
            "owner": (owner or "").strip(),
            "description": (description or "").strip(),
        }
        failed: list[str] = []
        if not 4 <= len(values["name"]) <= 120:
            failed.append("name")
        if values["domain"] and not 3 <= len(values["domain"]) <= 120:
            failed.append("domain")
        if len(values["owner"]) > 120:
            failed.append("owner")
        if len(values["description"]) > 500:
            failed.append("description")
        if failed:
            raise FormValidationError(f"invalid project form: {', '.join(failed)}", failed)
        return cls(
            name=values["name"],
            domain=values["domain"] or None,
            owner=values["owner"] or None,
            description=values["description"] or None,
        )

    def to_payload(self) -> dict[str, Any]:
        # Optional fields are omitted rather than sent as null.
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StatusUpdateRequest(WireModel):
    id: int
    status: ProjectStatus


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class ProjectLifecycle:
    """Sole writer of a project's ``status`` and ``current_step``."""

    def __init__(self, project: ProjectSummary) -> None:
        self.project = project

    @property
    def status(self) -> ProjectStatus:
        return self.project.status

    @property
    def step(self) -> int | None:
        return self.project.current_step

    @property
    def next_step_label(self) -> str:
        return next_step_label(self.project.status, self.project.current_step)

    @property
    def route(self) -> str:
        return self.project.route

    def can_transition(self, new_status: ProjectStatus) -> bool:
        return new_status in PROJECT_STATUS_TRANSITIONS[self.project.status]

    def _assert_transition(self, new_status: ProjectStatus) -> None:
        if not self.can_transition(new_status):
            raise ValueError(
                f"Illegal project status transition for {self.project.id}: "
                f"{self.project.status.value} -> {new_status.value}"
            )

    def _apply(self, new_status: ProjectStatus, step: int | None) -> ProjectSummary:
        old_status = self.project.status
        self.project.status = new_status
        self.project.current_step = normalize_step(new_status, step)
        if old_status is not new_status:
            logger.info("project %s: %s -> %s", self.project.id, old_status.value, new_status.value)
        return self.project

    def start(self) -> ProjectSummary:
        """Begin the workflow; a project already in progress just resumes."""
        if self.project.status is ProjectStatus.IN_PROGRESS:
            return self.resume()
        if self.project.status is not ProjectStatus.PENDING:
            raise ValueError(f"project {self.project.id} is {self.project.status.value}; use reopen()")
        return self._apply(ProjectStatus.IN_PROGRESS, FIRST_STEP)

    def resume(self) -> ProjectSummary:
        if self.project.status is not ProjectStatus.IN_PROGRESS:
            raise ValueError(f"project {self.project.id} is {self.project.status.value}, not in-progress")
        return self._apply(ProjectStatus.IN_PROGRESS, self.project.current_step)

    def advance(self, to_step: int | None = None) -> ProjectSummary:
        """Move the step pointer; reaching step 7 never completes the project."""
        if self.project.status is not ProjectStatus.IN_PROGRESS:
            raise ValueError(f"project {self.project.id} is {self.project.status.value}, not in-progress")
        current = self.project.current_step or FIRST_STEP
        target = current + 1 if to_step is None else to_step
        if not _in_range(target):
            raise ValueError(f"step must be between {FIRST_STEP} and {LAST_STEP}, got: {target}")
        return self._apply(ProjectStatus.IN_PROGRESS, target)

    def complete(self) -> ProjectSummary:
        if self.project.status is not ProjectStatus.IN_PROGRESS or self.project.current_step != LAST_STEP:
            raise ValueError(
                f"project {self.project.id} can only be completed from step {LAST_STEP} while in-progress"
            )
        return self._apply(ProjectStatus.COMPLETED, LAST_STEP)

    def cancel(self) -> ProjectSummary:
        self._assert_transition(ProjectStatus.CANCELED)
        return self._apply(ProjectStatus.CANCELED, None)

    def reopen(self) -> ProjectSummary:
        if self.project.status not in {ProjectStatus.COMPLETED, ProjectStatus.CANCELED}:
            raise ValueError(f"project {self.project.id} is {self.project.status.value}; nothing to reopen")
        return self._apply(ProjectStatus.IN_PROGRESS, self.project.current_step)

    def remove(self) -> ProjectSummary:
        if self.project.status is ProjectStatus.REMOVED:
            return self.project
        self._assert_transition(ProjectStatus.REMOVED)
        return self._apply(ProjectStatus.REMOVED, None)

    def transition_to(self, new_status: ProjectStatus | str) -> ProjectSummary:
        """Dispatch a requested status onto the matching action."""
        target = normalize_status(new_status)
        actions = {
            ProjectStatus.PENDING: self._reject_pending,
            ProjectStatus.IN_PROGRESS: self._to_in_progress,
            ProjectStatus.COMPLETED: self.complete,
            ProjectStatus.CANCELED: self.cancel,
            ProjectStatus.REMOVED: self.remove,
        }
        return actions[target]()

    def _to_in_progress(self) -> ProjectSummary:
        if self.project.status is ProjectStatus.PENDING:
            return self.start()
        if self.project.status is ProjectStatus.IN_PROGRESS:
            return self.resume()
        return self.reopen()

    def _reject_pending(self) -> ProjectSummary:
        if self.project.status is ProjectStatus.PENDING:
            return self.project
        raise ValueError(f"project {self.project.id} cannot return to pending")
