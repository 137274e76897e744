from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .codec import coerce_codes

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=Enum)


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True)
class ValidationIssue:
    severity: Severity
    location: str
    message: str


def coerce_enum(enum_cls: type[EnumT], value: Any, default: EnumT) -> EnumT:
    """Map a persisted/form value onto *enum_cls*, falling back to *default*.

    Matching is by value first, then case-insensitively by value or name.
    """
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    raw = str(value).strip()
    for member in enum_cls:
        if member.value == raw:
            return member
    lowered = raw.lower()
    for member in enum_cls:
        if str(member.value).lower() == lowered or member.name.lower() == lowered:
            return member
    return default


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ResourceSourceType(str, Enum):
    MANUAL = "manual"
    STANDARD = "standard"
    REPO = "repo"
    PAPER = "paper"


class ActorType(str, Enum):
    CONTROLLER = "Controller"
    SENSOR = "Sensor"
    ENVIRONMENT = "Environment"
    STAKEHOLDER = "Stakeholder"


class GoalLinkType(str, Enum):
    ACHIEVES = "achieves"
    DEPENDS_ON = "depends-on"
    OBSTRUCTS = "obstructs"
    SATISFIES = "satisfies"


class UcaCategory(str, Enum):
    NOT_PROVIDED = "Not provided"
    PROVIDED_INCORRECTLY = "Provided incorrectly"
    INCORRECT_TIMING = "Incorrect timing"
    STOPPED_TOO_SOON = "Stopped too soon / applied too long"


class ConstraintStatus(str, Enum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    PENDING_REVIEW = "Pending Review"


class ScenarioStatus(str, Enum):
    OPEN = "open"
    MITIGATED = "mitigated"
    ACCEPTED = "accepted"


class SeverityLevel(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CATASTROPHIC = "catastrophic"


class RequirementStatus(str, Enum):
    DRAFT = "draft"
    IN_REVIEW = "in-review"
    IMPLEMENTED = "implemented"


class UpdateStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in-progress"
    DEPLOYED = "deployed"


class TaskStatus(str, Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------

class WireModel(BaseModel):
    """Base for payloads exchanged with the persistence backend (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CatalogRecord(WireModel):
    id: int = 0
    code: str = ""
    rationale: str | None = None

    # Form-entry rules, checked by ``Collection.add``/``update`` only. Stored
    # snapshots are never rejected for short or missing text.
    entry_min_length: ClassVar[dict[str, int]] = {}
    entry_max_length: ClassVar[dict[str, int]] = {}

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("code", mode="before")
    @classmethod
    def _strip_code(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    def reference_fields(self) -> dict[str, list[str]]:
        """Return every ``linked_*`` reference list on this record."""
        return {
            name: list(getattr(self, name))
            for name in type(self).model_fields
            if name.startswith("linked_")
        }

    def entry_errors(self) -> dict[str, str]:
        """Field name to message for every form-entry rule this record breaks."""
        errors: dict[str, str] = {}
        for name, minimum in self.entry_min_length.items():
            text = str(getattr(self, name) or "").strip()
            if not text:
                errors[name] = f"{name} must be non-empty"
            elif len(text) < minimum:
                errors[name] = f"{name} must be at least {minimum} characters"
        for name, maximum in self.entry_max_length.items():
            if len(str(getattr(self, name) or "").strip()) > maximum:
                errors[name] = f"{name} must be at most {maximum} characters"
        return errors


class Objective(CatalogRecord):
    focus: str = ""
    stakeholder: str = ""
    priority: Priority = Priority.MEDIUM

    entry_min_length: ClassVar[dict[str, int]] = {"focus": 6}

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Priority:
        return coerce_enum(Priority, value, Priority.MEDIUM)


class Resource(CatalogRecord):
    name: str = ""
    category: str = ""
    reference: str = ""
    source_type: ResourceSourceType | None = None

    entry_min_length: ClassVar[dict[str, int]] = {"name": 1}

    @field_validator("source_type", mode="before")
    @classmethod
    def _coerce_source_type(cls, value: Any) -> ResourceSourceType | None:
        if value is None or value == "":
            return None
        return coerce_enum(ResourceSourceType, value, ResourceSourceType.MANUAL)


class SystemComponent(CatalogRecord):
    name: str = ""
    description: str = ""

    entry_min_length: ClassVar[dict[str, int]] = {"name": 1}


class Accident(CatalogRecord):
    description: str = ""

    entry_min_length: ClassVar[dict[str, int]] = {"description": 1}


class Hazard(CatalogRecord):
    description: str = ""
    linked_accidents: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"description": 1}

    @field_validator("linked_accidents", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        return coerce_codes(value)


class SafetyConstraint(CatalogRecord):
    statement: str = ""
    linked_hazards: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"statement": 1}

    @field_validator("linked_hazards", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        return coerce_codes(value)


class Responsibility(CatalogRecord):
    component: str = ""
    responsibility: str = ""
    linked_constraints: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"component": 1, "responsibility": 1}

    @field_validator("linked_constraints", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        return coerce_codes(value)


class Artefact(CatalogRecord):
    name: str = ""
    purpose: str = ""
    reference: str = ""

    entry_min_length: ClassVar[dict[str, int]] = {"name": 1}


class Actor(CatalogRecord):
    name: str = ""
    type: ActorType = ActorType.CONTROLLER
    responsibilities: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"name": 1}

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> ActorType:
        return coerce_enum(ActorType, value, ActorType.CONTROLLER)

    @field_validator("responsibilities", mode="before")
    @classmethod
    def _single_responsibility(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value.strip()] if value.strip() else []
        return [str(item) for item in value if str(item).strip()]


class GoalLink(CatalogRecord):
    from_actor: str = ""
    goal: str = ""
    link_type: GoalLinkType = GoalLinkType.ACHIEVES

    entry_min_length: ClassVar[dict[str, int]] = {"from_actor": 1, "goal": 1}

    @field_validator("link_type", mode="before")
    @classmethod
    def _coerce_link_type(cls, value: Any) -> GoalLinkType:
        return coerce_enum(GoalLinkType, value, GoalLinkType.ACHIEVES)


class ControlAction(CatalogRecord):
    controller: str = ""
    action: str = ""
    controlled_process: str = ""
    feedback: str = ""

    entry_min_length: ClassVar[dict[str, int]] = {"controller": 1, "action": 1, "controlled_process": 1}


class FeedbackLoop(CatalogRecord):
    source: str = ""
    destination: str = ""
    signal: str = ""
    latency: str = ""

    entry_min_length: ClassVar[dict[str, int]] = {"source": 1, "destination": 1, "signal": 1}


class UnsafeControlAction(CatalogRecord):
    controller: str = ""
    control_action: str = ""
    hazard: str = ""
    linked_hazards: list[str] = Field(default_factory=list)
    category: UcaCategory = UcaCategory.NOT_PROVIDED

    entry_min_length: ClassVar[dict[str, int]] = {"controller": 1, "control_action": 1}

    @field_validator("linked_hazards", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        return coerce_codes(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> UcaCategory:
        return coerce_enum(UcaCategory, value, UcaCategory.NOT_PROVIDED)


class ControllerConstraint(CatalogRecord):
    linked_ucas: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("linkedUcas", "linked_ucas", "ucaRef", "uca_ref"),
        serialization_alias="linkedUcas",
    )
    constraint: str = ""
    enforcement_mechanism: str = ""
    status: ConstraintStatus = ConstraintStatus.DRAFT

    entry_min_length: ClassVar[dict[str, int]] = {"constraint": 10}

    @field_validator("linked_ucas", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        return coerce_codes(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> ConstraintStatus:
        return coerce_enum(ConstraintStatus, value, ConstraintStatus.DRAFT)


class LossScenario(CatalogRecord):
    uca: str = ""
    hazard: str = ""
    linked_ucas: list[str] = Field(default_factory=list)
    linked_hazards: list[str] = Field(default_factory=list)
    outcome: str = ""
    severity: SeverityLevel = SeverityLevel.MAJOR
    mitigations: list[str] = Field(default_factory=list)
    status: ScenarioStatus = ScenarioStatus.OPEN

    entry_min_length: ClassVar[dict[str, int]] = {"outcome": 1}
    entry_max_length: ClassVar[dict[str, int]] = {"uca": 220, "hazard": 220}

    @field_validator("linked_ucas", "linked_hazards", "mitigations", mode="before")
    @classmethod
    def _decode_lists(cls, value: Any) -> list[str]:
        return coerce_codes(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> SeverityLevel:
        return coerce_enum(SeverityLevel, value, SeverityLevel.MAJOR)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> ScenarioStatus:
        return coerce_enum(ScenarioStatus, value, ScenarioStatus.OPEN)


class SafetyRequirement(CatalogRecord):
    title: str = ""
    linked_scenarios: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("linkedScenarios", "linked_scenarios", "linkedScenario"),
        serialization_alias="linkedScenarios",
    )
    category: str = ""
    owner: str = ""
    due_date: str = ""
    status: RequirementStatus = RequirementStatus.DRAFT

    entry_min_length: ClassVar[dict[str, int]] = {"title": 1}

    @field_validator("linked_scenarios", mode="before")
    @classmethod
    def _decode_links(cls, value: Any) -> list[str]:
        if isinstance(value, int):
            return [str(value)]
        return coerce_codes(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> RequirementStatus:
        return coerce_enum(RequirementStatus, value, RequirementStatus.DRAFT)


class ModelChange(CatalogRecord):
    area: str = ""
    change: str = ""
    driver: str = ""
    linked_drivers: list[str] = Field(default_factory=list)
    impact: str = ""
    status: UpdateStatus = UpdateStatus.PLANNED
    evidence: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"area": 1, "change": 1}

    @field_validator("linked_drivers", "evidence", mode="before")
    @classmethod
    def _decode_lists(cls, value: Any) -> list[str]:
        return coerce_codes(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> UpdateStatus:
        return coerce_enum(UpdateStatus, value, UpdateStatus.PLANNED)


class ValidationTask(CatalogRecord):
    name: str = ""
    owner: str = ""
    due_date: str = ""
    channel: str = ""
    status: TaskStatus = TaskStatus.TODO

    entry_min_length: ClassVar[dict[str, int]] = {"name": 1}

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> TaskStatus:
        return coerce_enum(TaskStatus, value, TaskStatus.TODO)


class IntegrationNote(CatalogRecord):
    summary: str = ""
    created_on: str = ""
    author: str = ""
    action_items: list[str] = Field(default_factory=list)

    entry_min_length: ClassVar[dict[str, int]] = {"summary": 1}


# ---------------------------------------------------------------------------
# Persisted project scope
# ---------------------------------------------------------------------------

class GeneralSummary(WireModel):
    analysis_purpose: str = ""
    assumptions: str = ""
    system_definition: str = ""
    system_boundary: str = ""
    out_of_scope: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class StepOneScope(WireModel):
    """Full project snapshot exchanged with the persistence backend.

    Named after the Step 1 endpoint it travels through; it carries every
    collection of the method so a single load hydrates the whole catalog.
    """

    id: int | None = None
    last_updated_by: str | None = None
    general_summary: GeneralSummary = Field(default_factory=GeneralSummary)
    objectives: str = ""
    analysis_objectives: list[Objective] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)
    system_components: list[SystemComponent] = Field(default_factory=list)
    accidents: list[Accident] = Field(default_factory=list)
    hazards: list[Hazard] = Field(default_factory=list)
    safety_constraints: list[SafetyConstraint] = Field(default_factory=list)
    responsibilities: list[Responsibility] = Field(default_factory=list)
    artefacts: list[Artefact] = Field(default_factory=list)
    actors: list[Actor] = Field(default_factory=list)
    goal_links: list[GoalLink] = Field(default_factory=list)
    control_actions: list[ControlAction] = Field(default_factory=list)
    feedback_loops: list[FeedbackLoop] = Field(default_factory=list)
    unsafe_control_actions: list[UnsafeControlAction] = Field(default_factory=list)
    controller_constraints: list[ControllerConstraint] = Field(default_factory=list)
    loss_scenarios: list[LossScenario] = Field(default_factory=list)
    safety_requirements: list[SafetyRequirement] = Field(default_factory=list)
    model_changes: list[ModelChange] = Field(default_factory=list)
    validation_tasks: list[ValidationTask] = Field(default_factory=list)
    integration_notes: list[IntegrationNote] = Field(default_factory=list)

    @field_validator("general_summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("objectives", mode="before")
    @classmethod
    def _objectives_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(item) for item in value)
        return str(value)

    @field_validator(
        "analysis_objectives",
        "resources",
        "system_components",
        "accidents",
        "hazards",
        "safety_constraints",
        "responsibilities",
        "artefacts",
        "actors",
        "goal_links",
        "control_actions",
        "feedback_loops",
        "unsafe_control_actions",
        "controller_constraints",
        "loss_scenarios",
        "safety_requirements",
        "model_changes",
        "validation_tasks",
        "integration_notes",
        mode="before",
    )
    @classmethod
    def _records_only(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        kept = [item for item in value if isinstance(item, (dict, BaseModel))]
        if len(kept) != len(value):
            logger.warning("dropped %d non-object entries from %s", len(value) - len(kept), info.field_name)
        return kept


class FormValidationError(ValueError):
    """Raised when user-entered values fail validation; nothing was mutated."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])
