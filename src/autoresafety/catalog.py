from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Iterator, Mapping, TypeVar

from pydantic import ValidationError

from .canonical import to_canonical_json
from .models import (
    Accident,
    Actor,
    Artefact,
    CatalogRecord,
    ControlAction,
    ControllerConstraint,
    FeedbackLoop,
    FormValidationError,
    GoalLink,
    Hazard,
    IntegrationNote,
    LossScenario,
    ModelChange,
    Objective,
    Resource,
    Responsibility,
    SafetyConstraint,
    SafetyRequirement,
    StepOneScope,
    SystemComponent,
    UnsafeControlAction,
    ValidationTask,
)
from .sequencer import CodeSequencer

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=CatalogRecord)


class CollectionKind(str, Enum):
    """Record collections of the method; values match the snapshot field names."""

    OBJECTIVES = "analysis_objectives"
    RESOURCES = "resources"
    SYSTEM_COMPONENTS = "system_components"
    ACCIDENTS = "accidents"
    HAZARDS = "hazards"
    SAFETY_CONSTRAINTS = "safety_constraints"
    RESPONSIBILITIES = "responsibilities"
    ARTEFACTS = "artefacts"
    ACTORS = "actors"
    GOAL_LINKS = "goal_links"
    CONTROL_ACTIONS = "control_actions"
    FEEDBACK_LOOPS = "feedback_loops"
    UNSAFE_CONTROL_ACTIONS = "unsafe_control_actions"
    CONTROLLER_CONSTRAINTS = "controller_constraints"
    LOSS_SCENARIOS = "loss_scenarios"
    SAFETY_REQUIREMENTS = "safety_requirements"
    MODEL_CHANGES = "model_changes"
    VALIDATION_TASKS = "validation_tasks"
    INTEGRATION_NOTES = "integration_notes"


@dataclass(frozen=True)
class CollectionSpec:
    kind: CollectionKind
    record_type: type[CatalogRecord]
    code_prefix: str = ""
    code_width: int = 0

    @property
    def is_coded(self) -> bool:
        return bool(self.code_prefix)

    def format_code(self, number: int) -> str:
        if not self.is_coded:
            raise ValueError(f"{self.kind.value} records do not carry codes")
        return f"{self.code_prefix}{number:0{self.code_width}d}"

    def parse_code(self, code: str) -> int | None:
        """Return the numeric part of *code* if it follows this collection's pattern."""
        if not self.is_coded:
            return None
        prefix = re.escape(self.code_prefix.rstrip("-"))
        match = re.fullmatch(rf"{prefix}-?(\d+)", code.strip(), flags=re.IGNORECASE)
        return int(match.group(1)) if match else None


COLLECTION_SPECS: dict[CollectionKind, CollectionSpec] = {
    spec.kind: spec
    for spec in (
        CollectionSpec(CollectionKind.OBJECTIVES, Objective),
        CollectionSpec(CollectionKind.RESOURCES, Resource),
        CollectionSpec(CollectionKind.SYSTEM_COMPONENTS, SystemComponent),
        CollectionSpec(CollectionKind.ACCIDENTS, Accident, "A"),
        CollectionSpec(CollectionKind.HAZARDS, Hazard, "H"),
        CollectionSpec(CollectionKind.SAFETY_CONSTRAINTS, SafetyConstraint, "SC-", 2),
        CollectionSpec(CollectionKind.RESPONSIBILITIES, Responsibility, "R-", 2),
        CollectionSpec(CollectionKind.ARTEFACTS, Artefact),
        CollectionSpec(CollectionKind.ACTORS, Actor),
        CollectionSpec(CollectionKind.GOAL_LINKS, GoalLink),
        CollectionSpec(CollectionKind.CONTROL_ACTIONS, ControlAction, "CA-", 2),
        CollectionSpec(CollectionKind.FEEDBACK_LOOPS, FeedbackLoop, "FB-", 2),
        CollectionSpec(CollectionKind.UNSAFE_CONTROL_ACTIONS, UnsafeControlAction, "UCA-", 2),
        CollectionSpec(CollectionKind.CONTROLLER_CONSTRAINTS, ControllerConstraint, "CC-", 2),
        CollectionSpec(CollectionKind.LOSS_SCENARIOS, LossScenario, "LS-", 2),
        CollectionSpec(CollectionKind.SAFETY_REQUIREMENTS, SafetyRequirement, "SR-", 2),
        CollectionSpec(CollectionKind.MODEL_CHANGES, ModelChange, "MC-", 2),
        CollectionSpec(CollectionKind.VALIDATION_TASKS, ValidationTask),
        CollectionSpec(CollectionKind.INTEGRATION_NOTES, IntegrationNote),
    )
}


@dataclass(frozen=True)
class TraceLink:
    """One fixed reference shape: ``source.field`` holds codes of ``target``.

    A ``target`` of ``None`` means the codes may point at any coded collection.
    """

    source: CollectionKind
    field: str
    target: CollectionKind | None

    @property
    def label(self) -> str:
        return f"{self.source.value}.{self.field}"


TRACE_LINKS: tuple[TraceLink, ...] = (
    TraceLink(CollectionKind.HAZARDS, "linked_accidents", CollectionKind.ACCIDENTS),
    TraceLink(CollectionKind.SAFETY_CONSTRAINTS, "linked_hazards", CollectionKind.HAZARDS),
    TraceLink(CollectionKind.RESPONSIBILITIES, "linked_constraints", CollectionKind.SAFETY_CONSTRAINTS),
    TraceLink(CollectionKind.UNSAFE_CONTROL_ACTIONS, "linked_hazards", CollectionKind.HAZARDS),
    TraceLink(CollectionKind.CONTROLLER_CONSTRAINTS, "linked_ucas", CollectionKind.UNSAFE_CONTROL_ACTIONS),
    TraceLink(CollectionKind.LOSS_SCENARIOS, "linked_ucas", CollectionKind.UNSAFE_CONTROL_ACTIONS),
    TraceLink(CollectionKind.LOSS_SCENARIOS, "linked_hazards", CollectionKind.HAZARDS),
    TraceLink(CollectionKind.SAFETY_REQUIREMENTS, "linked_scenarios", CollectionKind.LOSS_SCENARIOS),
    TraceLink(CollectionKind.MODEL_CHANGES, "linked_drivers", None),
)


def _validation_error_fields(exc: ValidationError) -> list[str]:
    return [".".join(str(part) for part in error["loc"]) for error in exc.errors()]


class Collection(Generic[RecordT]):
    """Ordered, most-recent-first list of records of one kind."""

    def __init__(self, spec: CollectionSpec, records: list[RecordT] | None = None, *, seed: int = 0) -> None:
        self.spec = spec
        self._records: list[RecordT] = list(records or [])
        self.sequencer = CodeSequencer(seed)

    @property
    def kind(self) -> CollectionKind:
        return self.spec.kind

    def _validate(self, data: RecordT | Mapping[str, Any], *, entry: bool = True) -> RecordT:
        """Build a record from *data*; *entry* also applies the form-entry rules."""
        record_type = self.spec.record_type
        payload = data.model_dump() if isinstance(data, CatalogRecord) else dict(data)
        try:
            record = record_type.model_validate(payload)
        except ValidationError as exc:
            raise FormValidationError(
                f"invalid {record_type.__name__}: {exc.error_count()} validation error(s)",
                _validation_error_fields(exc),
            ) from exc
        if entry:
            errors = record.entry_errors()
            if errors:
                raise FormValidationError(
                    f"invalid {record_type.__name__}: " + "; ".join(errors.values()),
                    list(errors),
                )
        return record  # type: ignore[return-value]

    def add(self, record: RecordT | Mapping[str, Any]) -> RecordT:
        """Validate *record*, give it the next id and insert it at the front.

        Raises:
            FormValidationError: If the record fails validation. The collection
                and its sequencer are left untouched.
        """
        validated = self._validate(record)
        created = validated.model_copy(update={"id": self.sequencer.next()})
        self._records.insert(0, created)
        return created

    def update(self, record_id: int, patch: Mapping[str, Any]) -> RecordT | None:
        """Merge *patch* into the record with *record_id* and re-validate it.

        Unknown ids are ignored and return ``None``. The id itself cannot be
        patched.
        """
        for index, current in enumerate(self._records):
            if current.id != record_id:
                continue
            merged = {**current.model_dump(), **dict(patch), "id": record_id}
            updated = self._validate(merged)
            self._records[index] = updated
            return updated
        logger.debug("update ignored for unknown %s id=%s", self.kind.value, record_id)
        return None

    def remove(self, record_id: int) -> bool:
        remaining = [record for record in self._records if record.id != record_id]
        removed = len(remaining) != len(self._records)
        self._records = remaining
        return removed

    def replace_all(self, records: list[RecordT] | list[Mapping[str, Any]]) -> None:
        """Swap in a full list (snapshot hydration) and re-derive the sequencer.

        Stored records are taken as they are; form-entry rules do not apply.
        """
        validated = [self._validate(record, entry=False) for record in records]
        self._records = validated
        self.sequencer.reset_from(validated)

    def list(self) -> list[RecordT]:
        return list(self._records)

    def get(self, record_id: int) -> RecordT | None:
        return next((record for record in self._records if record.id == record_id), None)

    def find_by_code(self, code: str) -> RecordT | None:
        key = code.strip()
        return next((record for record in self._records if record.code == key), None)

    def codes(self) -> list[str]:
        return [record.code for record in self._records if record.code]

    def _replace_record(self, index: int, record: RecordT) -> None:
        self._records[index] = record

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RecordT]:
        return iter(list(self._records))


class EntityCatalog:
    """All artifact collections of one open project.

    Create one catalog per project and pass it to whatever needs it; there is
    no shared module-level instance.
    """

    def __init__(self, collections: Mapping[CollectionKind, Collection[Any]] | None = None) -> None:
        provided = dict(collections or {})
        self._collections: dict[CollectionKind, Collection[Any]] = {
            kind: provided[kind] if kind in provided else Collection(spec)
            for kind, spec in COLLECTION_SPECS.items()
        }

    @classmethod
    def empty(cls) -> "EntityCatalog":
        return cls()

    @classmethod
    def seeded(cls) -> "EntityCatalog":
        """Catalog pre-filled with the insulin-pump walkthrough content."""
        catalog = cls()
        catalog.load_seed()
        return catalog

    def load_seed(self) -> None:
        """Replace every collection in place with the walkthrough content.

        Sequencers restart from the walkthrough counters, which run ahead of
        the highest seeded id for some collections.
        """
        from .seeds import SEED_COUNTERS, seed_records

        for kind, collection in self._collections.items():
            collection.replace_all(seed_records(kind))
            if kind in SEED_COUNTERS:
                collection.sequencer.restart(SEED_COUNTERS[kind])

    def collection(self, kind: CollectionKind | str) -> Collection[Any]:
        return self._collections[CollectionKind(kind)]

    __getitem__ = collection

    def __iter__(self) -> Iterator[Collection[Any]]:
        return iter(self._collections.values())

    def clear(self) -> None:
        """Empty every collection and reset every sequencer to zero."""
        for collection in self._collections.values():
            collection.replace_all([])

    # ------------------------------------------------------------------
    # Codes
    # ------------------------------------------------------------------

    def suggest_code(self, kind: CollectionKind | str) -> str:
        """Propose the next human code for *kind* (``H3``, ``SC-03`` ...)."""
        collection = self.collection(kind)
        numbers = [
            number
            for number in (collection.spec.parse_code(code) for code in collection.codes())
            if number is not None
        ]
        return collection.spec.format_code(max(numbers, default=len(collection)) + 1)

    def reassign_code(self, kind: CollectionKind | str, record_id: int, new_code: str) -> int:
        """Rename one record's code and rewrite every reference to it.

        Returns:
            The number of reference lists that were rewritten. ``0`` when the
            id is unknown or the code is unchanged.

        Raises:
            ValueError: If *new_code* is blank or already used by another record
                of the same collection.
        """
        collection = self.collection(kind)
        target = new_code.strip()
        if not target:
            raise ValueError("new code must be non-empty")
        record = collection.get(record_id)
        if record is None:
            logger.debug("reassign_code ignored for unknown %s id=%s", collection.kind.value, record_id)
            return 0
        clash = collection.find_by_code(target)
        if clash is not None and clash.id != record_id:
            raise ValueError(f"code {target} is already used in {collection.kind.value}")
        if record.code == target:
            return 0

        old_code = record.code
        self._set_code(collection, record_id, target)
        if not old_code:
            return 0
        rewritten = self._rewrite_references(collection.kind, {old_code: target})
        logger.info(
            "reassigned %s %s -> %s (%d reference list(s) rewritten)",
            collection.kind.value,
            old_code,
            target,
            rewritten,
        )
        return rewritten

    def renumber(self, kind: CollectionKind | str) -> dict[str, str]:
        """Give every record of *kind* a sequential code in id (creation) order.

        All renames are applied at once so swapping codes between records
        cannot collide.

        Returns:
            Mapping of old code to new code for every record whose code changed.
        """
        collection = self.collection(kind)
        spec = collection.spec
        oldest_first = sorted(collection.list(), key=lambda record: record.id)
        mapping: dict[str, str] = {}
        for position, record in enumerate(oldest_first, start=1):
            new_code = spec.format_code(position)
            if record.code != new_code:
                if record.code:
                    mapping[record.code] = new_code
                self._set_code(collection, record.id, new_code)
        if mapping:
            self._rewrite_references(collection.kind, mapping)
            logger.info("renumbered %d %s code(s)", len(mapping), collection.kind.value)
        return mapping

    @staticmethod
    def _set_code(collection: Collection[Any], record_id: int, code: str) -> None:
        for index, record in enumerate(collection.list()):
            if record.id == record_id:
                collection._replace_record(index, record.model_copy(update={"code": code}))
                return

    def _rewrite_references(self, kind: CollectionKind, mapping: Mapping[str, str]) -> int:
        rewritten = 0
        for link in TRACE_LINKS:
            if link.target not in (kind, None):
                continue
            source = self.collection(link.source)
            for index, record in enumerate(source.list()):
                codes: list[str] = getattr(record, link.field)
                updated = [mapping.get(code, code) for code in codes]
                if updated != codes:
                    source._replace_record(index, record.model_copy(update={link.field: updated}))
                    rewritten += 1
        return rewritten

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_scope(self, **fields: Any) -> StepOneScope:
        """Build a persistable snapshot; *fields* carries the free-text parts."""
        payload: dict[str, Any] = dict(fields)
        for kind, collection in self._collections.items():
            payload[kind.value] = collection.list()
        return StepOneScope.model_validate(payload)

    def load_scope(self, scope: StepOneScope) -> None:
        """Replace every collection with the snapshot's content."""
        for kind, collection in self._collections.items():
            collection.replace_all(list(getattr(scope, kind.value)))

    def fingerprint(self) -> str:
        payload = {kind.value: collection.list() for kind, collection in self._collections.items()}
        return hashlib.sha256(to_canonical_json(payload).encode("utf-8")).hexdigest()
