from __future__ import annotations

import hashlib
import logging
from enum import Enum

from .canonical import to_canonical_json
from .catalog import EntityCatalog
from .gateway import GatewayError, PersistenceGateway
from .models import GeneralSummary, StepOneScope
from .seeds import SYSTEM_DEFINITION

logger = logging.getLogger(__name__)

PREFILL_EMPTY = "empty"
PREFILL_SEEDED = "seeded"
# Older clients asked for the walkthrough content as "ai".
_PREFILL_ALIASES = {"ai": PREFILL_SEEDED, "seed": PREFILL_SEEDED}


class LoadOutcome(str, Enum):
    LOADED = "loaded"
    PREFILLED = "prefilled"
    FAILED = "failed"
    CANCELLED = "cancelled"


def normalize_prefill(prefill: str | None) -> str:
    if prefill is None:
        return PREFILL_SEEDED
    key = prefill.strip().lower()
    key = _PREFILL_ALIASES.get(key, key)
    if key not in {PREFILL_EMPTY, PREFILL_SEEDED}:
        raise ValueError(f"prefill must be one of: {PREFILL_EMPTY}, {PREFILL_SEEDED}; got: {prefill!r}")
    return key


class PendingLoad:
    """One load of the workspace; cancel it and its result is never applied."""

    def __init__(self, workspace: "ProjectWorkspace", prefill: str) -> None:
        self.workspace = workspace
        self.prefill = prefill
        self.cancelled = False
        self.outcome: LoadOutcome | None = None

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def superseded(self) -> bool:
        return self.cancelled or self.workspace.closed

    def run(self) -> LoadOutcome:
        if self.outcome is not None:
            return self.outcome
        self.outcome = self._run()
        return self.outcome

    def _run(self) -> LoadOutcome:
        workspace = self.workspace
        if self.superseded:
            return LoadOutcome.CANCELLED
        if workspace.project_id is None:
            logger.warning("no project id; showing %s content", self.prefill)
            workspace.apply_prefill(self.prefill)
            return LoadOutcome.PREFILLED
        try:
            scope = workspace.gateway.load_step_one_scope(workspace.project_id)
        except GatewayError as exc:
            logger.error("loading project %s failed: %s", workspace.project_id, exc)
            if self.superseded:
                return LoadOutcome.CANCELLED
            workspace.apply_prefill(self.prefill)
            return LoadOutcome.FAILED
        if self.superseded:
            logger.debug("discarding load of project %s: superseded", workspace.project_id)
            return LoadOutcome.CANCELLED
        if scope is None:
            workspace.apply_prefill(self.prefill)
            return LoadOutcome.PREFILLED
        workspace.apply_scope(scope)
        return LoadOutcome.LOADED


class ProjectWorkspace:
    """Editable state of one open project: the catalog plus the free-text summary."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        project_id: int | None,
        catalog: EntityCatalog | None = None,
    ) -> None:
        self.gateway = gateway
        self.project_id = project_id
        self.catalog = catalog if catalog is not None else EntityCatalog.empty()
        self.analysis_purpose = ""
        self.assumptions = ""
        self.system_definition = ""
        self.system_boundary = ""
        self.out_of_scope = ""
        self.objectives_text = ""
        self.closed = False
        self._pending: PendingLoad | None = None
        self._baseline = self._state_fingerprint()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def begin_load(self, prefill: str | None = None) -> PendingLoad:
        """Start a load; any earlier load that has not finished is cancelled."""
        if self.closed:
            raise RuntimeError("workspace is closed")
        if self._pending is not None:
            self._pending.cancel()
        self._pending = PendingLoad(self, normalize_prefill(prefill))
        return self._pending

    def load(self, prefill: str | None = None) -> LoadOutcome:
        return self.begin_load(prefill).run()

    def apply_prefill(self, prefill: str) -> None:
        if normalize_prefill(prefill) == PREFILL_EMPTY:
            self.catalog.clear()
            self._set_summary(GeneralSummary())
            self.objectives_text = ""
        else:
            self.catalog.load_seed()
            self._set_summary(GeneralSummary(system_definition=SYSTEM_DEFINITION))
            self.objectives_text = ""
        self._baseline = self._state_fingerprint()

    def apply_scope(self, scope: StepOneScope) -> None:
        self.catalog.load_scope(scope)
        self._set_summary(scope.general_summary)
        self.objectives_text = scope.objectives
        self._baseline = self._state_fingerprint()

    def _set_summary(self, summary: GeneralSummary) -> None:
        self.analysis_purpose = summary.analysis_purpose
        self.assumptions = summary.assumptions
        self.system_definition = summary.system_definition
        self.system_boundary = summary.system_boundary
        self.out_of_scope = summary.out_of_scope

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def general_summary(self) -> GeneralSummary:
        return GeneralSummary(
            analysis_purpose=self.analysis_purpose,
            assumptions=self.assumptions,
            system_definition=self.system_definition,
            system_boundary=self.system_boundary,
            out_of_scope=self.out_of_scope,
        )

    def snapshot(self, last_updated_by: str | None = None) -> StepOneScope:
        return self.catalog.to_scope(
            id=self.project_id,
            last_updated_by=last_updated_by,
            general_summary=self.general_summary(),
            objectives=self.objectives_text,
        )

    def save(self, last_updated_by: str | None = None) -> bool:
        """Send the snapshot to the gateway.

        Returns ``False`` without touching local state when there is no
        project id, the workspace is closed, or the gateway fails.
        """
        if self.closed:
            logger.warning("save ignored: workspace for project %s is closed", self.project_id)
            return False
        if self.project_id is None:
            logger.warning("save ignored: no project id")
            return False
        scope = self.snapshot(last_updated_by)
        try:
            self.gateway.save_step_one_scope(self.project_id, scope)
        except GatewayError as exc:
            logger.error("saving project %s failed: %s", self.project_id, exc)
            return False
        self._baseline = self._state_fingerprint()
        logger.info("saved project %s", self.project_id)
        return True

    def close(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.closed = True

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def _state_fingerprint(self) -> str:
        text = to_canonical_json(
            {
                "catalog": self.catalog.fingerprint(),
                "summary": self.general_summary(),
                "objectives": self.objectives_text,
            }
        )
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @property
    def is_dirty(self) -> bool:
        return self._state_fingerprint() != self._baseline
