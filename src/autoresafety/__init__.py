from importlib.metadata import PackageNotFoundError, version

from .board import ProjectBoard
from .catalog import COLLECTION_SPECS, TRACE_LINKS, Collection, CollectionKind, EntityCatalog, TraceLink
from .codec import decode, encode, unique_codes
from .gateway import FilesystemGateway, GatewayError, HttpGateway, PersistenceGateway
from .guidance import GUIDANCE_TOPICS, GuidanceNavigator, GuidanceTopic, resolve_topic_key, split_label
from .lifecycle import (
    CreateProjectRequest,
    ProjectLifecycle,
    ProjectStatus,
    ProjectSummary,
    next_step_label,
    normalize_status,
    route_for_step,
)
from .models import FormValidationError, Severity, StepOneScope, ValidationIssue
from .sequencer import CodeSequencer
from .session import LoadOutcome, PendingLoad, ProjectWorkspace
from .settings import RuntimeSettings
from .traceability import TraceabilityReport, TraceabilityResolver, references_to, validate


def get_version() -> str:
    try:
        return version(__name__)
    except PackageNotFoundError:
        return "0.0.0"


__all__ = [
    "COLLECTION_SPECS",
    "CodeSequencer",
    "Collection",
    "CollectionKind",
    "CreateProjectRequest",
    "EntityCatalog",
    "FilesystemGateway",
    "FormValidationError",
    "GUIDANCE_TOPICS",
    "GatewayError",
    "GuidanceNavigator",
    "GuidanceTopic",
    "HttpGateway",
    "LoadOutcome",
    "PendingLoad",
    "PersistenceGateway",
    "ProjectBoard",
    "ProjectLifecycle",
    "ProjectStatus",
    "ProjectSummary",
    "ProjectWorkspace",
    "RuntimeSettings",
    "Severity",
    "StepOneScope",
    "TRACE_LINKS",
    "TraceLink",
    "TraceabilityReport",
    "TraceabilityResolver",
    "ValidationIssue",
    "decode",
    "encode",
    "get_version",
    "next_step_label",
    "normalize_status",
    "references_to",
    "resolve_topic_key",
    "route_for_step",
    "split_label",
    "unique_codes",
    "validate",
]
