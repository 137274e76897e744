from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .catalog import TRACE_LINKS, Collection, CollectionKind, EntityCatalog, TraceLink
from .models import CatalogRecord, Severity, ValidationIssue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceCheck:
    resolved: list[str]
    dangling: list[str]

    @property
    def ok(self) -> bool:
        return not self.dangling


@dataclass(frozen=True)
class Dependent:
    """A record that references a code through one trace link."""

    link: TraceLink
    record: CatalogRecord


@dataclass
class TraceabilityReport:
    issues: list[ValidationIssue] = field(default_factory=list)
    checked_references: int = 0

    @property
    def dangling(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.message.startswith("dangling")]

    @property
    def untraced(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.message.startswith("untraced")]

    @property
    def is_complete(self) -> bool:
        return not self.issues


def _reference_field(record: CatalogRecord, field_name: str | None) -> str:
    if field_name is not None:
        return field_name
    fields = list(record.reference_fields())
    if len(fields) != 1:
        raise ValueError(
            f"{type(record).__name__} has {len(fields)} reference fields; pass field_name explicitly"
        )
    return fields[0]


def validate(
    record: CatalogRecord,
    target: Collection | Iterable[CatalogRecord],
    field_name: str | None = None,
) -> ReferenceCheck:
    """Split the codes *record* references into resolved and dangling ones.

    Neither argument is mutated. Order and duplicates follow the record's
    decoded reference list.
    """
    attribute = _reference_field(record, field_name)
    codes: list[str] = list(getattr(record, attribute))
    known = {candidate.code for candidate in target if candidate.code}
    resolved = [code for code in codes if code in known]
    dangling = [code for code in codes if code not in known]
    return ReferenceCheck(resolved=resolved, dangling=dangling)


def references_to(
    code: str,
    collection: Collection | Iterable[CatalogRecord],
    field_name: str | None = None,
) -> list[CatalogRecord]:
    """Return the records of *collection* whose reference list includes *code*."""
    key = code.strip()
    matches: list[CatalogRecord] = []
    for record in collection:
        fields = record.reference_fields()
        if field_name is not None:
            fields = {field_name: fields.get(field_name, [])}
        if any(key in codes for codes in fields.values()):
            matches.append(record)
    return matches


class TraceabilityResolver:
    """Read-only traceability queries over one catalog."""

    def __init__(self, catalog: EntityCatalog, links: tuple[TraceLink, ...] = TRACE_LINKS) -> None:
        self.catalog = catalog
        self.links = links

    def _target_codes(self, link: TraceLink) -> set[str]:
        if link.target is not None:
            return set(self.catalog.collection(link.target).codes())
        return {code for collection in self.catalog if collection.spec.is_coded for code in collection.codes()}

    def check(self, kind: CollectionKind | str, record_id: int) -> dict[str, ReferenceCheck]:
        """Check every outbound link of one record, keyed by field name."""
        source_kind = CollectionKind(kind)
        record = self.catalog.collection(source_kind).get(record_id)
        if record is None:
            return {}
        results: dict[str, ReferenceCheck] = {}
        for link in self.links:
            if link.source != source_kind:
                continue
            known = self._target_codes(link)
            codes: list[str] = list(getattr(record, link.field))
            results[link.field] = ReferenceCheck(
                resolved=[code for code in codes if code in known],
                dangling=[code for code in codes if code not in known],
            )
        return results

    def dependents_of(self, kind: CollectionKind | str, code: str) -> list[Dependent]:
        """Everything that references *code* of *kind*; ask before deleting it."""
        target_kind = CollectionKind(kind)
        found: list[Dependent] = []
        for link in self.links:
            if link.target not in (target_kind, None):
                continue
            source = self.catalog.collection(link.source)
            for record in references_to(code, source, link.field):
                found.append(Dependent(link=link, record=record))
        return found

    def report(self) -> TraceabilityReport:
        """Walk every trace link and collect dangling and untraced records.

        Issues are warnings: gaps are reported for the analyst to close, the
        catalog is never repaired here.
        """
        report = TraceabilityReport()
        for link in self.links:
            known = self._target_codes(link)
            target_name = link.target.value if link.target is not None else "any collection"
            for record in self.catalog.collection(link.source):
                codes: list[str] = list(getattr(record, link.field))
                report.checked_references += len(codes)
                location = f"{link.label}[{record.code or record.id}]"
                if not codes and link.target is not None:
                    report.issues.append(
                        ValidationIssue(
                            Severity.WARNING,
                            location,
                            f"untraced: {record.code or f'#{record.id}'} references no {target_name}",
                        )
                    )
                for code in codes:
                    if code in known:
                        continue
                    report.issues.append(
                        ValidationIssue(
                            Severity.WARNING,
                            location,
                            f"dangling reference {code}: not found in {target_name}",
                        )
                    )
        if report.issues:
            logger.warning(
                "traceability check found %d issue(s) across %d reference(s)",
                len(report.issues),
                report.checked_references,
            )
        return report
