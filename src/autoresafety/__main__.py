"""Entry point for `python -m autoresafety` and the `resafety` CLI script."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from autoresafety.board import ProjectBoard
from autoresafety.gateway import FilesystemGateway, PersistenceGateway, gateway_from_settings
from autoresafety.guidance import GUIDANCE_TOPICS, GuidanceNavigator, split_label
from autoresafety.lifecycle import ProjectStatus, ProjectSummary
from autoresafety.models import FormValidationError
from autoresafety.session import LoadOutcome, ProjectWorkspace
from autoresafety.settings import RuntimeSettings
from autoresafety.traceability import TraceabilityResolver

STEP_TOPICS = [f"Step {number}" for number in range(1, 8)]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ReSafety project workspace tools")
    parser.add_argument(
        "--state-root",
        type=Path,
        default=None,
        help="Use a local filesystem store at this path instead of the configured gateway",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    projects = commands.add_parser("projects", help="List projects with their next step")
    projects.add_argument(
        "--view",
        default="all",
        choices=["all", "open", "completed", "canceled"],
        help="Which projects to show",
    )

    create = commands.add_parser("create", help="Create a pending project")
    create.add_argument("name")
    create.add_argument("--domain", default=None)
    create.add_argument("--owner", default=None)
    create.add_argument("--description", default=None)

    status = commands.add_parser("status", help="Change a project's status")
    status.add_argument("project_id", type=int)
    status.add_argument("status", choices=[item.value for item in ProjectStatus if item is not ProjectStatus.PENDING])

    trace = commands.add_parser("trace", help="Report dangling and untraced references of a project")
    trace.add_argument("project_id", type=int)
    trace.add_argument(
        "--prefill",
        default="empty",
        choices=["empty", "seeded"],
        help="Content to check when the project has no saved scope",
    )
    trace.add_argument("--strict", action="store_true", help="Exit 1 when any issue is found")

    guide = commands.add_parser("guide", help="Show step guidance")
    guide.add_argument("topic", nargs="?", default=None, help="Topic title, e.g. 'Step 1'")
    guide.add_argument(
        "--into",
        action="append",
        default=[],
        metavar="LABEL",
        help="Drill into a substep label; repeat to go deeper",
    )
    return parser.parse_args(argv)


def _format_project(project: ProjectSummary) -> str:
    step = project.current_step if project.current_step is not None else "-"
    return f"{project.id!s:>4}  {project.status.value:<12} step {step}  {project.name}  ->  {project.next_step}"


def _build_gateway(args: argparse.Namespace, settings: RuntimeSettings) -> PersistenceGateway:
    if args.state_root is not None:
        return FilesystemGateway(args.state_root.resolve())
    return gateway_from_settings(settings)


def _cmd_projects(board: ProjectBoard, view: str) -> int:
    board.refresh()
    selected = {
        "all": board.projects,
        "open": board.open_projects,
        "completed": board.completed_projects,
        "canceled": board.canceled_projects,
    }[view]
    if not selected:
        print("no projects")
    for project in selected:
        print(_format_project(project))
    return 0


def _cmd_create(board: ProjectBoard, args: argparse.Namespace) -> int:
    try:
        created = board.create(args.name, domain=args.domain, owner=args.owner, description=args.description)
    except FormValidationError as exc:
        logging.error("Invalid project form: %s", ", ".join(exc.fields))
        return 1
    if created is None:
        return 1
    print(_format_project(created))
    return 0


def _cmd_status(board: ProjectBoard, project_id: int, status: str) -> int:
    board.refresh()
    try:
        changed = board.set_status(project_id, status)
    except (KeyError, ValueError) as exc:
        logging.error("Unable to change status: %s", exc)
        return 1
    if not changed:
        return 1
    print(_format_project(board.get(project_id)) if status != ProjectStatus.REMOVED.value else f"removed {project_id}")
    return 0


def _cmd_trace(gateway: PersistenceGateway, args: argparse.Namespace) -> int:
    workspace = ProjectWorkspace(gateway, args.project_id)
    outcome = workspace.load(prefill=args.prefill)
    if outcome is LoadOutcome.FAILED:
        return 1
    report = TraceabilityResolver(workspace.catalog).report()
    for issue in report.issues:
        print(f"{issue.severity.value:<8} {issue.location}: {issue.message}")
    print(f"checked {report.checked_references} reference(s), {len(report.issues)} issue(s)")
    return 1 if args.strict and not report.is_complete else 0


def _cmd_guide(topic: str | None, labels: list[str]) -> int:
    if topic is None:
        for title in STEP_TOPICS:
            print(f"{title}: {GUIDANCE_TOPICS[title].description}")
        return 0
    navigator = GuidanceNavigator()
    navigator.open(topic)
    for label in labels:
        if not navigator.drill_into(label):
            logging.warning("%r has no further guidance", label)
            break
    current = navigator.current
    if current is None:
        return 1
    print(" > ".join(navigator.breadcrumbs))
    if current.description:
        print(current.description)
    for entry in current.substeps:
        label, description = split_label(entry)
        print(f"  - {label}" + (f": {description}" if description else ""))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "guide":
        return _cmd_guide(args.topic, args.into)

    try:
        settings = RuntimeSettings.from_env()
    except ValueError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1
    gateway = _build_gateway(args, settings)

    if args.command == "trace":
        return _cmd_trace(gateway, args)
    board = ProjectBoard(gateway)
    if args.command == "projects":
        return _cmd_projects(board, args.view)
    if args.command == "create":
        return _cmd_create(board, args)
    return _cmd_status(board, args.project_id, args.status)


if __name__ == "__main__":
    raise SystemExit(main())
