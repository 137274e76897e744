from __future__ import annotations

import logging

from .gateway import GatewayError, PersistenceGateway
from .lifecycle import (
    ACTIVE_STATUSES,
    CreateProjectRequest,
    ProjectLifecycle,
    ProjectStatus,
    ProjectSummary,
)

logger = logging.getLogger(__name__)


class ProjectBoard:
    """Home dashboard: the project list and the actions launched from it.

    Status changes are validated locally by :class:`ProjectLifecycle`, sent to
    the gateway, and followed by a refresh so the list always mirrors the
    backend. A gateway failure leaves the current list as it was.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway
        self.projects: list[ProjectSummary] = []

    def refresh(self) -> list[ProjectSummary]:
        try:
            self.projects = self.gateway.list_open_projects()
        except GatewayError as exc:
            logger.error("could not load projects: %s", exc)
            self.projects = []
        return self.projects

    @property
    def open_projects(self) -> list[ProjectSummary]:
        return [project for project in self.projects if project.status in ACTIVE_STATUSES]

    @property
    def completed_projects(self) -> list[ProjectSummary]:
        return [project for project in self.projects if project.status is ProjectStatus.COMPLETED]

    @property
    def canceled_projects(self) -> list[ProjectSummary]:
        return [project for project in self.projects if project.status is ProjectStatus.CANCELED]

    def get(self, project_id: int) -> ProjectSummary:
        for project in self.projects:
            if project.id == project_id:
                return project
        raise KeyError(f"unknown project id: {project_id}")

    def create(
        self,
        name: str | None,
        *,
        domain: str | None = None,
        owner: str | None = None,
        description: str | None = None,
    ) -> ProjectSummary | None:
        """Create a pending project; ``None`` when the backend call fails.

        Raises:
            FormValidationError: Before any backend call when the form is invalid.
        """
        request = CreateProjectRequest.from_form(name=name, domain=domain, owner=owner, description=description)
        try:
            created = self.gateway.create_minimal_project(request)
        except GatewayError as exc:
            logger.error("could not create project %r: %s", request.name, exc)
            return None
        if created.id is None:
            logger.warning("backend returned no id for project %r", request.name)
        self.refresh()
        return created

    def start(self, project_id: int) -> str | None:
        """Start (or keep going with) a project and return the route to open."""
        project = self.get(project_id)
        if project.status is ProjectStatus.IN_PROGRESS:
            return project.route
        started = ProjectLifecycle(project.model_copy()).start()
        if not self._send_status(project_id, started.status):
            return None
        return started.route

    def resume(self, project_id: int) -> str:
        return ProjectLifecycle(self.get(project_id).model_copy()).resume().route

    def set_status(self, project_id: int, status: ProjectStatus | str) -> bool:
        """Apply a status change; illegal transitions raise ``ValueError``."""
        updated = ProjectLifecycle(self.get(project_id).model_copy()).transition_to(status)
        return self._send_status(project_id, updated.status)

    def remove(self, project_id: int) -> bool:
        return self.set_status(project_id, ProjectStatus.REMOVED)

    def _send_status(self, project_id: int, status: ProjectStatus) -> bool:
        try:
            self.gateway.update_project_status(project_id, status)
        except GatewayError as exc:
            logger.error("could not set project %s to %s: %s", project_id, status.value, exc)
            return False
        self.refresh()
        return True
