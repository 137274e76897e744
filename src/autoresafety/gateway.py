from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import urllib.error
import urllib.request
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterator, Protocol

from pydantic import ValidationError

from .lifecycle import CreateProjectRequest, ProjectStatus, ProjectSummary, StatusUpdateRequest
from .models import StepOneScope
from .settings import RuntimeSettings

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """A load or save against the persistence backend failed."""


class PersistenceGateway(Protocol):
    def list_open_projects(self) -> list[ProjectSummary]: ...

    def create_minimal_project(self, request: CreateProjectRequest) -> ProjectSummary: ...

    def update_project_status(self, project_id: int, status: ProjectStatus) -> ProjectSummary | None: ...

    def load_step_one_scope(self, project_id: int) -> StepOneScope | None: ...

    def save_step_one_scope(self, project_id: int, scope: StepOneScope) -> None: ...


def _is_empty_payload(payload: Any) -> bool:
    return payload is None or (isinstance(payload, (dict, list, str)) and not payload)


def _parse_scope(payload: Any, source: str) -> StepOneScope | None:
    if _is_empty_payload(payload):
        return None
    if not isinstance(payload, dict):
        raise GatewayError(f"scope payload from {source} must be an object, got {type(payload).__name__}")
    try:
        return StepOneScope.model_validate(payload)
    except ValidationError as exc:
        raise GatewayError(f"scope payload from {source} failed validation: {exc}") from exc


def _parse_projects(payload: Any, source: str) -> list[ProjectSummary]:
    if _is_empty_payload(payload):
        return []
    if not isinstance(payload, list):
        raise GatewayError(f"project list from {source} must be an array, got {type(payload).__name__}")
    projects: list[ProjectSummary] = []
    for index, item in enumerate(payload):
        try:
            projects.append(ProjectSummary.from_payload(item))
        except ValueError as exc:
            logger.warning("skipping malformed project #%d from %s: %s", index, source, exc)
    return projects


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

_LOCK_SUFFIX = ".lock"


@contextmanager
def _locked_file(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on a ``.lock`` sidecar of *path*.

    The sidecar keeps the lock handle stable while the data file itself is
    replaced with ``os.replace``.
    """
    lock_path = path.with_suffix(path.suffix + _LOCK_SUFFIX)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as lock_handle:
        fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _read_json(path: Path, label: str) -> Any:
    """Read a JSON file; a missing file reads as ``None``.

    Raises:
        GatewayError: If the file is not valid UTF-8 JSON.
    """
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise GatewayError(f"{label} at {path} contains invalid UTF-8 data") from exc
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise GatewayError(f"{label} at {path} is not valid JSON") from exc


def _now() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Filesystem backend
# ---------------------------------------------------------------------------

class FilesystemGateway:
    """Local JSON store with the same contract as the REST backend.

    Layout::

        <root>/projects/index.json
        <root>/projects/<id>/step_one_scope.json
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.projects_dir = self.root / "projects"
        self.projects_dir.mkdir(parents=True, exist_ok=True)

    @property
    def index_path(self) -> Path:
        return self.projects_dir / "index.json"

    def scope_path(self, project_id: int) -> Path:
        return self.projects_dir / str(project_id) / "step_one_scope.json"

    def _read_index(self) -> list[dict[str, Any]]:
        payload = _read_json(self.index_path, "project index")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise GatewayError(f"project index at {self.index_path} must be a JSON array")
        return [item for item in payload if isinstance(item, dict)]

    def _write_index(self, items: list[dict[str, Any]]) -> None:
        _atomic_write_text(self.index_path, json.dumps(items, indent=2, sort_keys=True))

    def list_projects(self) -> list[ProjectSummary]:
        """Every stored project, including removed ones."""
        with _locked_file(self.index_path):
            return _parse_projects(self._read_index(), str(self.index_path))

    def list_open_projects(self) -> list[ProjectSummary]:
        return [project for project in self.list_projects() if project.status is not ProjectStatus.REMOVED]

    def create_minimal_project(self, request: CreateProjectRequest) -> ProjectSummary:
        with _locked_file(self.index_path):
            items = self._read_index()
            next_id = max((int(item.get("id") or 0) for item in items), default=0) + 1
            timestamp = _now()
            record = {
                **request.to_payload(),
                "id": next_id,
                "status": ProjectStatus.PENDING.value,
                "createdAt": timestamp,
                "updatedAt": timestamp,
            }
            items.append(record)
            self._write_index(items)
        logger.info("created project %s (%s)", next_id, request.name)
        return ProjectSummary.from_payload(record)

    def update_project_status(self, project_id: int, status: ProjectStatus) -> ProjectSummary | None:
        with _locked_file(self.index_path):
            items = self._read_index()
            for item in items:
                if item.get("id") != project_id:
                    continue
                item["status"] = status.value
                item["updatedAt"] = _now()
                if status is ProjectStatus.IN_PROGRESS and not item.get("currentStep"):
                    item["currentStep"] = 1
                self._write_index(items)
                return ProjectSummary.from_payload(item)
        raise GatewayError(f"unknown project id: {project_id}")

    def load_step_one_scope(self, project_id: int) -> StepOneScope | None:
        path = self.scope_path(project_id)
        return _parse_scope(_read_json(path, "step one scope"), str(path))

    def save_step_one_scope(self, project_id: int, scope: StepOneScope) -> None:
        path = self.scope_path(project_id)
        payload = scope.model_copy(update={"id": project_id}).to_payload()
        with _locked_file(path):
            _atomic_write_text(path, json.dumps(payload, indent=2, sort_keys=True))
        logger.debug("saved step one scope for project %s to %s", project_id, path)


# ---------------------------------------------------------------------------
# REST backend
# ---------------------------------------------------------------------------

class HttpGateway:
    """JSON client for the project REST backend."""

    def __init__(self, base_url: str, *, timeout: float = 15.0, token: str | None = None) -> None:
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request_json(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        """Send one request and return the decoded JSON body (``None`` when empty).

        Raises:
            GatewayError: On HTTP errors, unreachable hosts or invalid JSON.
        """
        url = f"{self.base_url}{path}"
        headers = self._headers()
        data: bytes | None = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(url, method=method, headers=headers, data=data)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = ""
            try:
                detail = exc.read().decode("utf-8", errors="replace")[:500]
            except OSError:
                pass
            logger.error("HTTP %d from %s %s: %s", exc.code, method, url, detail)
            raise GatewayError(f"HTTP {exc.code} from {method} {url}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            logger.error("URL error reaching %s: %s", url, exc.reason)
            raise GatewayError(f"Failed to reach {url}: {exc.reason}") from exc
        except TimeoutError as exc:
            logger.error("Timed out after %ss reaching %s", self.timeout, url)
            raise GatewayError(f"Timed out reaching {url}") from exc
        if not body.strip():
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON response from %s", url)
            raise GatewayError(f"Invalid JSON response from {url}") from exc

    def list_open_projects(self) -> list[ProjectSummary]:
        return _parse_projects(self._request_json("GET", "/project-resume"), "/project-resume")

    def create_minimal_project(self, request: CreateProjectRequest) -> ProjectSummary:
        response = self._request_json("POST", "/projects/minimal", request.to_payload())
        if not isinstance(response, dict):
            logger.warning("create project returned no record; using the request fields")
            response = {}
        # The backend may echo only part of the record; fill the rest from the request.
        merged = {**request.to_payload(), **{key: value for key, value in response.items() if value is not None}}
        return ProjectSummary.from_payload(merged)

    def update_project_status(self, project_id: int, status: ProjectStatus) -> ProjectSummary | None:
        body = StatusUpdateRequest(id=project_id, status=status).to_payload()
        response = self._request_json("POST", f"/projects/{project_id}/status", body)
        if not isinstance(response, dict):
            return None
        try:
            return ProjectSummary.from_payload(response)
        except ValueError as exc:
            logger.warning("ignoring malformed status response for project %s: %s", project_id, exc)
            return None

    def load_step_one_scope(self, project_id: int) -> StepOneScope | None:
        path = f"/projects/step_one_project_information/{project_id}"
        return _parse_scope(self._request_json("GET", path), path)

    def save_step_one_scope(self, project_id: int, scope: StepOneScope) -> None:
        payload = scope.model_copy(update={"id": project_id}).to_payload()
        self._request_json("POST", "/projects/step_one_project_update", payload)


def gateway_from_settings(settings: RuntimeSettings, repo_root: Path | None = None) -> PersistenceGateway:
    if settings.gateway == "http":
        return HttpGateway(
            settings.backend_api_url,
            timeout=float(settings.http_timeout_seconds),
            token=settings.api_token or None,
        )
    return FilesystemGateway(settings.state_store_path(repo_root if repo_root is not None else Path.cwd()))
