from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

GATEWAY_CHOICES = ("filesystem", "http")


@dataclass(frozen=True)
class RuntimeSettings:
    """Runtime settings loaded from environment with fail-fast validation."""

    state_store_root: str = "state_store"
    backend_api_url: str = "http://localhost:8080/api"
    gateway: str = "filesystem"
    http_timeout_seconds: int = 15
    api_token: str = ""
    last_updated_by: str = "admin"

    @classmethod
    def from_env(cls, repo_root: Path | None = None) -> "RuntimeSettings":
        """Read ``RESAFETY_*`` variables, after loading ``.env`` from *repo_root* (or cwd)."""
        env_path = (repo_root if repo_root is not None else Path.cwd()) / ".env"
        if env_path.is_file():
            load_dotenv(env_path)
        return cls(
            state_store_root=os.getenv("RESAFETY_STATE_STORE_ROOT", "state_store"),
            backend_api_url=os.getenv("RESAFETY_BACKEND_API_URL", "http://localhost:8080/api"),
            gateway=os.getenv("RESAFETY_GATEWAY", "filesystem"),
            http_timeout_seconds=_get_env_int("RESAFETY_HTTP_TIMEOUT_SECONDS", default=15, minimum=1, maximum=300),
            api_token=os.getenv("RESAFETY_API_TOKEN", ""),
            last_updated_by=os.getenv("RESAFETY_LAST_UPDATED_BY", "admin"),
        ).normalized()

    def normalized(self) -> "RuntimeSettings":
        """Validate and normalize all fields. Raises ValueError on invalid configuration."""
        if not self.state_store_root.strip():
            raise ValueError("RESAFETY_STATE_STORE_ROOT must be non-empty")

        backend_api_url = self.backend_api_url.strip().rstrip("/")
        if not backend_api_url.startswith(("http://", "https://")):
            raise ValueError(f"RESAFETY_BACKEND_API_URL must be an http(s) URL, got: {self.backend_api_url!r}")

        gateway = self.gateway.strip().lower()
        if gateway not in GATEWAY_CHOICES:
            raise ValueError(f"RESAFETY_GATEWAY must be one of: {', '.join(GATEWAY_CHOICES)}")

        if not 1 <= self.http_timeout_seconds <= 300:
            raise ValueError(
                f"RESAFETY_HTTP_TIMEOUT_SECONDS must be between 1 and 300, got: {self.http_timeout_seconds}"
            )

        last_updated_by = self.last_updated_by.strip()
        if not last_updated_by:
            raise ValueError("RESAFETY_LAST_UPDATED_BY must be non-empty")

        return RuntimeSettings(
            state_store_root=self.state_store_root,
            backend_api_url=backend_api_url,
            gateway=gateway,
            http_timeout_seconds=self.http_timeout_seconds,
            api_token=self.api_token.strip(),
            last_updated_by=last_updated_by,
        )

    def state_store_path(self, repo_root: Path) -> Path:
        path = Path(self.state_store_root)
        return path if path.is_absolute() else repo_root / path


def _get_env_int(name: str, default: int, minimum: int, maximum: int = 10_000_000) -> int:
    """Parse an integer from an environment variable with bounds checking.

    Raises:
        ValueError: If the value is not an integer or is outside bounds.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {parsed}")
    if parsed > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got: {parsed}")
    return parsed
