"""
Configuration for the mesh editor backend.

Provides defaults that can be overridden via environment variables
or by passing a custom AppConfig to create_app().
"""

import os
from dataclasses import dataclass, field

from ..core.layout import LayoutDirection, parse_direction

UNKNOWN_TYPE_POLICIES = ("accept", "reject")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class AppConfig:
    """Configuration for the backend server and its collaborators."""

    # Server configuration
    host: str = field(default_factory=lambda: os.getenv("MESH_EDITOR_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("MESH_EDITOR_PORT", "8765")))
    cors_origins: list[str] = field(default_factory=lambda: _env_list(
        "MESH_EDITOR_CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173",
    ))
    log_level: str = field(default_factory=lambda: os.getenv("MESH_EDITOR_LOG_LEVEL", "INFO"))

    # External design (synthesis) service
    synthesis_url: str = field(default_factory=lambda: os.getenv(
        "MESH_EDITOR_SYNTHESIS_URL", "http://localhost:3001/api/design/generate"
    ))
    synthesis_timeout: float = field(
        default_factory=lambda: float(os.getenv("MESH_EDITOR_SYNTHESIS_TIMEOUT", "30"))
    )
    # What to do with service types outside the known set: "accept" or "reject"
    unknown_type_policy: str = field(
        default_factory=lambda: os.getenv("MESH_EDITOR_UNKNOWN_TYPE_POLICY", "accept")
    )

    # Layout
    layout_direction: str = field(
        default_factory=lambda: os.getenv("MESH_EDITOR_LAYOUT_DIRECTION", LayoutDirection.HORIZONTAL.value)
    )

    # Whether the store starts with the demo graph
    seed: bool = field(
        default_factory=lambda: os.getenv("MESH_EDITOR_SEED", "true").lower() == "true"
    )

    def __post_init__(self):
        """Normalize and check values that would otherwise fail late."""
        self.unknown_type_policy = self.unknown_type_policy.lower()
        if self.unknown_type_policy not in UNKNOWN_TYPE_POLICIES:
            raise ValueError(
                f"unknown_type_policy must be one of {UNKNOWN_TYPE_POLICIES}, "
                f"got {self.unknown_type_policy!r}"
            )
        self.layout_direction = parse_direction(self.layout_direction).value

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    @property
    def api_base(self) -> str:
        """Base URL clients use to reach this backend's REST API."""
        return os.getenv("MESH_EDITOR_API_BASE", f"http://{self.host}:{self.port}/api")
