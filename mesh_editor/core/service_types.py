"""
Service type tables - per-type rendering and behavior profiles.

Every member of ServiceType has an entry in SERVICE_PROFILES. Tags that
arrive from outside the enumeration (typically from the synthesis service)
resolve to GENERIC_PROFILE instead of being rejected.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from .models import ServiceStatus, ServiceType


class ServiceRole(str, Enum):
    """Where a service usually sits in a flow."""
    SOURCE = "source"          # Produces data (brokers, endpoints)
    PROCESSOR = "processor"    # Consumes and emits (filters, transforms, AI)
    SINK = "sink"              # Terminal storage
    ROUTER = "router"          # Fans out or fans in (splitter, aggregator, logic)


@dataclass(frozen=True)
class ServiceProfile:
    """How a service type is drawn and what attributes it usually carries."""
    title: str
    icon: str
    color: str
    role: ServiceRole
    attributes: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["role"] = self.role.value
        data["attributes"] = list(self.attributes)
        return data


SERVICE_PROFILES: dict[ServiceType, ServiceProfile] = {
    ServiceType.MESSAGE_BROKER: ServiceProfile(
        "Message Broker", "radio", "#a855f7", ServiceRole.SOURCE, ("address", "topic")),
    ServiceType.HTTP_ENDPOINT: ServiceProfile(
        "HTTP Endpoint", "globe", "#3b82f6", ServiceRole.SOURCE, ("address",)),
    ServiceType.DATABASE: ServiceProfile(
        "Database", "database", "#22c55e", ServiceRole.SINK, ("address",)),
    ServiceType.FILTER: ServiceProfile(
        "Filter", "filter", "#eab308", ServiceRole.PROCESSOR, ("condition",)),
    ServiceType.TRANSFORM: ServiceProfile(
        "Transform", "workflow", "#f97316", ServiceRole.PROCESSOR, ("description",)),
    ServiceType.GATEWAY: ServiceProfile(
        "Gateway", "shield", "#06b6d4", ServiceRole.PROCESSOR, ("address",)),
    ServiceType.AI: ServiceProfile(
        "AI Processor", "sparkles", "#ec4899", ServiceRole.PROCESSOR, ("model", "prompt")),
    ServiceType.PROTOCOL_BRIDGE: ServiceProfile(
        "Protocol Bridge", "plug", "#8b5cf6", ServiceRole.PROCESSOR, ("mcp_server_url", "mcp_tool")),
    ServiceType.SPLITTER: ServiceProfile(
        "Splitter", "split", "#14b8a6", ServiceRole.ROUTER),
    ServiceType.AGGREGATOR: ServiceProfile(
        "Aggregator", "merge", "#0ea5e9", ServiceRole.ROUTER),
    ServiceType.LOGIC: ServiceProfile(
        "Logic", "git-branch", "#f43f5e", ServiceRole.ROUTER, ("condition",)),
}

GENERIC_PROFILE = ServiceProfile("Service", "box", "#6b7280", ServiceRole.PROCESSOR)

STATUS_COLORS: dict[ServiceStatus, str] = {
    ServiceStatus.HEALTHY: "#22c55e",
    ServiceStatus.WARNING: "#eab308",
    ServiceStatus.ERROR: "#ef4444",
    ServiceStatus.OFFLINE: "#6b7280",
}

# Short wire tags used by the synthesis service and older canvases
SERVICE_TYPE_ALIASES: dict[str, ServiceType] = {
    "mqtt": ServiceType.MESSAGE_BROKER,
    "kafka": ServiceType.MESSAGE_BROKER,
    "broker": ServiceType.MESSAGE_BROKER,
    "http": ServiceType.HTTP_ENDPOINT,
    "rest": ServiceType.HTTP_ENDPOINT,
    "api": ServiceType.HTTP_ENDPOINT,
    "db": ServiceType.DATABASE,
    "postgres": ServiceType.DATABASE,
    "mcp": ServiceType.PROTOCOL_BRIDGE,
    "bridge": ServiceType.PROTOCOL_BRIDGE,
}


def as_service_type(tag: str) -> Optional[ServiceType]:
    """Resolve a tag (canonical or alias, any case) to a ServiceType, or None."""
    key = (tag or "").strip().lower()
    try:
        return ServiceType(key)
    except ValueError:
        return SERVICE_TYPE_ALIASES.get(key)


def resolve_service_type(tag: str) -> str:
    """
    Normalize a service type tag for storage.

    Known tags and aliases become the canonical enum value; anything else
    is returned unchanged so the node keeps what the caller declared.
    """
    service_type = as_service_type(tag)
    return service_type.value if service_type else tag


def is_known_service_type(tag: str) -> bool:
    return as_service_type(tag) is not None


def profile_for(tag: str) -> ServiceProfile:
    """Get the profile for a service type, falling back to GENERIC_PROFILE."""
    service_type = as_service_type(tag)
    if service_type is None:
        return GENERIC_PROFILE
    return SERVICE_PROFILES[service_type]
