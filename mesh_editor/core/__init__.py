"""
Mesh Editor Core - Shared models, validation, service tables and layout.

This module provides the core functionality used by the store, the backend
API and the MCP tools, ensuring a single source of truth for all graph logic.
"""

from .models import (
    # Enums
    ServiceType,
    ServiceStatus,
    # Core models
    Position,
    GraphNode,
    GraphEdge,
    GraphSnapshot,
    edge_id,
    generate_node_id,
    # Change descriptors
    PositionChange,
    SelectChange,
    RemoveChange,
    NodeChange,
    EdgeChange,
    # Request models (for API)
    CreateNodeRequest,
    UpdateNodeRequest,
    ConnectRequest,
    NodeClickRequest,
    SelectionRequest,
    LayoutRequest,
    DesignRequest,
)

from .service_types import (
    ServiceProfile,
    ServiceRole,
    SERVICE_PROFILES,
    GENERIC_PROFILE,
    profile_for,
    resolve_service_type,
    is_known_service_type,
)
from .validation import (
    ConnectionRejected,
    ConnectResult,
    check_connection,
    validate_graph,
    validation_summary,
    ValidationIssue,
    IssueSeverity,
)
from .layout import (
    LayoutDirection,
    LayoutConfig,
    DEFAULT_LAYOUT,
    parse_direction,
    compute_ranks,
    layered_layout,
    fallback_position,
)
from .seed import seed_nodes, seed_edges

__all__ = [
    # Enums
    "ServiceType",
    "ServiceStatus",
    # Models
    "Position",
    "GraphNode",
    "GraphEdge",
    "GraphSnapshot",
    "edge_id",
    "generate_node_id",
    # Change descriptors
    "PositionChange",
    "SelectChange",
    "RemoveChange",
    "NodeChange",
    "EdgeChange",
    # Request models
    "CreateNodeRequest",
    "UpdateNodeRequest",
    "ConnectRequest",
    "NodeClickRequest",
    "SelectionRequest",
    "LayoutRequest",
    "DesignRequest",
    # Service types
    "ServiceProfile",
    "ServiceRole",
    "SERVICE_PROFILES",
    "GENERIC_PROFILE",
    "profile_for",
    "resolve_service_type",
    "is_known_service_type",
    # Validation
    "ConnectionRejected",
    "ConnectResult",
    "check_connection",
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Layout
    "LayoutDirection",
    "LayoutConfig",
    "DEFAULT_LAYOUT",
    "parse_direction",
    "compute_ranks",
    "layered_layout",
    "fallback_position",
    # Seed graph
    "seed_nodes",
    "seed_edges",
]
