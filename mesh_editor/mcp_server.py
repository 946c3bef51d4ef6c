#!/usr/bin/env python3
"""
Mesh Editor MCP Server

Provides MCP tools for AI agents to inspect and edit the service mesh.
All changes are immediately reflected in connected canvases via WebSocket updates.
"""

import json
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .api_client import api_request

# Create MCP server
mcp = FastMCP("mesh-editor")


# ============================================================================
# INSPECTION TOOLS
# ============================================================================

@mcp.tool()
def mesh_get_snapshot() -> str:
    """
    Get the full current mesh.

    Returns every node (id, label, service_type, status, position,
    attributes), every edge, the selected node id and the version. Use this
    to understand the mesh before making changes.
    """
    result = api_request("GET", "/mesh")
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_validate() -> str:
    """
    Check the mesh for structural problems.

    Reports dangling or duplicate edges, self-loops and stale selection as
    errors, disconnected services as warnings, and unknown service types
    as info.
    """
    result = api_request("GET", "/mesh/validate")
    return json.dumps(result, indent=2)


# ============================================================================
# NODE TOOLS
# ============================================================================

@mcp.tool()
def mesh_add_node(
    label: str,
    service_type: str = "http-endpoint",
    status: str = "healthy",
    x: float = 0,
    y: float = 0,
    attributes: Optional[dict] = None,
    node_id: Optional[str] = None,
) -> str:
    """
    Add a service to the mesh.

    Args:
        label: Display name
        service_type: message-broker, http-endpoint, database, filter,
            transform, gateway, ai, protocol-bridge, splitter, aggregator
            or logic (short forms like mqtt, http, db are accepted)
        status: healthy, warning, error or offline
        x: Canvas x position
        y: Canvas y position
        attributes: Type-specific settings (address, topic, model, ...)
        node_id: Explicit id; generated when omitted
    """
    payload = {
        "label": label,
        "service_type": service_type,
        "status": status,
        "position": {"x": x, "y": y},
        "attributes": attributes or {},
    }
    if node_id:
        payload["id"] = node_id
    result = api_request("POST", "/nodes", json=payload)
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_update_node(
    node_id: str,
    label: Optional[str] = None,
    status: Optional[str] = None,
    service_type: Optional[str] = None,
    attributes: Optional[dict] = None,
) -> str:
    """
    Update a service. Only the given fields change.

    Args:
        node_id: The node to update
        label: New display name
        status: New status (healthy, warning, error, offline)
        service_type: New service type
        attributes: Keys merged into the node's attributes
    """
    updates = {}
    if label is not None:
        updates["label"] = label
    if status is not None:
        updates["status"] = status
    if service_type is not None:
        updates["service_type"] = service_type
    if attributes:
        updates["attributes"] = attributes

    result = api_request("PATCH", f"/nodes/{node_id}", json=updates)
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_remove_node(node_id: str) -> str:
    """
    Remove a service and every connection touching it.

    Args:
        node_id: The node to remove
    """
    result = api_request("DELETE", f"/nodes/{node_id}")
    return json.dumps(result, indent=2)


# ============================================================================
# EDGE TOOLS
# ============================================================================

@mcp.tool()
def mesh_connect(source: str, target: str, label: str = "") -> str:
    """
    Connect two services with a data-flow edge.

    Self-loops, missing endpoints and duplicate connections are refused;
    the result then has success=false and a `reason`.

    Args:
        source: Upstream node id
        target: Downstream node id
        label: Optional edge label
    """
    result = api_request("POST", "/events/connect", json={
        "source": source,
        "target": target,
        "label": label,
    })
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_remove_edge(edge_id: str) -> str:
    """
    Remove a connection.

    Args:
        edge_id: The edge id, "<source>-><target>"
    """
    result = api_request("DELETE", f"/edges/{edge_id}")
    return json.dumps(result, indent=2)


# ============================================================================
# WHOLE-MESH TOOLS
# ============================================================================

@mcp.tool()
def mesh_layout(direction: str = "horizontal") -> str:
    """
    Arrange the mesh in layers following the data flow.

    Args:
        direction: "horizontal" (left to right) or "vertical" (top to bottom)
    """
    result = api_request("POST", "/layout", json={"direction": direction})
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_reset() -> str:
    """Replace the mesh with the demo pipeline."""
    result = api_request("POST", "/mesh/reset")
    return json.dumps(result, indent=2)


@mcp.tool()
def mesh_design(prompt: str) -> str:
    """
    Generate a new mesh from a description using the AI design service.

    This replaces the current mesh.

    Args:
        prompt: What the integration should do, e.g. "MQTT sensors to
            Postgres with an HTTP status API"
    """
    result = api_request("POST", "/design", json={"prompt": prompt})
    return json.dumps(result, indent=2)


if __name__ == "__main__":
    mcp.run()
