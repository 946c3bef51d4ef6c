"""
Mesh validation - connection policy and structural checks.

Provides the predicate used when the canvas tries to connect two nodes,
and a full-graph audit used by the store after every mutation and by the
API's validate endpoint.
"""

from collections.abc import Collection
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .service_types import is_known_service_type

if TYPE_CHECKING:
    from .models import GraphEdge, GraphSnapshot


class ConnectionRejected(str, Enum):
    """Why a connection attempt was refused."""
    SELF_LOOP = "self-loop"
    MISSING_ENDPOINT = "missing-endpoint"
    DUPLICATE = "duplicate"


@dataclass
class ConnectResult:
    """Outcome of a connect call: the new edge, or the reason it was refused."""
    edge: Optional["GraphEdge"] = None
    rejected: Optional[ConnectionRejected] = None

    @property
    def ok(self) -> bool:
        return self.edge is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        if self.edge is not None:
            return {"success": True, "edge": self.edge.to_json_dict()}
        return {"success": False, "reason": self.rejected.value}


def check_connection(
    source: str,
    target: str,
    node_ids: Collection[str],
    edge_pairs: Collection[tuple[str, str]],
) -> Optional[ConnectionRejected]:
    """
    Decide whether an edge from source to target may be added.

    Cycles are allowed; only self-loops, dangling endpoints and repeated
    (source, target) pairs are refused.

    Returns:
        None if the connection is acceptable, otherwise the rejection reason
    """
    if source == target:
        return ConnectionRejected.SELF_LOOP
    if source not in node_ids or target not in node_ids:
        return ConnectionRejected.MISSING_ENDPOINT
    if (source, target) in edge_pairs:
        return ConnectionRejected.DUPLICATE
    return None


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken invariant, must never happen
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_graph(snapshot: "GraphSnapshot") -> list[ValidationIssue]:
    """
    Validate a graph snapshot and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Edges referencing missing nodes - ERROR
    - Self-referencing edges - ERROR
    - Duplicate edges (same source->target) - ERROR
    - Selection pointing at a missing node - ERROR
    - Orphan nodes (no connections) - WARNING
    - Service types outside the known set - INFO
    - Empty graph - INFO

    Args:
        snapshot: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not snapshot.nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))

    node_ids: set[str] = set()
    for node in snapshot.nodes:
        if node.id in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        node_ids.add(node.id)

    seen_pairs: set[tuple[str, str]] = set()
    connected: set[str] = set()
    for edge in snapshot.edges:
        connected.add(edge.source)
        connected.add(edge.target)

        if edge.source not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent source node: {edge.source}",
                edge_id=edge.id
            ))
        if edge.target not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent target node: {edge.target}",
                edge_id=edge.id
            ))
        if edge.source == edge.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Self-referencing edge (node points to itself)",
                edge_id=edge.id,
                node_id=edge.source
            ))
        if edge.pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate edge from {edge.source} to {edge.target}",
                edge_id=edge.id
            ))
        seen_pairs.add(edge.pair)

    if snapshot.selected_node_id is not None and snapshot.selected_node_id not in node_ids:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Selection references non-existent node: {snapshot.selected_node_id}",
            node_id=snapshot.selected_node_id
        ))

    orphans = [n for n in snapshot.nodes if n.id not in connected]
    if orphans and len(snapshot.nodes) > 1:
        labels = ", ".join(f"{n.label} ({n.id})" for n in orphans)
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {labels}"
        ))

    for node in snapshot.nodes:
        if not is_known_service_type(node.service_type):
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message=f"Unknown service type '{node.service_type}', using generic profile",
                node_id=node.id
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
