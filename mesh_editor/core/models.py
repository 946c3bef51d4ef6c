"""
Core data models for the service mesh graph.

These models define the canonical schema for the editor:
- Nodes representing integration services (brokers, endpoints, databases, ...)
- Edges describing directed data flow between services
- Immutable snapshots handed to readers (canvas, API, MCP tools)
- Change descriptors emitted by the canvas during drag/select interactions

Field Naming Convention:
- Python attributes and JSON output use snake_case (`service_type`, `selected_node_id`)
- The canvas speaks camelCase; `serviceType`, `requestsPerSec` etc. are accepted on input
- Edges use `source`/`target`; legacy `from`/`to` are accepted on input
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
import uuid


class ServiceType(str, Enum):
    """The fixed set of service kinds a mesh node can represent."""
    MESSAGE_BROKER = "message-broker"
    HTTP_ENDPOINT = "http-endpoint"
    DATABASE = "database"
    FILTER = "filter"
    TRANSFORM = "transform"
    GATEWAY = "gateway"
    AI = "ai"
    PROTOCOL_BRIDGE = "protocol-bridge"
    SPLITTER = "splitter"       # Split flow into parallel branches
    AGGREGATOR = "aggregator"   # Combine multiple inputs
    LOGIC = "logic"             # If/else conditional routing


class ServiceStatus(str, Enum):
    """Health status shown on a node."""
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"
    OFFLINE = "offline"


# camelCase keys sent by the canvas -> snake_case attribute names
_CAMEL_KEYS = {
    "serviceType": "service_type",
    "requestsPerSec": "requests_per_sec",
    "mcpServerUrl": "mcp_server_url",
    "mcpTool": "mcp_tool",
}

# Keys that live on the node itself rather than in the attribute bag
NODE_FIELDS = {"id", "label", "service_type", "status", "position", "attributes"}


def normalize_key(key: str) -> str:
    """Map a canvas camelCase key to its snake_case name."""
    return _CAMEL_KEYS.get(key, key)


def generate_node_id(prefix: str = "node") -> str:
    """Generate a unique node ID."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def edge_id(source: str, target: str) -> str:
    """Deterministic edge ID for an ordered (source, target) pair."""
    return f"{source}->{target}"


class Position(BaseModel):
    """Top-left anchor of a node on the canvas."""
    x: float = 0.0
    y: float = 0.0


class GraphNode(BaseModel):
    """
    A service in the mesh.

    Type-specific data (address, topic, model, prompt, condition,
    requests_per_sec, description, ...) lives in the open `attributes` bag.
    Unknown keys passed at construction time are folded into that bag too.
    """
    id: str = Field(default_factory=generate_node_id)
    label: str = "New Service"
    # Kept as a plain string so tags outside ServiceType survive (see service_types.profile_for)
    service_type: str = ServiceType.HTTP_ENDPOINT.value
    status: str = ServiceStatus.HEALTHY.value
    position: Position = Field(default_factory=Position)
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator('status', mode='before')
    @classmethod
    def check_status(cls, value: Any) -> str:
        return ServiceStatus(value).value

    @model_validator(mode='before')
    @classmethod
    def collect_attributes(cls, data: Any) -> Any:
        """Accept camelCase keys and move non-field keys into `attributes`."""
        if not isinstance(data, dict):
            return data
        data = {normalize_key(k): v for k, v in data.items()}
        extra = {k: data.pop(k) for k in list(data) if k not in NODE_FIELDS}
        if extra:
            data['attributes'] = {**(data.get('attributes') or {}), **extra}
        return data

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")


class GraphEdge(BaseModel):
    """
    A directed data-flow connection between two nodes.

    The ID is always derived from the endpoints, so at most one edge can
    exist per ordered pair. Accepts `from`/`to` on input for compatibility.
    """
    id: str = ""
    source: str
    target: str
    label: str = ""
    animated: bool = True

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' fields to 'source'/'target'."""
        if isinstance(data, dict):
            data = dict(data)
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
        return data

    @model_validator(mode='after')
    def derive_id(self) -> "GraphEdge":
        self.id = edge_id(self.source, self.target)
        return self

    @property
    def pair(self) -> tuple[str, str]:
        return (self.source, self.target)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "animated": self.animated,
        }
        # Only include the label if it's set
        if self.label:
            result["label"] = self.label
        return result


class GraphSnapshot(BaseModel):
    """
    Immutable read-only view of the graph at one version.

    Holds copies of the store's nodes and edges; mutating them has no
    effect on the store.
    """
    model_config = ConfigDict(frozen=True)

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()
    selected_node_id: Optional[str] = None
    version: int = 0

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by ID (O(n) - use MeshStore for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        """Get an edge by ID (O(n) - use MeshStore for indexed access)."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "nodes": [n.to_json_dict() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
            "selected_node_id": self.selected_node_id,
            "version": self.version,
        }


# --- Change descriptors (batched canvas interactions) ---

class PositionChange(BaseModel):
    """A node was dragged to a new position."""
    type: Literal["position"] = "position"
    id: str
    position: Position
    dragging: bool = False


class SelectChange(BaseModel):
    """A node or edge was selected or deselected."""
    type: Literal["select"] = "select"
    id: str
    selected: bool = True


class RemoveChange(BaseModel):
    """A node or edge was deleted from the canvas."""
    type: Literal["remove"] = "remove"
    id: str


NodeChange = Annotated[
    Union[PositionChange, SelectChange, RemoveChange],
    Field(discriminator="type"),
]
EdgeChange = Annotated[
    Union[SelectChange, RemoveChange],
    Field(discriminator="type"),
]

node_changes_adapter = TypeAdapter(list[NodeChange])
edge_changes_adapter = TypeAdapter(list[EdgeChange])


# --- API Request/Response Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    id: Optional[str] = None
    label: str = "New Service"
    service_type: str = Field(
        default=ServiceType.HTTP_ENDPOINT.value,
        validation_alias=AliasChoices("service_type", "serviceType"),
    )
    status: ServiceStatus = ServiceStatus.HEALTHY
    position: Position = Field(default_factory=Position)
    attributes: dict[str, Any] = Field(default_factory=dict)


class UpdateNodeRequest(BaseModel):
    """Request to update an existing node (partial, shallow merge)."""
    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    status: Optional[ServiceStatus] = None

    def changes(self) -> dict[str, Any]:
        """Only the keys the caller actually sent."""
        data = self.model_dump(mode="json", exclude_unset=True)
        data.update(self.model_extra or {})
        return {normalize_key(k): v for k, v in data.items()}


class ConnectRequest(BaseModel):
    """A connection attempt from the canvas."""
    source: str
    target: str
    label: str = ""

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
        return data


class NodeClickRequest(BaseModel):
    id: str


class SelectionRequest(BaseModel):
    node_id: Optional[str] = None


class LayoutRequest(BaseModel):
    direction: Optional[str] = None  # horizontal (LR) or vertical (TB)


class DesignRequest(BaseModel):
    prompt: str
