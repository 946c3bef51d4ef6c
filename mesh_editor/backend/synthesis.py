"""
Synthesis - build a mesh from a natural-language description.

The design itself comes from an external AI service. This module sends the
prompt, checks the response shape, and turns the returned node list into
one atomic batch of store mutations (clear, add nodes, connect, layout).

Concurrency: only the HTTP call suspends. Each call takes a request id from
a monotonically increasing sequence; a response that arrives after a newer
request was started is discarded, so the latest request always wins.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.layout import LayoutDirection, fallback_position, parse_direction
from ..core.models import (
    NODE_FIELDS,
    GraphNode,
    GraphSnapshot,
    ServiceStatus,
    generate_node_id,
    normalize_key,
)
from ..core.service_types import is_known_service_type, resolve_service_type
from .mesh_store import MeshStore

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "AI Generated"
ID_ATTEMPTS = 5


class SynthesisFailure(str, Enum):
    """Why a synthesis request produced no graph."""
    EMPTY_PROMPT = "empty-prompt"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed-response"
    UNKNOWN_SERVICE_TYPE = "unknown-service-type"
    SUPERSEDED = "superseded"
    ID_CONFLICT = "id-conflict"


class SynthesisError(Exception):
    """A synthesis request failed; the store was left untouched."""

    def __init__(self, kind: SynthesisFailure, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind.value, "message": self.message}


# --- Wire format of the design service ---

class SynthesizedNode(BaseModel):
    type: str
    label: str
    config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("config", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class SynthesizedEdge(BaseModel):
    """A connection between two returned nodes, by position in the node list."""
    from_index: int
    to_index: int


class SynthesisResponse(BaseModel):
    nodes: list[SynthesizedNode]
    edges: list[SynthesizedEdge] = Field(default_factory=list)


@dataclass
class SynthesisResult:
    """What a successful synthesis added to the store."""
    request_id: int
    node_ids: list[str]
    edge_ids: list[str]
    snapshot: GraphSnapshot
    unknown_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": True,
            "request_id": self.request_id,
            "node_ids": self.node_ids,
            "edge_ids": self.edge_ids,
            "unknown_types": self.unknown_types,
            "mesh": self.snapshot.to_json_dict(),
        }


class SynthesisClient:
    """HTTP client for the external design service."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str) -> Any:
        """
        POST {"prompt": ...} and return the decoded JSON body.

        Raises:
            SynthesisError: TRANSPORT on network errors or non-2xx status,
                MALFORMED_RESPONSE if the body is not JSON
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.url, json={"prompt": prompt})
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise SynthesisError(
                    SynthesisFailure.TRANSPORT,
                    f"Design service request failed: {e}"
                ) from e

        try:
            return response.json()
        except ValueError as e:
            raise SynthesisError(
                SynthesisFailure.MALFORMED_RESPONSE,
                "Design service returned a body that is not JSON"
            ) from e


def _id_prefix(service_type: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", service_type.lower()).strip("-") or "node"


class SynthesisAdapter:
    """
    Applies designs from the design service to a MeshStore.

    Args:
        store: The store to write to
        client: Anything with an async generate(prompt) method
        unknown_type_policy: "accept" keeps nodes whose type is outside the
            known set (they render with the generic profile); "reject"
            fails the whole request instead
        id_factory: Called with a prefix to produce fresh node ids
    """

    def __init__(
        self,
        store: MeshStore,
        client: SynthesisClient,
        unknown_type_policy: str = "accept",
        id_factory: Callable[[str], str] = generate_node_id,
    ):
        self._store = store
        self._client = client
        self._unknown_type_policy = unknown_type_policy
        self._id_factory = id_factory
        self._sequence = 0

    @property
    def latest_request_id(self) -> int:
        return self._sequence

    async def synthesize(
        self,
        prompt: str,
        direction: "str | LayoutDirection" = LayoutDirection.HORIZONTAL,
    ) -> SynthesisResult:
        """
        Replace the mesh with a design generated from the prompt.

        Either the whole design is committed (clear, nodes, edges, layout)
        or the store is left exactly as it was.

        Raises:
            SynthesisError: see SynthesisFailure for the possible kinds
            ValueError: if direction is not a layout direction
        """
        direction = parse_direction(direction)
        if not prompt or not prompt.strip():
            raise SynthesisError(SynthesisFailure.EMPTY_PROMPT, "Please enter a description")

        self._sequence += 1
        request_id = self._sequence
        logger.info("Synthesis request %d started", request_id)

        try:
            payload = await self._client.generate(prompt)
            if request_id != self._sequence:
                raise SynthesisError(
                    SynthesisFailure.SUPERSEDED,
                    f"Request {request_id} was superseded by request {self._sequence}"
                )
            design = self._parse(payload)
            result = self._apply(request_id, design, direction)
        except SynthesisError as e:
            logger.warning("Synthesis request %d failed (%s): %s", request_id, e.kind.value, e.message)
            raise

        logger.info(
            "Synthesis request %d added %d nodes and %d edges",
            request_id, len(result.node_ids), len(result.edge_ids)
        )
        return result

    def _parse(self, payload: Any) -> SynthesisResponse:
        if not isinstance(payload, dict):
            raise SynthesisError(
                SynthesisFailure.MALFORMED_RESPONSE,
                "Design service response is not a JSON object"
            )
        try:
            design = SynthesisResponse.model_validate(payload)
        except ValidationError as e:
            raise SynthesisError(
                SynthesisFailure.MALFORMED_RESPONSE,
                f"Design service response has the wrong shape ({e.error_count()} errors)"
            ) from e

        count = len(design.nodes)
        for edge in design.edges:
            if not (0 <= edge.from_index < count and 0 <= edge.to_index < count):
                raise SynthesisError(
                    SynthesisFailure.MALFORMED_RESPONSE,
                    f"Edge {edge.from_index}->{edge.to_index} points outside the node list"
                )
        return design

    def _fresh_id(self, prefix: str, taken: set[str]) -> str:
        for _ in range(ID_ATTEMPTS):
            node_id = self._id_factory(prefix)
            if node_id not in taken:
                taken.add(node_id)
                return node_id
            logger.debug("Generated node id %s is already taken, retrying", node_id)
        raise SynthesisError(
            SynthesisFailure.ID_CONFLICT,
            f"Could not generate a unique node id with prefix '{prefix}'"
        )

    def _build_nodes(self, design: SynthesisResponse, direction: LayoutDirection) -> list[GraphNode]:
        nodes = []
        taken: set[str] = set()
        for index, item in enumerate(design.nodes):
            service_type = resolve_service_type(item.type)
            attributes: dict[str, Any] = {"description": DEFAULT_DESCRIPTION}
            for key, value in item.config.items():
                key = normalize_key(key)
                if key in NODE_FIELDS:
                    logger.debug("Ignoring config key '%s' on synthesized node %d", key, index)
                    continue
                attributes[key] = value

            nodes.append(GraphNode(
                id=self._fresh_id(_id_prefix(service_type), taken),
                label=item.label,
                service_type=service_type,
                status=ServiceStatus.HEALTHY,
                position=fallback_position(index, direction),
                attributes=attributes,
            ))
        return nodes

    def _apply(self, request_id: int, design: SynthesisResponse, direction: LayoutDirection) -> SynthesisResult:
        unknown = [item.type for item in design.nodes if not is_known_service_type(item.type)]
        if unknown and self._unknown_type_policy == "reject":
            raise SynthesisError(
                SynthesisFailure.UNKNOWN_SERVICE_TYPE,
                f"Unknown service types: {', '.join(sorted(set(unknown)))}"
            )
        if unknown:
            logger.info("Accepting unknown service types with generic profile: %s", unknown)

        nodes = self._build_nodes(design, direction)
        edge_ids: list[str] = []

        # The design replaces the whole graph, seed included
        with self._store.transaction():
            self._store.clear()
            for node in nodes:
                if not self._store.add_node(node):
                    raise SynthesisError(
                        SynthesisFailure.ID_CONFLICT,
                        f"Generated node id {node.id} is already taken"
                    )

            for item in design.edges:
                result = self._store.connect(nodes[item.from_index].id, nodes[item.to_index].id)
                if result.ok:
                    edge_ids.append(result.edge.id)
                else:
                    logger.debug(
                        "Skipping synthesized edge %d->%d: %s",
                        item.from_index, item.to_index, result.rejected.value
                    )

            self._store.layout(direction)

        return SynthesisResult(
            request_id=request_id,
            node_ids=[n.id for n in nodes],
            edge_ids=edge_ids,
            snapshot=self._store.snapshot(),
            unknown_types=unknown,
        )
