"""
Mesh Editor Backend - FastAPI Application

Exposes the store to the canvas and to other clients:
- Snapshot interface (GET /api/mesh, node lookups, validation)
- Interaction interface (batched node/edge changes, connect, node/pane clicks)
- Commands (node CRUD, selection, reset, layout, AI design)
- WebSocket endpoint pushing mesh_updated events

All handlers are coroutines on one event loop, so mutations are applied in
the order requests are dispatched.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..core import (
    SERVICE_PROFILES,
    ConnectRequest,
    CreateNodeRequest,
    DesignRequest,
    EdgeChange,
    GraphNode,
    LayoutRequest,
    NodeChange,
    NodeClickRequest,
    SelectionRequest,
    ServiceStatus,
    UpdateNodeRequest,
    generate_node_id,
    resolve_service_type,
    validate_graph,
    validation_summary,
)
from ..core.service_types import GENERIC_PROFILE, STATUS_COLORS
from .config import AppConfig
from .mesh_store import MeshStore
from .synthesis import SynthesisAdapter, SynthesisClient, SynthesisError, SynthesisFailure
from .change_feed import MeshChangeFeed

logger = logging.getLogger(__name__)

SYNTHESIS_STATUS_CODES = {
    SynthesisFailure.EMPTY_PROMPT: 400,
    SynthesisFailure.TRANSPORT: 502,
    SynthesisFailure.MALFORMED_RESPONSE: 502,
    SynthesisFailure.SUPERSEDED: 409,
    SynthesisFailure.UNKNOWN_SERVICE_TYPE: 422,
    SynthesisFailure.ID_CONFLICT: 500,
}


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[MeshStore] = None,
    synthesis_client: Optional[SynthesisClient] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings (defaults to AppConfig.from_env())
        store: The store to serve (defaults to a new MeshStore)
        synthesis_client: Client for the design service (defaults to one
            pointed at config.synthesis_url)
    """
    config = config or AppConfig.from_env()
    store = store if store is not None else MeshStore(seed=config.seed)
    client = synthesis_client or SynthesisClient(config.synthesis_url, timeout=config.synthesis_timeout)
    synthesis = SynthesisAdapter(store, client, unknown_type_policy=config.unknown_type_policy)
    feed = MeshChangeFeed()

    # --- Async change notification ---
    # Bridge between sync store callbacks and async WebSocket broadcasts

    def on_mesh_change():
        event = getattr(app.state, "change_event", None)
        if event is not None:
            event.set()

    async def change_broadcaster(event: asyncio.Event):
        """Background task that publishes new versions to connected canvases."""
        while True:
            await event.wait()
            event.clear()
            await feed.publish(store.version)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        event = asyncio.Event()
        app.state.change_event = event
        broadcaster_task = asyncio.create_task(change_broadcaster(event))

        yield

        app.state.change_event = None
        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass

    app = FastAPI(
        title="Mesh Editor API",
        description="Graph store, layout and AI design for the integration mesh editor",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config
    app.state.store = store
    app.state.synthesis = synthesis
    app.state.feed = feed
    store.on_change(on_mesh_change)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "connections": feed.client_count, "version": store.version}

    # --- Snapshot ---

    @app.get("/api/mesh")
    async def get_mesh():
        """Get the current mesh snapshot."""
        return store.get_state()

    @app.get("/api/mesh/validate")
    async def validate_mesh():
        """
        Validate the current mesh for structural issues.

        Returns a list of issues (errors, warnings, info) and a summary.
        """
        issues = validate_graph(store.snapshot())
        return {
            "success": True,
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues)
        }

    @app.post("/api/mesh/reset")
    async def reset_mesh():
        """Replace the mesh with the demo graph."""
        return {"success": True, "mesh": store.reset().to_json_dict()}

    @app.post("/api/layout")
    async def layout_mesh(request: Optional[LayoutRequest] = None):
        """Arrange all nodes with the layered layout."""
        direction = (request.direction if request else None) or config.layout_direction
        try:
            snapshot = store.layout(direction)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "direction": direction, "mesh": snapshot.to_json_dict()}

    # --- Node Operations ---

    @app.post("/api/nodes")
    async def create_node(request: CreateNodeRequest):
        """Create a new node."""
        node = GraphNode(
            id=request.id or generate_node_id(),
            label=request.label,
            service_type=resolve_service_type(request.service_type),
            status=request.status,
            position=request.position,
            attributes=request.attributes,
        )
        if not store.add_node(node):
            raise HTTPException(status_code=409, detail=f"Node already exists: {node.id}")
        return {"success": True, "node": store.get_node(node.id).to_json_dict()}

    @app.get("/api/nodes/{node_id}")
    async def get_node(node_id: str):
        """Get a specific node."""
        node = store.get_node(node_id)
        if node:
            return {"success": True, "node": node.to_json_dict()}
        raise HTTPException(status_code=404, detail="Node not found")

    @app.patch("/api/nodes/{node_id}")
    async def update_node(node_id: str, request: UpdateNodeRequest):
        """Merge changes into a node."""
        try:
            node = store.update_node(node_id, request.changes())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if node:
            return {"success": True, "node": node.to_json_dict()}
        raise HTTPException(status_code=404, detail="Node not found")

    @app.delete("/api/nodes/{node_id}")
    async def delete_node(node_id: str):
        """Delete a node and its connected edges."""
        return {"success": True, "removed": store.remove_node(node_id)}

    # --- Edge Operations ---

    @app.delete("/api/edges/{edge_id}")
    async def delete_edge(edge_id: str):
        """Delete an edge."""
        return {"success": True, "removed": store.remove_edge(edge_id)}

    # --- Selection ---

    @app.put("/api/selection")
    async def set_selection(request: SelectionRequest):
        """Select a node, or clear the selection with null."""
        return {"success": True, "selected_node_id": store.set_selected_node(request.node_id)}

    # --- Canvas Interaction Events ---

    @app.post("/api/events/nodes-change")
    async def nodes_change(changes: list[NodeChange]):
        """Apply one interaction's batch of node changes atomically."""
        return {"success": True, "mesh": store.apply_node_changes(changes).to_json_dict()}

    @app.post("/api/events/edges-change")
    async def edges_change(changes: list[EdgeChange]):
        """Apply one interaction's batch of edge changes atomically."""
        return {"success": True, "mesh": store.apply_edge_changes(changes).to_json_dict()}

    @app.post("/api/events/connect")
    async def connect(request: ConnectRequest):
        """
        Handle a connection dragged between two nodes.

        Refused connections are not errors: the response carries the reason.
        """
        return store.connect(request.source, request.target, label=request.label).to_dict()

    @app.post("/api/events/node-click")
    async def node_click(request: NodeClickRequest):
        """Select the clicked node."""
        return {"success": True, "selected_node_id": store.set_selected_node(request.id)}

    @app.post("/api/events/pane-click")
    async def pane_click():
        """Clicking empty canvas clears the selection."""
        return {"success": True, "selected_node_id": store.set_selected_node(None)}

    # --- AI Design ---

    @app.post("/api/design")
    async def design(request: DesignRequest):
        """Replace the mesh with a design generated from a description."""
        try:
            result = await synthesis.synthesize(request.prompt, config.layout_direction)
        except SynthesisError as e:
            raise HTTPException(
                status_code=SYNTHESIS_STATUS_CODES[e.kind],
                detail={"error": e.kind.value, "message": e.message}
            )
        return result.to_dict()

    # --- Enums for Frontend ---

    @app.get("/api/enums/service-types")
    async def get_service_types():
        """Get service types with their rendering profiles."""
        return {
            "service_types": [
                {"value": service_type.value, **profile.to_dict()}
                for service_type, profile in SERVICE_PROFILES.items()
            ],
            "fallback": GENERIC_PROFILE.to_dict()
        }

    @app.get("/api/enums/statuses")
    async def get_statuses():
        """Get node statuses and their indicator colors."""
        return {
            "statuses": [
                {"value": status.value, "color": STATUS_COLORS[status]}
                for status in ServiceStatus
            ]
        }

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Canvases connect here to receive mesh_updated events, starting with
        the current version.
        """
        await feed.join(websocket, store.version)

        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            pass
        finally:
            await feed.leave(websocket)

    return app


if __name__ == "__main__":
    import uvicorn

    config = AppConfig.from_env()
    uvicorn.run(create_app(config), host=config.host, port=config.port)
