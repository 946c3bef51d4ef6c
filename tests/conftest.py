"""
Pytest fixtures shared by the mesh editor tests
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from mesh_editor.backend.config import AppConfig
from mesh_editor.backend.main import create_app
from mesh_editor.backend.mesh_store import MeshStore
from mesh_editor.backend.synthesis import SynthesisClient
from mesh_editor.core import GraphNode, Position

DESIGN_URL = "http://design.test/api/design/generate"

TWO_NODE_DESIGN = {
    "nodes": [
        {"type": "http", "label": "X"},
        {"type": "mqtt", "label": "Y"},
    ]
}


@pytest.fixture
def store():
    """A store holding the demo pipeline"""
    return MeshStore()


@pytest.fixture
def empty_store():
    """A store with no nodes"""
    return MeshStore(seed=False)


@pytest.fixture
def sample_node():
    return GraphNode(
        id="gateway-1",
        label="Edge Gateway",
        service_type="gateway",
        position=Position(x=10, y=20),
        attributes={"address": "https://gw.example.com"},
    )


@pytest.fixture
def design_client():
    """Build a SynthesisClient whose HTTP traffic goes to a handler function"""
    def factory(handler):
        return SynthesisClient(DESIGN_URL, timeout=5.0, transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def design_response():
    """Handler that always answers with the given JSON body"""
    def factory(body, status_code=200):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json=body)
        return handler
    return factory


@pytest.fixture
def app_config():
    return AppConfig(
        host="127.0.0.1",
        port=8765,
        cors_origins=["http://localhost:5173"],
        synthesis_url=DESIGN_URL,
        unknown_type_policy="accept",
        layout_direction="horizontal",
        seed=True,
    )


@pytest.fixture
def api_store():
    return MeshStore()


@pytest.fixture
def test_app(app_config, api_store, design_client, design_response):
    """TestClient over an app whose design service returns TWO_NODE_DESIGN"""
    app = create_app(
        config=app_config,
        store=api_store,
        synthesis_client=design_client(design_response(TWO_NODE_DESIGN)),
    )
    return TestClient(app)
