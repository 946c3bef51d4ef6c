"""FastAPI backend: the mesh store, synthesis adapter and change feed."""

from .config import AppConfig
from .main import create_app
from .mesh_store import MeshStore
from .synthesis import SynthesisAdapter, SynthesisClient, SynthesisError, SynthesisFailure

__all__ = [
    "AppConfig",
    "create_app",
    "MeshStore",
    "SynthesisAdapter",
    "SynthesisClient",
    "SynthesisError",
    "SynthesisFailure",
]
