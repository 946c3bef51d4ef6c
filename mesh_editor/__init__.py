"""Service mesh editor: graph store, layered layout and AI design backend."""

__version__ = "1.0.0"
