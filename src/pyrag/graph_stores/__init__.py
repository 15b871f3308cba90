"""Graph stores."""

from pyrag.graph_stores.simple import GraphStore, SimpleGraphStore, Triplet

__all__ = ["GraphStore", "SimpleGraphStore", "Triplet"]
