"""Natural-language property search over a Qdrant vector index."""

__version__ = "0.3.0"
