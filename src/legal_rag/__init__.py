"""Legal document question answering over a vector index."""

__version__ = "0.1.0"
