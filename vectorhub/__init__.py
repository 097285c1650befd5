"""VectorHub: one API over many vector databases."""

__version__ = "0.1.0"
