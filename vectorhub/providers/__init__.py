"""Concrete implementations of the interfaces in ``vectorhub.interfaces``."""
