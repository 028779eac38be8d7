"""Garment work-in-progress workflow engine."""

__version__ = "0.1.0"
