"""Shared kernel: entity base classes, domain errors and invariant checks."""
