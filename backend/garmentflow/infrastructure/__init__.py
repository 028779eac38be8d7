"""Infrastructure adapters for the workflow engine."""
