"""Production workflow domain."""
