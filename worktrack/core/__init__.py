"""Cross-cutting service primitives: exceptions and typed results."""
