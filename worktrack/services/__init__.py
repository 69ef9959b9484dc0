"""Service layer: one module per component, module-level functions."""
