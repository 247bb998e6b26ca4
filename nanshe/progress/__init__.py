"""Per-atom progress state, bottom-up aggregation and progress endpoints."""
