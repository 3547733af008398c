"""Core engine: executor, capability gate, metrics and factory."""
