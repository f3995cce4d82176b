"""Core domain: models, ports, registry, history, live channel."""
