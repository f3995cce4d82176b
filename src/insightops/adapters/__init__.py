"""Adapters connecting the core to platforms, HTTP and frameworks."""
