"""Framework adapters for serving observability endpoints."""
