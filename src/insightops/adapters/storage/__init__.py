"""Storage adapters implementing core ports."""

from insightops.adapters.storage.ring_buffer import LogBuffer

__all__ = ["LogBuffer"]
