"""Wire encoders for metrics and logs."""

from insightops.core.encoding.ndjson import encode_logs, encode_points
from insightops.core.encoding.prometheus import (
    encode_registry,
    parse_exposition,
    series_key,
    split_series_key,
)

__all__ = [
    "encode_logs",
    "encode_points",
    "encode_registry",
    "parse_exposition",
    "series_key",
    "split_series_key",
]
