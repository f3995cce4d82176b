"""Text exposition format encoder and parser.

Produces one line per sample::

    <metric_name>{<tag>="<value>",...} <value>

Comment lines start with ``#`` and are ignored by consumers.
"""

import math
from collections.abc import Iterable

from insightops.core.models import RegistrySnapshot


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _unescape_label_value(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            nxt = next(chars, "")
            out.append("\n" if nxt == "n" else nxt)
        else:
            out.append(char)
    return "".join(out)


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _format_bound(bound: float) -> str:
    return "+Inf" if math.isinf(bound) else repr(float(bound))


def series_key(name: str, tags: dict[str, str] | None = None) -> str:
    """Format a series identifier with tag keys sorted.

    Example:
        >>> series_key("http_requests_total", {"endpoint": "/orders"})
        'http_requests_total{endpoint="/orders"}'
    """
    if not tags:
        return name
    labels = ",".join(
        f'{key}="{_escape_label_value(str(tags[key]))}"' for key in sorted(tags)
    )
    return f"{name}{{{labels}}}"


def split_series_key(key: str) -> tuple[str, dict[str, str]]:
    """Inverse of series_key: separate the metric name from its tags."""
    brace = key.find("{")
    if brace == -1 or not key.endswith("}"):
        return key, {}
    name = key[:brace]
    body = key[brace + 1 : -1]
    tags: dict[str, str] = {}
    i = 0
    while i < len(body):
        eq = body.find("=", i)
        if eq == -1 or eq + 1 >= len(body) or body[eq + 1] != '"':
            break
        label = body[i:eq].strip().lstrip(",").strip()
        j = eq + 2
        raw: list[str] = []
        while j < len(body) and body[j] != '"':
            if body[j] == "\\" and j + 1 < len(body):
                raw.append(body[j : j + 2])
                j += 2
                continue
            raw.append(body[j])
            j += 1
        tags[label] = _unescape_label_value("".join(raw))
        i = j + 1
        if i < len(body) and body[i] == ",":
            i += 1
    return name, tags


def encode_registry(snapshot: RegistrySnapshot) -> str:
    """Encode a registry snapshot to the text exposition format.

    Args:
        snapshot: Counters, gauges and histograms to encode.

    Returns:
        Exposition text, one sample per line, newline terminated.
        Empty string if the snapshot holds no metrics.
    """
    lines: list[str] = []
    typed: set[str] = set()

    def _type_line(name: str, kind: str) -> None:
        if name not in typed:
            typed.add(name)
            lines.append(f"# TYPE {name} {kind}")

    for counter in snapshot.counters:
        _type_line(counter.name, "counter")
        lines.append(f"{series_key(counter.name, counter.tags)} {counter.value}")

    for gauge in snapshot.gauges:
        _type_line(gauge.name, "gauge")
        lines.append(f"{series_key(gauge.name, gauge.tags)} {_format_value(gauge.value)}")

    for histogram in snapshot.histograms:
        _type_line(histogram.name, "histogram")
        for bound, cumulative in histogram.buckets:
            bucket_tags = {**histogram.tags, "le": _format_bound(bound)}
            lines.append(f"{series_key(histogram.name + '_bucket', bucket_tags)} {cumulative}")
        lines.append(
            f"{series_key(histogram.name + '_sum', histogram.tags)} "
            f"{_format_value(histogram.sum)}"
        )
        lines.append(f"{series_key(histogram.name + '_count', histogram.tags)} {histogram.count}")

    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def parse_exposition(text: str | Iterable[str]) -> dict[str, float]:
    """Parse exposition text into a series-key to value mapping.

    Each non-comment line is split on its first space. Lines whose remainder
    is not exactly one numeric token are skipped.

    Args:
        text: Exposition body, or an iterable of its lines.

    Returns:
        Mapping of series key (name plus any ``{...}`` tags) to value.
    """
    lines = text.splitlines() if isinstance(text, str) else text
    metrics: dict[str, float] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, _, remainder = line.partition(" ")
        tokens = remainder.split()
        if not key or len(tokens) != 1:
            continue
        try:
            metrics[key] = float(tokens[0])
        except ValueError:
            continue
    return metrics
