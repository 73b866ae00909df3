from __future__ import annotations
import math
from numbers import Integral
from typing import Iterable

from .registry import MetricSample

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def format_value(value: float) -> str:
    if isinstance(value, Integral):
        return str(int(value))
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(value)


def escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def render(samples: Iterable[MetricSample]) -> str:
    """
    Text exposition of a snapshot, one HELP/TYPE/value block per metric,
    in the order given.
    """
    lines: list[str] = []
    for s in samples:
        lines.append(f"# HELP {s.name} {escape_help(s.help)}")
        lines.append(f"# TYPE {s.name} {s.kind.value}")
        lines.append(f"{s.name} {format_value(s.value)}")
    return "\n".join(lines) + "\n" if lines else ""
