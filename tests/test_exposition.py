"""Tests for text exposition rendering."""

from __future__ import annotations

from fractions import Fraction

import pytest

from sysmetrics.obs.exposition import escape_help, format_value, render
from sysmetrics.obs.registry import MetricKind, MetricRegistry, MetricSample


@pytest.mark.parametrize(
    "value, text",
    [
        (0, "0"),
        (42, "42"),
        (0.1, "0.1"),
        (123456789.125, "123456789.125"),
        (5.0, "5.0"),
        (Fraction(1, 3), repr(1 / 3)),
        (Fraction(5, 2), "2.5"),
        (float("nan"), "NaN"),
        (float("inf"), "+Inf"),
        (float("-inf"), "-Inf"),
    ],
)
def test_format_value(value, text) -> None:
    assert format_value(value) == text


def test_render_blocks_in_order() -> None:
    samples = [
        MetricSample("cpu_usage_percentage", "CPU usage percentage", MetricKind.GAUGE, 12.5),
        MetricSample("allocation_policy_first_fit_count", "First fit uses", MetricKind.COUNTER, 3),
    ]
    assert render(samples) == (
        "# HELP cpu_usage_percentage CPU usage percentage\n"
        "# TYPE cpu_usage_percentage gauge\n"
        "cpu_usage_percentage 12.5\n"
        "# HELP allocation_policy_first_fit_count First fit uses\n"
        "# TYPE allocation_policy_first_fit_count counter\n"
        "allocation_policy_first_fit_count 3\n"
    )


def test_render_empty_snapshot() -> None:
    assert render([]) == ""


def test_help_escaping() -> None:
    assert escape_help("a\\b\nc") == "a\\\\b\\nc"


def test_non_float_real_keeps_its_fraction() -> None:
    registry = MetricRegistry()
    g = registry.register("g", "g", MetricKind.GAUGE)
    registry.set_gauge(g, Fraction(1, 3))
    assert render(registry.snapshot()).splitlines()[-1] == f"g {1 / 3!r}"
