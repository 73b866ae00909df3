from __future__ import annotations

from typing import Dict, List, NamedTuple

from .errors import InitializationError, MetricsError
from .obs.registry import MetricHandle, MetricKind, MetricRegistry
from .sources.allocator import AllocationPolicy


class MetricDef(NamedTuple):
    name: str
    help: str
    kind: MetricKind


G, C = MetricKind.GAUGE, MetricKind.COUNTER

FRAGMENTATION_GAUGES: Dict[AllocationPolicy, str] = {
    AllocationPolicy.FIRST_FIT: "first_fit_fragmentation",
    AllocationPolicy.BEST_FIT: "best_fit_fragmentation",
    AllocationPolicy.WORST_FIT: "worst_fit_fragmentation",
}
POLICY_COUNTERS: Dict[AllocationPolicy, str] = {
    AllocationPolicy.FIRST_FIT: "allocation_policy_first_fit_count",
    AllocationPolicy.BEST_FIT: "allocation_policy_best_fit_count",
    AllocationPolicy.WORST_FIT: "allocation_policy_worst_fit_count",
}

METRICS: List[MetricDef] = [
    MetricDef("cpu_usage_percentage", "CPU usage percentage", G),
    MetricDef("memory_usage_percentage", "Memory usage percentage", G),
    MetricDef("total_memory", "Total memory in bytes", G),
    MetricDef("free_memory", "Available memory in bytes", G),
    MetricDef("used_memory", "Used memory in bytes", G),
    MetricDef("context_switches", "Number of context switches", G),
    MetricDef("running_processes", "Number of running processes", G),
    MetricDef("reads_metric", "Completed disk reads", G),
    MetricDef("writes_metric", "Completed disk writes", G),
    MetricDef("rx_packets_metric", "Received network packets", G),
    MetricDef("tx_packets_metric", "Transmitted network packets", G),
    MetricDef(FRAGMENTATION_GAUGES[AllocationPolicy.FIRST_FIT], "Fragmentation ratio - first fit", G),
    MetricDef(FRAGMENTATION_GAUGES[AllocationPolicy.BEST_FIT], "Fragmentation ratio - best fit", G),
    MetricDef(FRAGMENTATION_GAUGES[AllocationPolicy.WORST_FIT], "Fragmentation ratio - worst fit", G),
    MetricDef(POLICY_COUNTERS[AllocationPolicy.FIRST_FIT], "Times the first fit policy was measured", C),
    MetricDef(POLICY_COUNTERS[AllocationPolicy.BEST_FIT], "Times the best fit policy was measured", C),
    MetricDef(POLICY_COUNTERS[AllocationPolicy.WORST_FIT], "Times the worst fit policy was measured", C),
]


def register_catalog(registry: MetricRegistry, definitions: List[MetricDef] = METRICS) -> Dict[str, MetricHandle]:
    """
    Register every definition, then seal the registry.
    Any failure aborts the whole catalog: the registry is closed so it can
    never be served half-populated.
    """
    handles: Dict[str, MetricHandle] = {}
    try:
        for d in definitions:
            handles[d.name] = registry.register(d.name, d.help, d.kind)
    except (MetricsError, ValueError) as e:
        registry.close()
        raise InitializationError(str(e)) from e
    registry.seal()
    return handles
