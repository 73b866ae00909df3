from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from structlog import get_logger

from ..catalog import FRAGMENTATION_GAUGES, POLICY_COUNTERS
from ..errors import DataSourceUnavailable, LockAcquisitionFailure, PartialGroupFailure
from ..obs.registry import MetricHandle, MetricRegistry, Update
from ..sources.allocator import AllocationPolicy
from ..sources.result import Fetched, ScalarSource, VectorSource
from ..sources.system import HostSources

log = get_logger()

FragmentationSource = Callable[[AllocationPolicy], Fetched[float]]


class Sampler:
    """
    One fetch + commit unit bound to a metric or a correlated group.

    fetch() talks to the data source and builds the updates without touching
    the registry lock; sample() commits them in a single update_group call,
    or logs and skips when the fetch failed.
    """

    def __init__(self, name: str, registry: MetricRegistry) -> None:
        self.name = name
        self.registry = registry

    def fetch(self) -> List[Update]:
        raise NotImplementedError

    def sample(self) -> bool:
        try:
            updates = self.fetch()
        except PartialGroupFailure as e:
            log.warning("group_partial_failure", sampler=self.name, failed=e.failed, succeeded=e.succeeded)
            return False
        except DataSourceUnavailable as e:
            log.warning("sample_skipped", sampler=self.name, reason=e.reason)
            return False
        try:
            self.registry.update_group(updates)
        except LockAcquisitionFailure as e:
            log.warning("registry_lock_timeout", sampler=self.name, err=str(e))
            return False
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ScalarSampler(Sampler):
    def __init__(self, name: str, registry: MetricRegistry, source: ScalarSource, handle: MetricHandle) -> None:
        super().__init__(name, registry)
        self.source = source
        self.handle = handle

    def fetch(self) -> List[Update]:
        r = self.source()
        if not r.ok:
            raise DataSourceUnavailable(self.name, r.error or "")
        return [Update(self.handle, r.value)]


class VectorSampler(Sampler):
    """Commits one value per handle; a vector of any other length is a failed fetch."""

    def __init__(
        self,
        name: str,
        registry: MetricRegistry,
        source: VectorSource,
        handles: Sequence[MetricHandle],
    ) -> None:
        super().__init__(name, registry)
        self.source = source
        self.handles = tuple(handles)

    def values(self) -> Sequence[float]:
        r = self.source()
        if not r.ok:
            raise DataSourceUnavailable(self.name, r.error or "")
        values = r.value or ()
        if len(values) != len(self.handles):
            raise DataSourceUnavailable(self.name, f"expected {len(self.handles)} values, got {len(values)}")
        return values

    def fetch(self) -> List[Update]:
        return [Update(h, v) for h, v in zip(self.handles, self.values())]


class MemorySampler(VectorSampler):
    """
    (total, free, used) plus the usage percentage derived from them, as one group.
    A zero total cannot yield a percentage, so such a sample is a failed fetch
    and none of the four gauges changes.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        source: VectorSource,
        total: MetricHandle,
        free: MetricHandle,
        used: MetricHandle,
        usage: Optional[MetricHandle] = None,
    ) -> None:
        super().__init__("memory", registry, source, (total, free, used))
        self.usage = usage

    def fetch(self) -> List[Update]:
        values = self.values()
        updates = [Update(h, v) for h, v in zip(self.handles, values)]
        if self.usage is not None:
            total, _, used = values[:3]
            if total <= 0:
                raise DataSourceUnavailable(self.name, f"total memory is {total}")
            updates.append(Update(self.usage, used / total * 100.0))
        return updates


class FragmentationSampler(Sampler):
    """
    Allocation-policy group: three fragmentation gauges and three usage
    counters. All three policies must report a non-negative ratio for the
    cycle to commit; otherwise none of the six metrics changes.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        source: FragmentationSource,
        gauges: Mapping[AllocationPolicy, MetricHandle],
        counters: Mapping[AllocationPolicy, MetricHandle],
    ) -> None:
        super().__init__("fragmentation", registry)
        self.source = source
        self.gauges = dict(gauges)
        self.counters = dict(counters)

    def fetch(self) -> List[Update]:
        ratios: Dict[AllocationPolicy, float] = {}
        failed: List[str] = []
        for policy in AllocationPolicy:
            r = self.source(policy)
            if r.ok and r.value is not None and r.value >= 0:
                ratios[policy] = r.value
            else:
                failed.append(policy.value)
        if failed and ratios:
            raise PartialGroupFailure(self.name, failed, [p.value for p in ratios])
        if failed:
            raise DataSourceUnavailable(self.name, "all policies failed")
        updates = [Update(self.gauges[p], ratios[p]) for p in AllocationPolicy]
        updates += [Update(self.counters[p], 1) for p in AllocationPolicy]
        return updates


class SamplerSet:
    """The samplers of one exporter; each runs isolated from the others."""

    def __init__(self, samplers: Sequence[Sampler]) -> None:
        self.samplers = list(samplers)

    def __iter__(self) -> Iterator[Sampler]:
        return iter(self.samplers)

    def __len__(self) -> int:
        return len(self.samplers)

    def get(self, name: str) -> Sampler:
        for s in self.samplers:
            if s.name == name:
                return s
        raise KeyError(name)

    @staticmethod
    def run_one(sampler: Sampler) -> bool:
        try:
            return sampler.sample()
        except Exception as e:
            log.warning("sampler_error", sampler=sampler.name, err=repr(e))
            return False

    def run_cycle(self) -> Dict[str, bool]:
        return {s.name: self.run_one(s) for s in self.samplers}


def build_samplers(
    registry: MetricRegistry,
    handles: Mapping[str, MetricHandle],
    *,
    sources: Optional[HostSources] = None,
    fragmentation: Optional[FragmentationSource] = None,
) -> SamplerSet:
    src = sources or HostSources()
    h = handles
    samplers: List[Sampler] = [
        ScalarSampler("cpu", registry, src.cpu, h["cpu_usage_percentage"]),
        MemorySampler(
            registry, src.memory,
            total=h["total_memory"], free=h["free_memory"], used=h["used_memory"],
            usage=h["memory_usage_percentage"],
        ),
        ScalarSampler("context_switches", registry, src.context_switches, h["context_switches"]),
        ScalarSampler("running_processes", registry, src.running_processes, h["running_processes"]),
        VectorSampler("disk_io", registry, src.disk, (h["reads_metric"], h["writes_metric"])),
        VectorSampler("network", registry, src.network, (h["rx_packets_metric"], h["tx_packets_metric"])),
    ]
    if fragmentation is not None:
        samplers.append(FragmentationSampler(
            registry, fragmentation,
            gauges={p: h[n] for p, n in FRAGMENTATION_GAUGES.items()},
            counters={p: h[n] for p, n in POLICY_COUNTERS.items()},
        ))
    return SamplerSet(samplers)
