from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Dict, Iterable, Iterator, List, NamedTuple

from ..errors import (
    DuplicateMetric,
    LockAcquisitionFailure,
    MetricKindError,
    RegistrationClosed,
    RegistryClosed,
)


class MetricKind(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"

    def check(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise MetricKindError(f"{self.value} value must be a real number, got {value!r}")
        if self is MetricKind.COUNTER and not value >= 0:
            raise MetricKindError(f"counter increment must be >= 0, got {value!r}")

    def apply(self, current: float, value: float) -> float:
        # gauges are overwritten, counters accumulate
        if self is MetricKind.GAUGE:
            return value
        return current + value


@dataclass
class Metric:
    name: str
    help: str
    kind: MetricKind
    value: float = 0


@dataclass(frozen=True)
class MetricHandle:
    name: str
    kind: MetricKind
    owner: int = field(compare=False, repr=False, default=0)


class MetricSample(NamedTuple):
    name: str
    help: str
    kind: MetricKind
    value: float


class Update(NamedTuple):
    """One member of a group commit: a gauge value or a counter increment."""
    handle: MetricHandle
    value: float


class MetricRegistry:
    """
    Thread-safe name -> Metric mapping.

    One lock guards all state. Writers take it with a timeout and only copy
    values while holding it; snapshot() copies every metric under the same
    lock so a group commit is seen either whole or not at all.
    """

    def __init__(self, *, lock_timeout: float = 1.0) -> None:
        self.lock_timeout = float(lock_timeout)
        self._lock = threading.Lock()
        self._metrics: Dict[str, Metric] = {}
        self._sealed = False
        self._closed = False

    # ---------- registration ----------

    def register(self, name: str, help: str, kind: MetricKind) -> MetricHandle:
        kind = MetricKind(kind)
        with self._locked(blocking=True):
            if self._sealed:
                raise RegistrationClosed(f"cannot register {name!r} after initialization")
            if name in self._metrics:
                raise DuplicateMetric(name)
            self._metrics[name] = Metric(name=name, help=help, kind=kind)
        return MetricHandle(name=name, kind=kind, owner=id(self))

    def seal(self) -> None:
        with self._locked(blocking=True):
            self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, name: object) -> bool:
        return name in self._metrics

    # ---------- writes ----------

    def set_gauge(self, handle: MetricHandle, value: float) -> None:
        self._expect(handle, MetricKind.GAUGE)
        self.update_group([Update(handle, value)])

    def increment_counter(self, handle: MetricHandle, delta: float = 1) -> None:
        self._expect(handle, MetricKind.COUNTER)
        self.update_group([Update(handle, delta)])

    def update_group(self, updates: Iterable[Update]) -> None:
        updates = [Update(*u) for u in updates]
        for u in updates:
            self._check_owner(u.handle)
            u.handle.kind.check(u.value)
        with self._locked():
            # stage first so a bad member leaves every value untouched
            staged: Dict[str, float] = {}
            for u in updates:
                metric = self._metrics.get(u.handle.name)
                if metric is None or metric.kind is not u.handle.kind:
                    raise MetricKindError(f"unknown metric handle: {u.handle.name}")
                current = staged.get(metric.name, metric.value)
                staged[metric.name] = metric.kind.apply(current, u.value)
            for name, value in staged.items():
                self._metrics[name].value = value

    # ---------- reads ----------

    def snapshot(self) -> List[MetricSample]:
        with self._locked(blocking=True):
            return [MetricSample(m.name, m.help, m.kind, m.value) for m in self._metrics.values()]

    def value(self, handle: MetricHandle) -> float:
        self._check_owner(handle)
        with self._locked(blocking=True):
            return self._metrics[handle.name].value

    # ---------- teardown ----------

    def close(self) -> None:
        with self._locked(blocking=True):
            self._metrics.clear()
            self._sealed = True
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------- internals ----------

    @contextmanager
    def _locked(self, *, blocking: bool = False) -> Iterator[None]:
        if blocking:
            self._lock.acquire()
        elif not self._lock.acquire(timeout=self.lock_timeout):
            raise LockAcquisitionFailure(f"registry lock not acquired within {self.lock_timeout}s")
        try:
            if self._closed:
                raise RegistryClosed("registry has been closed")
            yield
        finally:
            self._lock.release()

    def _check_owner(self, handle: MetricHandle) -> None:
        if handle.owner != id(self):
            raise MetricKindError(f"handle {handle.name!r} belongs to another registry")

    @staticmethod
    def _expect(handle: MetricHandle, kind: MetricKind) -> None:
        if handle.kind is not kind:
            raise MetricKindError(f"{handle.name} is a {handle.kind.value}, not a {kind.value}")

