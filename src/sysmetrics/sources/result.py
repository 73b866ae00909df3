from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Fetched(Generic[T]):
    """Outcome of one data-source call: a value, or the reason there is none."""
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Fetched[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "Fetched[T]":
        return cls(error=reason or "unavailable")

    @classmethod
    def from_scalar(cls, value: Optional[float]) -> "Fetched[float]":
        # negative numbers are the failure sentinel of scalar sources
        if value is None or not math.isfinite(value) or value < 0:
            return cls.failure(f"sentinel {value!r}")
        return cls.success(value)

    @classmethod
    def from_vector(cls, values: Optional[Sequence[float]]) -> "Fetched[Tuple[float, ...]]":
        if not values:
            return cls.failure("empty result")
        return cls.success(tuple(values))


ScalarSource = Callable[[], Fetched[float]]
VectorSource = Callable[[], Fetched[Tuple[float, ...]]]


def scalar_source(fn: Callable[[], Optional[float]]) -> ScalarSource:
    """Adapt a sentinel-returning scalar function (negative means failure)."""
    def fetch() -> Fetched[float]:
        return Fetched.from_scalar(fn())
    fetch.__name__ = getattr(fn, "__name__", "scalar_source")
    return fetch


def vector_source(fn: Callable[[], Optional[Sequence[float]]]) -> VectorSource:
    """Adapt a vector function where None or an empty sequence means failure."""
    def fetch() -> Fetched[Tuple[float, ...]]:
        return Fetched.from_vector(fn())
    fetch.__name__ = getattr(fn, "__name__", "vector_source")
    return fetch
