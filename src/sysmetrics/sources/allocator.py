from __future__ import annotations

import bisect
import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..config import Settings, settings as default_settings
from .result import Fetched


class AllocationPolicy(str, Enum):
    FIRST_FIT = "first_fit"
    BEST_FIT = "best_fit"
    WORST_FIT = "worst_fit"


class Arena:
    """
    Fixed-size heap with an offset-ordered free list.
    Allocation splits the chosen hole, release coalesces with neighbours.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"arena size must be positive, got {size}")
        self.size = size
        self.free: List[Tuple[int, int]] = [(0, size)]  # (offset, length)
        self.used: Dict[int, int] = {}

    def allocate(self, length: int, policy: AllocationPolicy) -> Optional[int]:
        if length <= 0:
            raise ValueError(f"allocation length must be positive, got {length}")
        fits = [i for i, (_, hole) in enumerate(self.free) if hole >= length]
        if not fits:
            return None
        if policy is AllocationPolicy.FIRST_FIT:
            i = fits[0]
        elif policy is AllocationPolicy.BEST_FIT:
            i = min(fits, key=lambda j: (self.free[j][1], self.free[j][0]))
        else:
            i = max(fits, key=lambda j: (self.free[j][1], -self.free[j][0]))
        offset, hole = self.free[i]
        if hole == length:
            del self.free[i]
        else:
            self.free[i] = (offset + length, hole - length)
        self.used[offset] = length
        return offset

    def release(self, offset: int) -> None:
        length = self.used.pop(offset)
        i = bisect.bisect_left(self.free, (offset, 0))
        self.free.insert(i, (offset, length))
        # merge with the following hole, then the preceding one
        if i + 1 < len(self.free) and offset + length == self.free[i + 1][0]:
            length += self.free[i + 1][1]
            self.free[i] = (offset, length)
            del self.free[i + 1]
        if i > 0 and self.free[i - 1][0] + self.free[i - 1][1] == offset:
            prev_off, prev_len = self.free[i - 1]
            self.free[i - 1] = (prev_off, prev_len + length)
            del self.free[i]

    @property
    def free_bytes(self) -> int:
        return sum(hole for _, hole in self.free)

    def fragmentation(self) -> float:
        """1 - largest hole / total free space; 0 when nothing is free."""
        total = self.free_bytes
        if total == 0:
            return 0.0
        return 1.0 - max(hole for _, hole in self.free) / total


@dataclass(frozen=True)
class Op:
    kind: str  # "alloc" | "free"
    ident: int
    length: int = 0


def generate_workload(
    rng: random.Random,
    *,
    ops: int,
    min_block: int,
    max_block: int,
    free_ratio: float,
) -> List[Op]:
    live: List[int] = []
    out: List[Op] = []
    next_id = 0
    for _ in range(ops):
        if live and rng.random() < free_ratio:
            out.append(Op("free", live.pop(rng.randrange(len(live)))))
        else:
            out.append(Op("alloc", next_id, rng.randint(min_block, max_block)))
            live.append(next_id)
            next_id += 1
    return out


def simulate(policy: AllocationPolicy, workload: List[Op], arena_bytes: int) -> float:
    arena = Arena(arena_bytes)
    placed: Dict[int, int] = {}
    for op in workload:
        if op.kind == "alloc":
            offset = arena.allocate(op.length, policy)
            if offset is not None:
                placed[op.ident] = offset
        else:
            offset = placed.pop(op.ident, None)
            if offset is not None:
                arena.release(offset)
    return arena.fragmentation()


class FragmentationProbe:
    """
    Fragmentation data source for the allocation-policy sampler.

    The n-th call for each policy replays workload n, so the three policies
    sampled in one cycle are measured on the same allocation sequence.
    """

    def __init__(self, cfg: Optional[Settings] = None) -> None:
        self.cfg = cfg or default_settings
        self._lock = threading.Lock()
        self._generation: Dict[AllocationPolicy, int] = {p: 0 for p in AllocationPolicy}
        self._cached: Optional[Tuple[int, List[Op]]] = None

    def workload(self, generation: int) -> List[Op]:
        with self._lock:
            if self._cached and self._cached[0] == generation:
                return self._cached[1]
        rng = random.Random(f"{self.cfg.alloc_seed}:{generation}")
        wl = generate_workload(
            rng,
            ops=self.cfg.alloc_ops,
            min_block=self.cfg.alloc_min_block,
            max_block=self.cfg.alloc_max_block,
            free_ratio=self.cfg.alloc_free_ratio,
        )
        with self._lock:
            self._cached = (generation, wl)
        return wl

    def __call__(self, policy: AllocationPolicy) -> Fetched[float]:
        policy = AllocationPolicy(policy)
        with self._lock:
            generation = self._generation[policy]
            self._generation[policy] = generation + 1
        try:
            ratio = simulate(policy, self.workload(generation), self.cfg.alloc_arena_bytes)
        except (ValueError, KeyError) as e:
            return Fetched.failure(f"{policy.value}: {e}")
        return Fetched.from_scalar(ratio)
