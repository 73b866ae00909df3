from __future__ import annotations
import asyncio
from structlog import get_logger
from sysmetrics.background.samplers import Sampler, SamplerSet

log = get_logger()

class SamplingWorker:
    """One loop per sampler so a slow data source only delays itself."""

    def __init__(self, samplers: SamplerSet, *, interval_sec: float = 1.0) -> None:
        self.samplers = samplers
        self.interval_sec = float(interval_sec)
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()
        self.cycles: dict[str, int] = {s.name: 0 for s in samplers}

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._loop(s), name=f"sampler:{s.name}")
            for s in self.samplers
        ]
        log.info("sampling_started", samplers=[s.name for s in self.samplers], interval=self.interval_sec)

    async def stop(self) -> None:
        self._stopping.set()
        for t in self._tasks:
            t.cancel()
        for t in self._tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        log.info("sampling_stopped")

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return

    async def _loop(self, sampler: Sampler) -> None:
        while not self._stopping.is_set():
            # data sources block, keep them off the event loop
            await asyncio.to_thread(SamplerSet.run_one, sampler)
            self.cycles[sampler.name] += 1
            await self._sleep(self.interval_sec)
