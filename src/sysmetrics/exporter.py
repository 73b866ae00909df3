from __future__ import annotations
import asyncio
import sys
from enum import Enum
from typing import Dict, Optional

from structlog import get_logger

from .background.samplers import FragmentationSource, SamplerSet, build_samplers
from .background.worker import SamplingWorker
from .catalog import METRICS, MetricDef, register_catalog
from .config import Settings, settings
from .errors import InitializationError, MetricsError, ServerStartFailure
from .obs.logging import configure_logging
from .obs.registry import MetricHandle, MetricRegistry
from .server import ExpositionServer, create_app
from .sources.allocator import FragmentationProbe
from .sources.system import HostSources

log = get_logger()


class LifecycleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    RUNNING = "running"
    TERMINATED = "terminated"


class Exporter:
    """
    Owns the registry, samplers, worker and server of one process.

    initialize() -> start() -> serve_forever() -> shutdown(); there is no way
    back to initialization once running.
    """

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        sources: Optional[HostSources] = None,
        fragmentation: Optional[FragmentationSource] = None,
        definitions: Optional[list[MetricDef]] = None,
    ) -> None:
        self.cfg = cfg or settings
        self.sources = sources
        self.fragmentation = fragmentation
        self.definitions = definitions if definitions is not None else METRICS
        self.state = LifecycleState.UNINITIALIZED
        self.registry: Optional[MetricRegistry] = None
        self.handles: Dict[str, MetricHandle] = {}
        self.samplers: Optional[SamplerSet] = None
        self.worker: Optional[SamplingWorker] = None
        self.server: Optional[ExpositionServer] = None
        self._stop = asyncio.Event()

    def initialize(self) -> MetricRegistry:
        if self.state is not LifecycleState.UNINITIALIZED:
            raise MetricsError(f"cannot initialize from state {self.state.value}")
        self.state = LifecycleState.INITIALIZING
        registry = MetricRegistry(lock_timeout=self.cfg.lock_timeout_sec)
        try:
            self.handles = register_catalog(registry, self.definitions)
        except InitializationError as e:
            self.state = LifecycleState.TERMINATED
            log.error("init_failed", err=str(e))
            raise
        self.registry = registry
        frag = None
        if self.cfg.enable_fragmentation:
            frag = self.fragmentation or FragmentationProbe(self.cfg)
        self.samplers = build_samplers(registry, self.handles, sources=self.sources, fragmentation=frag)
        log.info("initialized", metrics=len(registry), samplers=len(self.samplers))
        return registry

    async def start(self) -> None:
        if self.state is not LifecycleState.INITIALIZING or self.registry is None or self.samplers is None:
            raise MetricsError(f"cannot start from state {self.state.value}")
        app = create_app(self.registry, state=lambda: self.state.value)
        self.server = ExpositionServer(app, host=self.cfg.host, port=self.cfg.port)
        try:
            await self.server.start()
        except ServerStartFailure as e:
            log.error("server_start_failed", err=str(e))
            self.server = None
            raise
        self.worker = SamplingWorker(self.samplers, interval_sec=self.cfg.sample_interval_sec)
        await self.worker.start()
        self.state = LifecycleState.RUNNING
        log.info("running", host=self.cfg.host, port=self.server.port)

    def request_stop(self) -> None:
        self._stop.set()

    async def serve_forever(self) -> None:
        assert self.server is not None and self.server.task is not None
        stop = asyncio.create_task(self._stop.wait(), name="stop_signal")
        try:
            await asyncio.wait({stop, self.server.task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

    async def shutdown(self) -> None:
        if self.state is LifecycleState.TERMINATED:
            return
        if self.worker:
            await self.worker.stop()
        if self.server:
            await self.server.stop()
        if self.registry:
            self.registry.close()
        self.state = LifecycleState.TERMINATED
        log.info("shutdown")


async def run(cfg: Settings) -> int:
    exporter = Exporter(cfg)
    try:
        exporter.initialize()
    except InitializationError:
        return 1
    try:
        await exporter.start()
    except ServerStartFailure:
        await exporter.shutdown()
        return 2
    try:
        await exporter.serve_forever()
    finally:
        await exporter.shutdown()
    return 0


def main() -> int:
    configure_logging(settings.log_level, json=settings.log_json)
    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
