from sysmetrics.background.samplers import build_samplers
from sysmetrics.catalog import register_catalog
from sysmetrics.config import settings
from sysmetrics.obs.exposition import render
from sysmetrics.obs.registry import MetricRegistry
from sysmetrics.sources.allocator import FragmentationProbe

def main():
    registry = MetricRegistry(lock_timeout=settings.lock_timeout_sec)
    handles = register_catalog(registry)
    samplers = build_samplers(registry, handles, fragmentation=FragmentationProbe(settings))
    results = samplers.run_cycle()
    print("results:", results)
    print(render(registry.snapshot()), end="")
    registry.close()

if __name__ == "__main__":
    main()
