import sys
from sysmetrics.config import settings
from sysmetrics.sources.allocator import AllocationPolicy, FragmentationProbe

def main(cycles: int = 5):
    probe = FragmentationProbe(settings)
    print("cycle", *(p.value for p in AllocationPolicy))
    for i in range(cycles):
        ratios = [probe(p) for p in AllocationPolicy]
        print(i, *(f"{r.value:.4f}" if r.ok else f"err({r.error})" for r in ratios))

if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 5)
