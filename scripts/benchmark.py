import argparse
import time

import numpy as np

from backdrop.compositing.background import BackgroundAsset
from backdrop.compositing.compositor import composite
from backdrop.utils.types import EffectsConfig, Frame, SegmentationMask


def main():
    parser = argparse.ArgumentParser(description="Benchmark compositing at a fixed resolution")
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    parser.add_argument("--iterations", type=int, default=100)
    parser.add_argument("--effects", action="store_true", help="Enable the 1/2/0.3 effects preset")
    args = parser.parse_args()

    rng = np.random.default_rng(0)
    frame = Frame(data=rng.integers(0, 256, (args.height, args.width, 3), dtype=np.uint8), timestamp=0.0)
    mask = SegmentationMask(data=rng.random((args.height, args.width), dtype=np.float32))
    background = BackgroundAsset.from_color((0, 255, 0), args.width, args.height)
    effects = EffectsConfig(1.0, 2.0, 0.3) if args.effects else None

    latencies = []
    start = time.time()
    for _ in range(args.iterations):
        t0 = time.perf_counter()
        composite(frame, mask, background, effects)
        latencies.append((time.perf_counter() - t0) * 1000.0)
    elapsed = time.time() - start

    results = {
        "fps": round(args.iterations / max(elapsed, 1e-9), 1),
        "latency_ms_p50": round(float(np.percentile(latencies, 50)), 2),
        "latency_ms_p95": round(float(np.percentile(latencies, 95)), 2),
    }
    print("Benchmark results", results)
    print("Elapsed", round(elapsed, 3))


if __name__ == "__main__":
    main()
