import argparse
import logging
import time
from dataclasses import dataclass

import numpy as np
import torch

from bucket import Bucket, BucketSampler, TorchCumsumSampler, configure_logging
from bucket.baseline_cumsum import CumsumSampler, sequential_upper_bound

log = logging.getLogger("bucket.bench")


@dataclass
class BenchConfig:
    iterations: int = 2_000
    seed: int = 42
    batch_size: int = 64
    # (ROWS, COLS) grid for the scenarios
    shapes: tuple = ((10, 10), (32, 32), (100, 100), (316, 316), (1000, 100), (100, 1000))


def time_cpu(fn, iters=200):
    for _ in range(10):
        fn()
    t0 = time.perf_counter()
    for _ in range(iters):
        fn()
    return (time.perf_counter() - t0) / iters


def _mutations(scenario, n, rng):
    """Flat indices changed per iteration."""
    if scenario == "A":
        return [int(rng.integers(0, n))]
    if scenario == "B":
        i = int(rng.integers(0, n - 3))
        return [i, i + 1, i + 2, i + 3]
    # C: both ends, worst case for the incremental refresh
    return [0, n - 1]


def benchmark(scenario, rows, cols, cfg: BenchConfig):
    n = rows * cols
    rng = np.random.default_rng(cfg.seed)
    data = rng.random(n)
    b = Bucket(rows, cols, data, checks=False)

    def bucket_step():
        touched = _mutations(scenario, n, rng)
        data[touched] = rng.random(len(touched))
        for i in touched:
            b.update_index(i)
        b.refresh_cumsum()
        b.find_upper_bound(rng.random() * b.total)

    seq_data = data.copy()

    def seq_step():
        touched = _mutations(scenario, n, rng)
        seq_data[touched] = rng.random(len(touched))
        sequential_upper_bound(seq_data, rng.random() * seq_data.sum())

    t_bucket = time_cpu(bucket_step, cfg.iterations)
    t_seq = time_cpu(seq_step, cfg.iterations)
    return t_bucket, t_seq


def benchmark_samplers(capacity, cfg: BenchConfig):
    """Throughput of update + batched sample for the three samplers."""
    rng = np.random.default_rng(cfg.seed)
    idx = rng.integers(0, capacity, cfg.batch_size)
    p = rng.random(cfg.batch_size)

    ours = BucketSampler(capacity)
    ours.update(np.arange(capacity), rng.random(capacity))
    base = CumsumSampler(capacity)
    base.update(np.arange(capacity), rng.random(capacity))
    tbase = TorchCumsumSampler(capacity)
    tbase.update(torch.arange(capacity), torch.rand(capacity))
    t_idx = torch.as_tensor(idx)
    t_p = torch.as_tensor(p, dtype=torch.float32)

    def ours_step():
        ours.update(idx, p)
        ours.sample(cfg.batch_size, rng)

    def base_step():
        base.update(idx, p)
        base.sample(cfg.batch_size, rng)

    def torch_step():
        tbase.update(t_idx, t_p)
        tbase.sample(cfg.batch_size)

    iters = max(1, cfg.iterations // 10)
    return {
        "capacity": capacity,
        "bucket_s": time_cpu(ours_step, iters),
        "cumsum_s": time_cpu(base_step, iters),
        "torch_cumsum_s": time_cpu(torch_step, iters),
    }


def main():
    parser = argparse.ArgumentParser(description="Bucket vs full-recompute upper bound")
    parser.add_argument("--iterations", type=int, default=BenchConfig.iterations)
    parser.add_argument("--seed", type=int, default=BenchConfig.seed)
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    cfg = BenchConfig(iterations=args.iterations, seed=args.seed)

    print("scenario,rows,cols,bucket_s,seq_s")
    for scenario in ("A", "B", "C"):
        for rows, cols in cfg.shapes:
            log.info("running %s %dx%d", scenario, rows, cols)
            t_bucket, t_seq = benchmark(scenario, rows, cols, cfg)
            print(f"{scenario},{rows},{cols},{t_bucket:.3e},{t_seq:.3e}")

    print("\ncapacity,bucket_s,cumsum_s,torch_cumsum_s")
    for capacity in (2**10, 2**14, 2**18):
        r = benchmark_samplers(capacity, cfg)
        print(f"{r['capacity']},{r['bucket_s']:.3e},{r['cumsum_s']:.3e},{r['torch_cumsum_s']:.3e}")


if __name__ == "__main__":
    main()
