# benchmark.py
import os
import json
import time
import logging
import numpy as np

from cache import Geometry
from simulator import simulate
from tracefile import Operation, TraceRecord

logger = logging.getLogger(__name__)

DEFAULT_GEOMETRIES = [
    [4, 1, 4],
    [4, 2, 4],
    [4, 4, 4],
    [5, 1, 5],
    [8, 2, 4],
]


class WorkloadGenerator:
    def __init__(self, working_set_kb=64, stride_bytes=8, read_ratio=0.7, modify_ratio=0.1,
                 access_pattern="mixed", random_seed=None):
        if access_pattern not in ("sequential", "random", "mixed"):
            raise ValueError(f"unknown access pattern {access_pattern!r}")
        if not 0.0 <= modify_ratio + read_ratio <= 1.0:
            raise ValueError("read_ratio + modify_ratio must be within [0, 1]")
        if stride_bytes <= 0 or working_set_kb <= 0:
            raise ValueError("stride_bytes and working_set_kb must be positive")
        self.rng = np.random.default_rng(random_seed)
        self.stride = stride_bytes
        self.num_slots = max(1, (working_set_kb * 1024) // stride_bytes)
        self.read_ratio = read_ratio
        self.modify_ratio = modify_ratio
        self.access_pattern = access_pattern
        self._seq_ptr = 0

    def _next_sequential(self):
        slot = self._seq_ptr
        self._seq_ptr = (slot + 1) % self.num_slots
        return slot

    def _next_slot(self):
        if self.access_pattern == "sequential":
            return self._next_sequential()
        elif self.access_pattern == "random":
            return int(self.rng.integers(0, self.num_slots))
        else:  # mixed: mostly sequential with some random
            if self.rng.random() < 0.8:
                return self._next_sequential()
            return int(self.rng.integers(0, self.num_slots))

    def _next_operation(self):
        r = self.rng.random()
        if r < self.modify_ratio:
            return Operation.MODIFY
        if r < self.modify_ratio + self.read_ratio:
            return Operation.LOAD
        return Operation.STORE

    def generate(self, num_requests):
        return [
            TraceRecord(self._next_operation(), self._next_slot() * self.stride, self.stride, n)
            for n in range(1, num_requests + 1)
        ]


class BenchmarkRunner:
    """Replays one synthetic workload against every configured geometry."""

    def __init__(self, cfg):
        self.cfg = cfg
        bench_cfg = cfg.get("benchmark", {})
        self.num_requests = bench_cfg.get("num_requests", 10000)
        self.geometries = [Geometry(*g) for g in bench_cfg.get("geometries", DEFAULT_GEOMETRIES)]
        self.workload = WorkloadGenerator(
            working_set_kb=bench_cfg.get("working_set_kb", 64),
            stride_bytes=bench_cfg.get("stride_bytes", 8),
            read_ratio=bench_cfg.get("read_ratio", 0.7),
            modify_ratio=bench_cfg.get("modify_ratio", 0.1),
            access_pattern=bench_cfg.get("access_pattern", "mixed"),
            random_seed=bench_cfg.get("random_seed", None),
        )

    def run(self):
        records = self.workload.generate(self.num_requests)
        summaries = []
        for geometry in self.geometries:
            start = time.perf_counter()
            snap, _ = simulate(geometry, records)
            end = time.perf_counter()
            accesses = snap.hits + snap.misses
            summaries.append({
                "geometry": list(geometry),
                "label": geometry.label(),
                "capacity_bytes": geometry.capacity_bytes,
                "hits": snap.hits,
                "misses": snap.misses,
                "evictions": snap.evictions,
                "hit_rate": snap.hits / accesses if accesses else 0.0,
                "miss_rate": snap.misses / accesses if accesses else 0.0,
                "duration_s": end - start
            })
            logger.info("%s: hit rate %.4f", geometry.label(), summaries[-1]["hit_rate"])
        return summaries

    def save_results(self, summaries, out_cfg):
        results_dir = out_cfg.get("results_dir", "results")
        os.makedirs(results_dir, exist_ok=True)
        path = os.path.join(results_dir, "results.json")
        with open(path, "w") as f:
            json.dump(summaries, f, indent=2)
        return path
