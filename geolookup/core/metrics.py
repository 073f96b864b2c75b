"""Upstream call latency recorder.

Collects per-operation latency and outcome counts for the diagnostics
endpoint. One recorder belongs to one service instance.
"""
import time
from contextlib import contextmanager
from collections import defaultdict
from typing import Dict, List


class LatencyRecorder:
    def __init__(self, max_samples: int = 1000):
        self.max_samples = max_samples
        self._timings: Dict[str, List[float]] = defaultdict(list)
        self._failures: Dict[str, int] = defaultdict(int)

    @contextmanager
    def record(self, name: str):
        start = time.perf_counter()
        try:
            yield
        except BaseException:
            self._failures[name] += 1
            raise
        finally:
            samples = self._timings[name]
            samples.append((time.perf_counter() - start) * 1000.0)
            if len(samples) > self.max_samples:
                del samples[0]

    def call_count(self, name: str) -> int:
        return len(self._timings.get(name, ()))

    def snapshot(self) -> Dict[str, dict]:
        return {k: {
            "count": len(v),
            "failures": self._failures.get(k, 0),
            "avg_ms": (sum(v) / len(v)) if v else 0.0,
            "p95_ms": _percentile(v, 0.95),
        } for k, v in self._timings.items()}

    def reset(self) -> None:
        self._timings.clear()
        self._failures.clear()


def _percentile(values: List[float], p: float) -> float:
    if not values:
        return 0.0
    vals = sorted(values)
    idx = int(round(p * (len(vals) - 1)))
    return vals[idx]
