#!/usr/bin/env python3
"""
Fast-path and fusion benchmark for the dotfuse broadcasting engine.

Times the same expressions under several ``ExecutionConfig`` settings: every
kernel enabled, generic loop only, and generic loop without fusion. Each
configuration is checked against the generic result before it is timed.
"""

from __future__ import annotations

import argparse
import math
import operator
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import numpy as np

from dotfuse import BroadcastRunner, ExecutionConfig, broadcasted

CONFIGS: Dict[str, ExecutionConfig] = {
    "fast": ExecutionConfig(),
    "generic": ExecutionConfig(fast_paths="none"),
    "unfused": ExecutionConfig(fast_paths="none", fusion=False),
}


@dataclass
class BenchmarkResult:
    case: str
    config: str
    path: str
    min_s: float
    mean_s: float
    iterations: int
    elements_per_s: Optional[float]


def build_cases(*, n: int, seed: int) -> Dict[str, Any]:
    rng = np.random.default_rng(seed)
    a = rng.normal(size=n)
    b = rng.normal(size=n)
    col = rng.normal(size=(n // 8, 1))
    row = rng.normal(size=(1, 8))
    return {
        "vector_add": broadcasted(operator.add, a, b),
        "outer_mul": broadcasted(operator.mul, col, row),
        "axpy": broadcasted(operator.mul, a, 2.5),
        "nested": broadcasted(operator.add, broadcasted(operator.mul, a, 2.0), broadcasted(abs, b)),
    }


def bench(
    fn: Callable[[], Any],
    *,
    iterations: int,
    warmup: int,
) -> Iterable[float]:
    timings = []
    for step in range(iterations + warmup):
        start = time.perf_counter()
        fn()
        elapsed = time.perf_counter() - start
        if step >= warmup:
            timings.append(elapsed)
    return timings


def run_case(name: str, node: Any, config_name: str, *, iterations: int, warmup: int) -> BenchmarkResult:
    expected = BroadcastRunner(CONFIGS["generic"]).materialize(node)
    runner = BroadcastRunner(CONFIGS[config_name])
    result = runner.materialize(node)
    if not np.array_equal(result, expected):
        raise RuntimeError(f"{name}: {config_name} result differs from the generic loop")
    path = runner.logs[-1]["path"]

    timings = list(bench(lambda: runner.materialize(node), iterations=iterations, warmup=warmup))
    min_s = min(timings)
    mean_s = sum(timings) / len(timings)
    elements = int(np.asarray(expected).size)
    return BenchmarkResult(
        case=name,
        config=config_name,
        path=path,
        min_s=min_s,
        mean_s=mean_s,
        iterations=iterations,
        elements_per_s=elements / min_s if min_s > 0 else None,
    )


def format_results(results: Iterable[BenchmarkResult]) -> str:
    header = (
        f"{'case':<12} {'config':<8} {'path':<18} {'min (ms)':>12} {'mean (ms)':>12} "
        f"{'iters':>6} {'elem/s':>14}"
    )
    rows = [header]
    for result in results:
        min_ms = result.min_s * 1e3
        mean_ms = result.mean_s * 1e3
        rate = result.elements_per_s or math.nan
        rows.append(
            f"{result.case:<12} {result.config:<8} {result.path:<18} {min_ms:12.3f} {mean_ms:12.3f} "
            f"{result.iterations:6d} {rate:14.1f}"
        )
    return "\n".join(rows)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark dotfuse fast paths against the generic loop.")
    parser.add_argument("--n", type=int, default=4096, help="Vector length (default: 4096).")
    parser.add_argument("--seed", type=int, default=2024, help="Random seed for inputs (default: 2024).")
    parser.add_argument("--iterations", type=int, default=10, help="Timed iterations (default: 10).")
    parser.add_argument("--warmup", type=int, default=2, help="Warmup iterations to discard (default: 2).")
    parser.add_argument(
        "--config",
        choices=(*CONFIGS, "all"),
        default="all",
        help="Execution configuration(s) to time (default: all).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    cases = build_cases(n=args.n, seed=args.seed)
    requested = tuple(CONFIGS) if args.config == "all" else (args.config,)
    results = [
        run_case(name, node, config_name, iterations=args.iterations, warmup=args.warmup)
        for name, node in cases.items()
        for config_name in requested
    ]
    print(format_results(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
