from __future__ import annotations

import runpy
from pathlib import Path

import pytest

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"
BENCHMARKS_DIR = Path(__file__).resolve().parent.parent / "benchmarks"


@pytest.mark.parametrize("path", sorted(EXAMPLES_DIR.glob("*.py")), ids=lambda p: p.name)
def test_example_runs(path: Path, capsys):
    runpy.run_path(str(path), run_name="__main__")
    assert capsys.readouterr().out


def test_fastpath_benchmark_smoke(capsys):
    module = runpy.run_path(str(BENCHMARKS_DIR / "fastpath_benchmark.py"))
    assert module["main"](["--n", "64", "--iterations", "1", "--warmup", "0"]) == 0
    out = capsys.readouterr().out
    assert "vector_add" in out
    assert "same_shape_binary" in out
