import operator

import numpy as np

from dotfuse import BroadcastRunner, ExecutionConfig, broadcasted


def _nested():
    x = np.arange(4.0).reshape(4, 1)
    y = np.arange(3.0).reshape(1, 3)
    return broadcasted(operator.add, broadcasted(operator.mul, x, 2.0), broadcasted(np.sqrt, y))


def test_runner_explain_text_lists_paths_and_summary():
    runner = BroadcastRunner(ExecutionConfig(fast_paths="none"))
    runner.materialize(_nested())
    runner.materialize(broadcasted(operator.add, np.ones(3), np.ones(3)))
    text = runner.explain()
    lines = text.splitlines()
    assert lines[0].startswith("[copy] + generic")
    assert "fused" in lines[0]
    assert "shape=(4, 3)" in lines[0]
    assert "leaves=3" in lines[0]
    assert "nodes=3" in lines[0]
    assert lines[-1].startswith("[perf] total=")
    assert "materializations=2" in lines[-1]
    assert "generic=2" in lines[-1]


def test_runner_explain_json_structure():
    runner = BroadcastRunner()
    dest = np.zeros(3)
    runner.copyto(dest, broadcasted(operator.add, np.ones(3), np.ones(3)))
    payload = runner.explain(json=True)
    entry = payload["logs"][0]
    assert entry["kind"] == "copyto"
    assert entry["path"] == "same_shape_binary"
    assert entry["shape"] == [3]
    assert entry["elements"] == 3
    assert entry["bytes_in"] == 48
    assert entry["bytes_out"] == 24
    assert payload["summary"]["materializations"] == 1
    assert payload["summary"]["paths"] == {"same_shape_binary": 1}


def test_runner_explain_reports_saved_intermediates_and_copies():
    runner = BroadcastRunner(ExecutionConfig(fast_paths="none"))
    runner.materialize(_nested())
    entry = runner.logs[0]
    assert entry["fused"] is True
    assert entry["function_calls"] == 12 * 3
    # mul node (4, 1) and sqrt node (1, 3) of float64
    assert entry["intermediate_bytes_avoided"] == (4 + 3) * 8

    a = np.ones(2)
    runner.copyto(a, broadcasted(operator.neg, a))
    assert runner.logs[-1]["defensive_copies"] == 1
    assert "copies=1" in runner.explain().splitlines()[1]


def test_runner_explain_scalar_result():
    runner = BroadcastRunner()
    assert runner.materialize(broadcasted(operator.add, 2, 3)) == 5
    assert runner.logs[0]["path"] == "scalar"
    assert runner.logs[0]["shape"] == ()


def test_runner_explain_reports_widened_results():
    runner = BroadcastRunner()
    result = runner.materialize(broadcasted(lambda x: x if x > 0 else 0.5, np.array([3, 0, 2])))
    assert result.tolist() == [3.0, 0.5, 2.0]
    assert runner.logs[-1]["widened"] == 1
    assert "widened=1" in runner.explain()
    runner.materialize(broadcasted(operator.add, np.ones(2), 1.0))
    assert runner.logs[-1]["widened"] == 0
    assert "widened" not in runner.explain().splitlines()[1]
