import operator

import numpy as np
import pytest

from dotfuse import BroadcastRunner, ExecutionConfig, LinRange, Ref, broadcasted, instantiate
from dotfuse.core.fastpaths import (
    KERNEL_NAMES,
    array_scalar,
    run_fast_path,
    same_shape_binary,
    two_dim_binary,
)


def _generic(node, shape, dtype):
    dest = np.empty(shape, dtype=dtype)
    BroadcastRunner(ExecutionConfig(fast_paths="none")).copyto(dest, node)
    return dest


def _kernel(name, node, shape, dtype, **config):
    dest = np.empty(shape, dtype=dtype)
    runner = BroadcastRunner(ExecutionConfig(fast_paths=[name], **config))
    runner.copyto(dest, node)
    return dest, runner.logs[-1]["path"]


def test_kernel_order():
    assert KERNEL_NAMES == ("same_shape_binary", "two_dim_binary", "array_scalar")


@pytest.mark.parametrize("op", [operator.add, operator.sub, operator.mul, operator.truediv])
def test_same_shape_binary_ufunc_is_bit_identical(op):
    rng = np.random.default_rng(0)
    a = rng.standard_normal(17)
    b = rng.standard_normal(17) + 3.0
    node = broadcasted(op, a, b)
    fast, path = _kernel("same_shape_binary", node, (17,), np.float64)
    assert path == "same_shape_binary"
    assert np.array_equal(fast, _generic(node, (17,), np.float64))


def test_same_shape_binary_generic_function():
    a = np.array([1, 5, 3])
    b = np.array([4, 2, 6])
    node = broadcasted(max, a, b)
    fast, path = _kernel("same_shape_binary", node, (3,), np.int64)
    assert path == "same_shape_binary"
    assert fast.tolist() == [4, 5, 6]


def test_same_shape_binary_without_arithmetic_kernels():
    a = np.array([0.1, 0.2])
    b = np.array([0.7, 0.9])
    node = broadcasted(operator.add, a, b)
    fast, path = _kernel("same_shape_binary", node, (2,), np.float64, arithmetic_kernels=False)
    assert path == "same_shape_binary"
    assert np.array_equal(fast, a + b)


def test_same_shape_binary_preconditions():
    dest = np.zeros(3)
    assert not same_shape_binary(dest, broadcasted(operator.add, np.zeros(3), 1.0))
    assert not same_shape_binary(dest, broadcasted(operator.add, np.zeros(3), np.zeros(1)))
    assert not same_shape_binary(dest, broadcasted(operator.add, dest, np.zeros(3)))
    assert not same_shape_binary(np.zeros((3, 1)), broadcasted(operator.add, np.zeros(3), np.zeros(3)))
    assert (dest == 0).all()


def test_two_dim_binary_matches_generic():
    col = np.array([[1.0], [2.0], [3.0]])
    row = np.array([[10.0, 20.0]])
    for a, b in [(col, row), (row, col), (col, 5.0), (np.arange(6.0).reshape(3, 2), Ref(2.0))]:
        node = broadcasted(operator.pow, a, b)
        fast, path = _kernel("two_dim_binary", node, (3, 2), np.float64)
        assert path == "two_dim_binary"
        assert np.array_equal(fast, _generic(node, (3, 2), np.float64))


def test_two_dim_binary_with_nested_operands():
    x = np.array([[1], [2], [3]])
    node = broadcasted(operator.add, broadcasted(operator.mul, x, (1, 2, 3)), np.array([[0, 100]]))
    fast, path = _kernel("two_dim_binary", node, (3, 2), np.int64)
    assert path == "two_dim_binary"
    assert fast.tolist() == [[1, 101], [4, 104], [9, 109]]


def test_two_dim_binary_defers_when_destination_is_referenced():
    dest = np.ones((2, 2))
    node = broadcasted(operator.add, broadcasted(operator.neg, dest), 1.0)
    assert not two_dim_binary(dest, node)
    assert not two_dim_binary(dest, broadcasted(operator.add, np.ones((2, 2, 1)), 1.0))
    assert not two_dim_binary(dest, broadcasted(operator.add, np.ones((3, 2)), 1.0))


def test_array_scalar_matches_generic():
    arr = np.arange(12).reshape(3, 2, 2)
    for node in (broadcasted(operator.sub, arr, 4), broadcasted(operator.sub, Ref(4), arr)):
        fast, path = _kernel("array_scalar", node, (3, 2, 2), np.int64)
        assert path == "array_scalar"
        assert np.array_equal(fast, _generic(node, (3, 2, 2), np.int64))


def test_array_scalar_over_ranges():
    node = broadcasted(operator.truediv, LinRange(0.0, 2.0, 5), 2.0)
    fast, path = _kernel("array_scalar", node, (5,), np.float64)
    assert path == "array_scalar"
    np.testing.assert_allclose(fast, [0.0, 0.25, 0.5, 0.75, 1.0])


def test_array_scalar_preconditions():
    dest = np.zeros((2, 2))
    assert not array_scalar(dest, broadcasted(operator.add, dest, 1))
    assert not array_scalar(dest, broadcasted(operator.add, np.zeros((1, 2)), 1))
    assert not array_scalar(dest, broadcasted(operator.add, np.zeros((2, 2)), np.zeros((2, 2))))
    assert not array_scalar(dest, broadcasted(operator.add, range(2), 1))
    assert not array_scalar(dest, broadcasted(abs, np.zeros((2, 2))))


def test_run_fast_path_respects_selection():
    dest = np.zeros(3)
    node = instantiate(broadcasted(operator.add, np.ones(3), np.ones(3)))
    assert run_fast_path(dest, node, kernels=()) is None
    assert run_fast_path(dest, node, kernels=("array_scalar",)) is None
    assert run_fast_path(dest, node) == "same_shape_binary"
    assert dest.tolist() == [2.0, 2.0, 2.0]


def test_fast_paths_fall_back_to_generic():
    runner = BroadcastRunner()
    result = runner.materialize(broadcasted(lambda a, b, c: a + b + c, np.ones(2), 1, 2))
    assert result.tolist() == [4.0, 4.0]
    assert runner.logs[-1]["path"] == "generic"


def test_kernels_store_results_in_column_major_order():
    written = []

    def record(dest, pos, value):
        written.append(pos)
        dest[pos] = value

    dest = np.empty((2, 3), dtype=np.int64)
    node = instantiate(broadcasted(operator.mul, np.array([[1], [2]]), np.array([[1, 2, 3]])))
    assert run_fast_path(dest, node, store=record) == "two_dim_binary"
    assert written == [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2), (1, 2)]
    assert dest.tolist() == [[1, 2, 3], [2, 4, 6]]
