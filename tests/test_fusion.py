import operator

import numpy as np

from dotfuse import broadcasted, flatten
from dotfuse.core.fusion import CallSelector, FusedFunction, LeafSelector, cat_nested, make_makeargs
from dotfuse.core.shapes import iter_cartesian


def test_flat_nodes_are_returned_unchanged():
    node = broadcasted(operator.add, np.arange(3), 1)
    assert flatten(node) is node


def test_flatten_concatenates_leaves_left_to_right():
    x, y, z = np.arange(3), np.arange(3) * 10, 5
    node = broadcasted(operator.add, broadcasted(operator.mul, x, y), broadcasted(operator.neg, z))
    fused = flatten(node)
    assert fused.is_flat()
    assert len(fused.args) == 3
    assert fused.args[0] is x
    assert fused.args[1] is y
    assert fused.args[2] == 5
    assert isinstance(fused.f, FusedFunction)
    assert fused.f.__name__ == "add(mul,neg)"


def test_flatten_preserves_axes_and_style():
    node = broadcasted(abs, broadcasted(operator.sub, np.zeros((2, 1)), np.zeros((1, 3))))
    fused = flatten(node)
    assert fused.axes() == node.axes() == (2, 3)
    assert fused.style == node.style


def test_flatten_handles_arbitrary_arity_and_depth():
    def f4(a, b, c, d):
        return a * 1000 + b * 100 + c * 10 + d

    a = np.array([1, 2])
    b = np.array([[3, 4]])
    inner = broadcasted(f4, a, 1, broadcasted(operator.add, b, broadcasted(operator.neg, a)), 2)
    node = broadcasted(f4, inner, 0, inner, broadcasted(max, a, b, 3))
    fused = flatten(node)
    assert fused.is_flat()
    assert len(fused.args) == node.count_leaves() == 14
    for pos in iter_cartesian(node.axes()):
        assert fused.element_at(pos) == node.element_at(pos)


def test_fused_evaluation_keeps_inner_call_order():
    calls = []

    def tag(name):
        def inner(*values):
            calls.append(name)
            return sum(values)

        return inner

    node = broadcasted(
        tag("outer"),
        broadcasted(tag("left"), np.arange(2), broadcasted(tag("deep"), 1)),
        broadcasted(tag("right"), np.arange(2)),
    )
    expected_calls = []
    for pos in iter_cartesian((2,)):
        calls.clear()
        expected = node.element_at(pos)
        expected_calls = list(calls)
        calls.clear()
        assert flatten(node).element_at(pos) == expected
        assert calls == expected_calls
    assert expected_calls == ["deep", "left", "right", "outer"]


def test_fusion_matches_composed_function():
    x = np.array([1.5, -2.0, 3.25])
    nested = broadcasted(np.exp, broadcasted(np.sin, x))
    composed = broadcasted(lambda v: np.exp(np.sin(v)), x)
    fused = flatten(nested)
    for i in range(3):
        assert fused.element_at(i) == composed.element_at(i)


def test_make_makeargs_selects_leaves_and_calls():
    args = (np.arange(2), broadcasted(operator.add, 1, 2), 7)
    selectors = make_makeargs(args)
    assert isinstance(selectors[0], LeafSelector)
    assert isinstance(selectors[1], CallSelector)
    assert isinstance(selectors[2], LeafSelector)
    flat = ("x", 1, 2, 7)
    assert [select(flat) for select in selectors] == ["x", 3, 7]


def test_cat_nested_lists_flat_leaves():
    x = np.arange(2)
    node = broadcasted(operator.add, broadcasted(operator.neg, x), broadcasted(operator.add, 1, 2))
    leaves = cat_nested(node)
    assert leaves[0] is x
    assert leaves[1:] == (1, 2)
