"""Specialized kernels for common broadcast shapes.

Each kernel inspects only shapes and operand kinds, returns ``False`` without
touching ``dest`` when its preconditions do not hold, and otherwise writes
every position of ``dest`` in the same column-major order, with the same
function calls, as the generic path. Any change to the generic contract in
``evaluator.py`` has to be reflected here; ``tests/test_fastpaths.py`` checks
every kernel against the generic path.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .builtins import ARITHMETIC
from .expression import Broadcasted
from .operands import OperandKind, kind_of, shape_of
from .shapes import iter_cartesian

logger = logging.getLogger(__name__)

Kernel = Callable[..., bool]
Store = Callable[[np.ndarray, Tuple[int, ...], Any], None]


def assign(dest: np.ndarray, pos: Tuple[int, ...], value: Any) -> None:
    dest[pos] = value


def _arithmetic_ufunc(f: Callable[..., Any]) -> Optional[np.ufunc]:
    for op, ufunc in ARITHMETIC.items():
        if op is f:
            return ufunc
    return None


def _is_dense(value: Any) -> bool:
    return kind_of(value) is OperandKind.DENSE


def same_shape_binary(
    dest: np.ndarray, node: Broadcasted, *, arithmetic: bool = True, store: Store = assign
) -> bool:
    if dest.ndim != 1 or len(node.args) != 2:
        return False
    a, b = node.args
    if not (_is_dense(a) and _is_dense(b)):
        return False
    if a.ndim != 1 or b.ndim != 1:
        return False
    if a is dest or b is dest:
        return False
    n = dest.shape[0]
    if a.shape[0] != n or b.shape[0] != n:
        return False
    f = node.f
    ufunc = _arithmetic_ufunc(f) if arithmetic else None
    if ufunc is not None and dest.dtype == a.dtype == b.dtype == np.float64:
        # IEEE float64 ops give the same bits vectorized or one at a time.
        ufunc(a, b, out=dest)
        return True
    for i in range(n):
        store(dest, (i,), f(a[i], b[i]))
    return True


def _refs_dest(arg: Any, dest: np.ndarray) -> bool:
    kind = kind_of(arg)
    if kind is OperandKind.DENSE:
        return arg is dest
    if kind is OperandKind.NODE:
        return any(_refs_dest(inner, dest) for inner in arg.args)
    return False


def _compatible_2d(arg: Any, rows: int, cols: int) -> bool:
    shape = shape_of(arg)
    if len(shape) == 0:
        return True
    if len(shape) == 1:
        return shape[0] in (1, rows)
    if len(shape) == 2:
        return shape[0] in (1, rows) and shape[1] in (1, cols)
    return False


def _fetch_2d(arg: Any, i: int, j: int) -> Any:
    kind = kind_of(arg)
    if kind is OperandKind.SCALAR:
        return arg
    if kind is OperandKind.REF:
        return arg.value
    if kind is OperandKind.DENSE:
        shape = arg.shape
        if len(shape) == 0:
            return arg[()]
        ii = 0 if shape[0] == 1 else i
        if len(shape) == 1:
            return arg[ii]
        return arg[ii, 0 if shape[1] == 1 else j]
    if kind is OperandKind.RANGE or kind is OperandKind.TUPLE:
        return arg[0] if len(arg) == 1 else arg[i]
    if kind is OperandKind.NODE:
        return arg.f(*[_fetch_2d(inner, i, j) for inner in arg.args])
    return arg.fetch((i, j))


def two_dim_binary(
    dest: np.ndarray, node: Broadcasted, *, arithmetic: bool = True, store: Store = assign
) -> bool:
    if dest.ndim != 2 or len(node.args) != 2:
        return False
    a, b = node.args
    if _refs_dest(a, dest) or _refs_dest(b, dest):
        return False
    rows, cols = dest.shape
    if not (_compatible_2d(a, rows, cols) and _compatible_2d(b, rows, cols)):
        return False
    f = node.f
    for j in range(cols):
        for i in range(rows):
            store(dest, (i, j), f(_fetch_2d(a, i, j), _fetch_2d(b, i, j)))
    return True


def _scalar_value(value: Any) -> Tuple[bool, Any]:
    kind = kind_of(value)
    if kind is OperandKind.REF:
        return True, value.value
    if kind is OperandKind.SCALAR:
        return True, value
    return False, None


def array_scalar(
    dest: np.ndarray, node: Broadcasted, *, arithmetic: bool = True, store: Store = assign
) -> bool:
    if len(node.args) != 2:
        return False
    left, right = node.args
    left_kind = kind_of(left)
    right_kind = kind_of(right)
    if left_kind in (OperandKind.DENSE, OperandKind.RANGE):
        ok, scalar = _scalar_value(right)
        arr, arr_kind, scalar_left = left, left_kind, False
    elif right_kind in (OperandKind.DENSE, OperandKind.RANGE):
        ok, scalar = _scalar_value(left)
        arr, arr_kind, scalar_left = right, right_kind, True
    else:
        return False
    if not ok or arr is dest:
        return False
    if arr_kind is OperandKind.DENSE:
        if arr.shape != dest.shape:
            return False
    elif dest.ndim != 1 or len(arr) != dest.shape[0]:
        return False
    f = node.f
    dense = arr_kind is OperandKind.DENSE
    for pos in iter_cartesian(dest.shape):
        element = arr[pos] if dense else arr[pos[0]]
        if scalar_left:
            store(dest, pos, f(scalar, element))
        else:
            store(dest, pos, f(element, scalar))
    return True


KERNELS: Dict[str, Kernel] = {
    "same_shape_binary": same_shape_binary,
    "two_dim_binary": two_dim_binary,
    "array_scalar": array_scalar,
}

KERNEL_NAMES: Tuple[str, ...] = tuple(KERNELS)


def run_fast_path(
    dest: np.ndarray,
    node: Broadcasted,
    *,
    kernels: Sequence[str] = KERNEL_NAMES,
    arithmetic: bool = True,
    store: Store = assign,
) -> Optional[str]:
    """Run the first applicable kernel; return its name or ``None``.

    Every non-ufunc write goes through ``store``, in column-major order.
    """
    for name in KERNEL_NAMES:
        if name not in kernels:
            continue
        if KERNELS[name](dest, node, arithmetic=arithmetic, store=store):
            logger.debug("Fast path %s wrote shape %s", name, dest.shape)
            return name
    return None
