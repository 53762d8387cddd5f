"""Operand model for the broadcasting engine.

Every argument of a broadcast expression is classified into one closed set of
kinds (:class:`OperandKind`). All shape queries and element reads go through
:func:`shape_of` and :func:`fetch`, so the rest of the engine never needs
ad-hoc ``isinstance`` chains.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence, Tuple, Union

import numpy as np

from .exceptions import OperandError
from .shapes import Shape

Index = Union[int, Sequence[int]]


class OperandKind(str, Enum):
    DENSE = "dense"
    RANGE = "range"
    TUPLE = "tuple"
    SCALAR = "scalar"
    REF = "ref"
    NODE = "node"
    EXTRUDED = "extruded"


class Ref:
    """Single-cell box that makes its content broadcast as one scalar.

    The wrapped value is unwrapped exactly once when read, so ``Ref([1, 2])``
    passes the whole list to the function at every position.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __getitem__(self, key: Any) -> Any:
        if key != ():
            raise IndexError("Ref only supports the empty index []")
        return self.value

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


@dataclass(frozen=True)
class LinRange:
    """``length`` evenly spaced floats from ``start`` to ``stop`` inclusive."""

    start: float
    stop: float
    length: int

    def __post_init__(self) -> None:
        if int(self.length) < 0:
            raise ValueError("LinRange length must be non-negative")
        if self.length == 1 and self.start != self.stop:
            raise ValueError("LinRange of length 1 requires start == stop")

    @property
    def step(self) -> float:
        if self.length < 2:
            return 0.0
        return (self.stop - self.start) / (self.length - 1)

    def __len__(self) -> int:
        return int(self.length)

    def __getitem__(self, i: int) -> float:
        n = int(self.length)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"LinRange index {i} out of range for length {n}")
        if n == 1:
            return float(self.start)
        return (self.start * (n - 1 - i) + self.stop * i) / (n - 1)

    def __iter__(self):
        for i in range(int(self.length)):
            yield self[i]


def kind_of(value: Any) -> OperandKind:
    marker = getattr(value, "_dotfuse_kind", None)
    if marker is not None:
        return marker
    if isinstance(value, np.ndarray):
        return OperandKind.DENSE
    if isinstance(value, (range, LinRange)):
        return OperandKind.RANGE
    if isinstance(value, tuple):
        return OperandKind.TUPLE
    if isinstance(value, Ref):
        return OperandKind.REF
    return OperandKind.SCALAR


def as_operand(value: Any) -> Any:
    """Normalize a user-supplied argument before it enters an expression."""
    if isinstance(value, list):
        try:
            return np.asarray(value)
        except ValueError as exc:
            raise OperandError(f"cannot broadcast over ragged list: {exc}") from exc
    if isinstance(value, dict):
        raise OperandError("broadcasting over dictionaries is reserved")
    if isinstance(value, (set, frozenset)):
        raise OperandError("broadcasting over sets is not supported; collect into a list first")
    return value


def shape_of(value: Any) -> Shape:
    kind = kind_of(value)
    if kind is OperandKind.DENSE:
        return tuple(int(extent) for extent in value.shape)
    if kind is OperandKind.RANGE or kind is OperandKind.TUPLE:
        return (len(value),)
    if kind is OperandKind.NODE:
        return value.axes()
    if kind is OperandKind.EXTRUDED:
        return shape_of(value.value)
    return ()


def _as_index(index: Index) -> Tuple[int, ...]:
    if isinstance(index, (int, np.integer)):
        return (int(index),)
    return tuple(index)


def fetch(value: Any, index: Index) -> Any:
    """Read the element of ``value`` seen at target position ``index``.

    Size-1 dimensions repeat their only element; scalars ignore the index;
    a :class:`Ref` yields its content; nested expressions are evaluated.
    """
    kind = kind_of(value)
    if kind is OperandKind.SCALAR:
        return value
    if kind is OperandKind.REF:
        return value.value
    index = _as_index(index)
    if kind is OperandKind.DENSE:
        shape = value.shape
        local = tuple(
            0 if shape[dim] == 1 or dim >= len(index) else index[dim]
            for dim in range(len(shape))
        )
        return value[local]
    if kind is OperandKind.RANGE or kind is OperandKind.TUPLE:
        if len(value) == 1 or not index:
            return value[0]
        return value[index[0]]
    if kind is OperandKind.NODE:
        return value.element_at(index)
    return value.fetch(index)


_NO_SAMPLE = object()


def sample_element(value: Any) -> Any:
    """Representative element used for element-type inference.

    Returns a private sentinel when ``value`` has no elements.
    """
    kind = kind_of(value)
    if kind is OperandKind.SCALAR:
        return value
    if kind is OperandKind.REF:
        return value.value
    if kind is OperandKind.DENSE:
        if value.size == 0:
            return _NO_SAMPLE
        return value[(0,) * value.ndim]
    if kind is OperandKind.RANGE or kind is OperandKind.TUPLE:
        if len(value) == 0:
            return _NO_SAMPLE
        return value[0]
    if kind is OperandKind.NODE:
        samples = [sample_element(arg) for arg in value.args]
        if any(sample is _NO_SAMPLE for sample in samples):
            return _NO_SAMPLE
        return value.f(*samples)
    return sample_element(value.value)


def has_sample(sample: Any) -> bool:
    return sample is not _NO_SAMPLE


def itemsize_of(value: Any) -> int:
    kind = kind_of(value)
    if kind is OperandKind.DENSE:
        return int(value.dtype.itemsize)
    if kind is OperandKind.NODE:
        return 0
    if kind is OperandKind.EXTRUDED:
        return itemsize_of(value.value)
    return int(np.dtype(np.float64).itemsize)
