"""Shape algebra for broadcasting.

Shapes are plain tuples of non-negative extents. Missing trailing dimensions
behave as extent 1, so ``(3,)`` and ``(3, 1)`` describe the same broadcast
footprint. Positions are enumerated in column-major order (first dimension
varying fastest); user functions with side effects observe that order.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence, Tuple

from .exceptions import DimensionMismatch

Shape = Tuple[int, ...]


def normalize_shape(shape: Iterable[int]) -> Shape:
    result = tuple(int(extent) for extent in shape)
    for dim, extent in enumerate(result):
        if extent < 0:
            raise ValueError(f"Negative extent {extent} at dim {dim}")
    return result


def combine_shapes(*shapes: Sequence[int]) -> Shape:
    """Combine operand shapes into the common broadcast shape.

    For every dimension up to the largest rank, extents of 1 (or absent
    dimensions) stretch to the single non-1 extent present. Two different
    non-1 extents at the same dimension raise :class:`DimensionMismatch`.
    The result does not depend on the order of ``shapes``.
    """
    if not shapes:
        return ()
    ndim = max(len(shape) for shape in shapes)
    result: List[int] = []
    for dim in range(ndim):
        extent = 1
        for shape in shapes:
            other = int(shape[dim]) if dim < len(shape) else 1
            if other == 1 or other == extent:
                continue
            if extent == 1:
                extent = other
                continue
            raise DimensionMismatch(
                "arrays could not be broadcast to a common size",
                dim=dim,
                extents=(extent, other),
            )
        result.append(extent)
    return tuple(result)


def broadcast_shape(*shapes: Sequence[int]) -> Shape:
    return combine_shapes(*shapes)


def check_broadcast_shape(target: Sequence[int], shape: Sequence[int]) -> None:
    """Raise unless ``shape`` can be broadcast into ``target``."""
    for dim, extent in enumerate(shape):
        extent = int(extent)
        if dim < len(target):
            if extent != 1 and extent != int(target[dim]):
                raise DimensionMismatch(
                    "array could not be broadcast to match destination",
                    dim=dim,
                    extents=(int(target[dim]), extent),
                )
        elif extent != 1:
            raise DimensionMismatch(
                "cannot broadcast array to have fewer non-singleton dimensions",
                dim=dim,
                extents=(1, extent),
            )


def shape_length(shape: Sequence[int]) -> int:
    total = 1
    for extent in shape:
        total *= int(extent)
    return total


def column_major_strides(shape: Sequence[int]) -> Shape:
    strides: List[int] = []
    step = 1
    for extent in shape:
        strides.append(step)
        step *= int(extent)
    return tuple(strides)


def linear_to_cartesian(linear: int, shape: Sequence[int]) -> Shape:
    remaining = int(linear)
    index: List[int] = []
    for extent in shape:
        extent = int(extent)
        index.append(remaining % extent)
        remaining //= extent
    return tuple(index)


def cartesian_to_linear(index: Sequence[int], shape: Sequence[int]) -> int:
    linear = 0
    for position, stride in zip(index, column_major_strides(shape)):
        linear += int(position) * stride
    return linear


def iter_cartesian(shape: Sequence[int], start: int = 0) -> Iterator[Shape]:
    """Yield every position of ``shape`` with the first dimension fastest.

    ``start`` is a column-major linear index; iteration resumes there.
    """
    extents = [int(extent) for extent in shape]
    total = shape_length(extents)
    if start >= total:
        return
    index = list(linear_to_cartesian(start, extents))
    for _ in range(start, total):
        yield tuple(index)
        for dim, extent in enumerate(extents):
            index[dim] += 1
            if index[dim] < extent:
                break
            index[dim] = 0
