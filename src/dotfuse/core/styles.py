from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .operands import OperandKind, kind_of


@dataclass(frozen=True)
class DefaultArrayStyle:
    dims: int

    def __repr__(self) -> str:
        return f"DefaultArrayStyle{{{self.dims}}}()"


@dataclass(frozen=True)
class TupleStyle:
    def __repr__(self) -> str:
        return "Style{Tuple}()"


BroadcastStyle = Union[DefaultArrayStyle, TupleStyle]


def style_of(value: Any) -> BroadcastStyle:
    kind = kind_of(value)
    if kind is OperandKind.DENSE:
        return DefaultArrayStyle(value.ndim)
    if kind is OperandKind.RANGE:
        return DefaultArrayStyle(1)
    if kind is OperandKind.TUPLE:
        return TupleStyle()
    if kind is OperandKind.NODE:
        return value.style
    if kind is OperandKind.EXTRUDED:
        return style_of(value.value)
    return DefaultArrayStyle(0)


def result_style(left: BroadcastStyle, right: BroadcastStyle) -> BroadcastStyle:
    """Join two styles; tuples only win against zero-dimensional operands."""
    if isinstance(left, TupleStyle):
        if isinstance(right, TupleStyle) or right.dims == 0:
            return left
        return right
    if isinstance(right, TupleStyle):
        return right if left.dims == 0 else left
    return left if left.dims >= right.dims else right


def combine_styles(*values: Any) -> BroadcastStyle:
    style: BroadcastStyle = DefaultArrayStyle(0)
    for value in values:
        style = result_style(style, style_of(value))
    return style
