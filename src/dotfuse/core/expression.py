"""Lazy broadcast expressions.

A :class:`Broadcasted` node records a function and its arguments without
evaluating anything. Composing calls nests nodes; existing nodes are never
modified, so a tree can be materialized any number of times.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Iterator, Optional, Sequence, Tuple

from .exceptions import OperandError
from .operands import Index, OperandKind, as_operand, fetch, kind_of, shape_of
from .shapes import Shape, check_broadcast_shape, combine_shapes, normalize_shape, shape_length
from .styles import BroadcastStyle, DefaultArrayStyle, combine_styles


@dataclass(frozen=True, eq=False)
class Broadcasted:
    f: Callable[..., Any]
    args: Tuple[Any, ...]
    resolved_axes: Optional[Shape] = None
    style: BroadcastStyle = field(default=DefaultArrayStyle(0))

    _dotfuse_kind: ClassVar[OperandKind] = OperandKind.NODE

    def axes(self) -> Shape:
        if self.resolved_axes is not None:
            return self.resolved_axes
        return combine_shapes(*(shape_of(arg) for arg in self.args))

    @property
    def ndim(self) -> int:
        return len(self.axes())

    def length(self) -> int:
        return shape_length(self.axes())

    def __len__(self) -> int:
        return self.length()

    def element_at(self, index: Index) -> Any:
        values = [fetch(arg, index) for arg in self.args]
        return self.f(*values)

    def __getitem__(self, index: Index) -> Any:
        return self.element_at(index)

    def is_flat(self) -> bool:
        return not any(kind_of(arg) is OperandKind.NODE for arg in self.args)

    def iter_leaves(self) -> Iterator[Any]:
        for arg in self.args:
            if kind_of(arg) is OperandKind.NODE:
                yield from arg.iter_leaves()
            else:
                yield arg

    def leaves(self) -> Tuple[Any, ...]:
        return tuple(self.iter_leaves())

    def count_leaves(self) -> int:
        return sum(1 for _ in self.iter_leaves())

    def iter_nodes(self) -> Iterator["Broadcasted"]:
        yield self
        for arg in self.args:
            if kind_of(arg) is OperandKind.NODE:
                yield from arg.iter_nodes()

    def count_nodes(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def __repr__(self) -> str:
        name = getattr(self.f, "__name__", None) or repr(self.f)
        inner = ", ".join(repr(arg) for arg in self.args)
        if len(self.args) == 1:
            inner += ","
        return f"Broadcasted({name}, ({inner}))"


def broadcasted(f: Callable[..., Any], *args: Any) -> Broadcasted:
    """Build a lazy node applying ``f`` elementwise over ``args``."""
    if not callable(f):
        raise OperandError(f"broadcast function must be callable, got {type(f).__name__}")
    operands = tuple(as_operand(arg) for arg in args)
    return Broadcasted(f, operands, None, combine_styles(*operands))


def instantiate(value: Any, axes: Optional[Sequence[int]] = None) -> Any:
    """Resolve the axes of a node, validating them when they are given.

    Passing ``axes`` makes that shape the broadcast target; every argument
    must then fit into it. Non-node values are returned unchanged.
    """
    if kind_of(value) is not OperandKind.NODE:
        return value
    if axes is None:
        if value.resolved_axes is None:
            return replace(value, resolved_axes=value.axes())
        target = value.resolved_axes
    else:
        target = normalize_shape(axes)
    for arg in value.args:
        check_broadcast_shape(target, shape_of(arg))
    if target is value.resolved_axes:
        return value
    return replace(value, resolved_axes=target)
