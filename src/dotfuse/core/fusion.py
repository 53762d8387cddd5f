"""Loop fusion for nested broadcast expressions.

``flatten`` rewrites ``f(g(x, y), h(z))`` into a single node over the leaves
``(x, y, z)`` whose function re-slices the flat value list into the original
calling convention. Any arity and any depth share the same mechanism: count
the leaves under each argument, turn the counts into offsets, and slice the
flat values at evaluation time.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, List, Sequence, Tuple

from .expression import Broadcasted
from .operands import OperandKind, kind_of

logger = logging.getLogger(__name__)


def _function_name(f: Callable[..., Any]) -> str:
    return getattr(f, "__name__", None) or type(f).__name__


class LeafSelector:
    __slots__ = ("offset",)

    def __init__(self, offset: int):
        self.offset = offset

    def __call__(self, flat_args: Sequence[Any]) -> Any:
        return flat_args[self.offset]

    def __repr__(self) -> str:
        return f"LeafSelector({self.offset})"


class CallSelector:
    __slots__ = ("f", "start", "stop")

    def __init__(self, f: Callable[..., Any], start: int, stop: int):
        self.f = f
        self.start = start
        self.stop = stop

    def __call__(self, flat_args: Sequence[Any]) -> Any:
        return self.f(*flat_args[self.start : self.stop])

    def __repr__(self) -> str:
        return f"CallSelector({_function_name(self.f)}, {self.start}:{self.stop})"


class FusedFunction:
    """Callable over the flat leaf values of a fused expression."""

    def __init__(self, f: Callable[..., Any], makeargs: Sequence[Callable[[Sequence[Any]], Any]]):
        self.f = f
        self.makeargs = tuple(makeargs)
        inner = ",".join(
            _function_name(sel.f) if isinstance(sel, CallSelector) else "_"
            for sel in self.makeargs
        )
        self.__name__ = f"{_function_name(f)}({inner})"

    def __call__(self, *flat_args: Any) -> Any:
        return self.f(*[select(flat_args) for select in self.makeargs])

    def __repr__(self) -> str:
        return f"FusedFunction({self.__name__})"


def _flatten_args(args: Sequence[Any]) -> Tuple[List[Any], List[Callable[[Sequence[Any]], Any]]]:
    leaves: List[Any] = []
    makeargs: List[Callable[[Sequence[Any]], Any]] = []
    for arg in args:
        offset = len(leaves)
        if kind_of(arg) is OperandKind.NODE:
            child = flatten(arg)
            leaves.extend(child.args)
            makeargs.append(CallSelector(child.f, offset, offset + len(child.args)))
        else:
            leaves.append(arg)
            makeargs.append(LeafSelector(offset))
    return leaves, makeargs


def make_makeargs(args: Sequence[Any]) -> Tuple[Callable[[Sequence[Any]], Any], ...]:
    """One selector per argument, reading from the flat leaf values."""
    _, makeargs = _flatten_args(args)
    return tuple(makeargs)


def cat_nested(node: Broadcasted) -> Tuple[Any, ...]:
    return node.leaves()


def flatten(node: Broadcasted) -> Broadcasted:
    """Collapse nested nodes into one node with a composite function.

    Flat nodes are returned as-is. The fused node keeps the original axes and
    style, and evaluates to the same value at every position.
    """
    if node.is_flat():
        return node
    leaves, makeargs = _flatten_args(node.args)
    fused = FusedFunction(node.f, makeargs)
    logger.debug("Fused %s into %d leaves", fused.__name__, len(leaves))
    return replace(node, f=fused, args=tuple(leaves))
