"""Extrusion: index translation for size-1 dimensions without copying.

An operand whose dimension ``d`` has extent 1 is *extruded* along ``d``: every
target index maps to the operand's first index there. The mapping is fixed
per operand, so it is computed once per materialization and reused for every
output position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from .operands import OperandKind, kind_of, shape_of
from .shapes import Shape, check_broadcast_shape

INDEX_ORIGIN = 0


@dataclass(frozen=True)
class ExtrusionInfo:
    keep: Tuple[bool, ...]
    default: Tuple[int, ...]

    @property
    def ndim(self) -> int:
        return len(self.keep)


def build_extrusion(
    operand_shape: Sequence[int],
    target_shape: Optional[Sequence[int]] = None,
) -> ExtrusionInfo:
    if target_shape is not None:
        check_broadcast_shape(target_shape, operand_shape)
    keep = tuple(int(extent) != 1 for extent in operand_shape)
    default = tuple(INDEX_ORIGIN for _ in operand_shape)
    return ExtrusionInfo(keep=keep, default=default)


def translate(info: ExtrusionInfo, target_index: Sequence[int]) -> Shape:
    """Map a target position onto the operand's own index space."""
    n = len(target_index)
    return tuple(
        target_index[dim] if keep and dim < n else default
        for dim, (keep, default) in enumerate(zip(info.keep, info.default))
    )


class Extruded:
    """A leaf operand paired with its precomputed :class:`ExtrusionInfo`."""

    _dotfuse_kind = OperandKind.EXTRUDED
    __slots__ = ("value", "info", "_dense")

    def __init__(self, value: Any, info: ExtrusionInfo):
        self.value = value
        self.info = info
        self._dense = kind_of(value) is OperandKind.DENSE

    def fetch(self, target_index: Sequence[int]) -> Any:
        local = translate(self.info, target_index)
        if self._dense:
            return self.value[local]
        return self.value[local[0]]

    def __repr__(self) -> str:
        return f"Extruded({self.value!r}, keep={self.info.keep})"


def extrude(value: Any, target_shape: Optional[Sequence[int]] = None) -> Any:
    """Wrap array-like leaves; scalars, refs and expressions pass through."""
    kind = kind_of(value)
    if kind in (OperandKind.DENSE, OperandKind.RANGE, OperandKind.TUPLE):
        return Extruded(value, build_extrusion(shape_of(value), target_shape))
    return value
