from __future__ import annotations

from typing import Optional, Sequence, Tuple


class DotFuseError(Exception):
    """Base class for dotfuse-specific exceptions."""


class DimensionMismatch(DotFuseError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        dim: Optional[int] = None,
        extents: Optional[Sequence[int]] = None,
    ):
        detail = _format_dimension(dim, extents)
        super().__init__(f"{message}{detail}")
        self.dim = dim
        self.extents: Tuple[int, ...] = tuple(int(e) for e in extents) if extents else ()


class OperandError(DotFuseError, TypeError):
    pass


def _format_dimension(dim: Optional[int], extents: Optional[Sequence[int]]) -> str:
    if dim is None and not extents:
        return ""
    parts = []
    if dim is not None:
        parts.append(f"dim {dim}")
    if extents:
        parts.append("lengths " + " and ".join(str(int(e)) for e in extents))
    return f" ({', '.join(parts)})"
