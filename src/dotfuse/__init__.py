from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _load_version

from .core.api import broadcast, broadcast_, broadcasted
from .core.builtins import andand, oror
from .core.evaluator import BroadcastRunner, ExecutionConfig, copy, copyto, materialize, materialize_
from .core.exceptions import DimensionMismatch, DotFuseError, OperandError
from .core.expression import Broadcasted, instantiate
from .core.fusion import flatten
from .core.operands import LinRange, Ref
from .core.shapes import broadcast_shape, combine_shapes
from .core.styles import DefaultArrayStyle, TupleStyle

try:
    __version__ = _load_version("dotfuse")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "broadcast",
    "broadcast_",
    "broadcasted",
    "materialize",
    "materialize_",
    "copy",
    "copyto",
    "instantiate",
    "flatten",
    "Broadcasted",
    "BroadcastRunner",
    "ExecutionConfig",
    "combine_shapes",
    "broadcast_shape",
    "Ref",
    "LinRange",
    "DefaultArrayStyle",
    "TupleStyle",
    "andand",
    "oror",
    "DotFuseError",
    "DimensionMismatch",
    "OperandError",
    "__version__",
]
