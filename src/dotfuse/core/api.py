from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np

from .evaluator import BroadcastRunner, ExecutionConfig
from .expression import broadcasted
from .operands import OperandKind, kind_of

__all__ = ["broadcasted", "broadcast", "broadcast_"]


def broadcast(f: Callable[..., Any], *args: Any, config: Optional[ExecutionConfig] = None) -> Any:
    """Apply ``f`` elementwise over ``args`` and return a new result.

    When every argument is a plain scalar the call reduces to ``f(*args)``.
    """
    node = broadcasted(f, *args)
    if node.args and all(kind_of(arg) is OperandKind.SCALAR for arg in node.args):
        return f(*node.args)
    return BroadcastRunner(config).materialize(node)


def broadcast_(
    f: Callable[..., Any],
    dest: np.ndarray,
    *args: Any,
    config: Optional[ExecutionConfig] = None,
) -> np.ndarray:
    """Apply ``f`` elementwise over ``args`` writing into ``dest``; returns ``dest``."""
    return BroadcastRunner(config).materialize_(dest, broadcasted(f, *args))
