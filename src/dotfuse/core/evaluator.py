from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .builtins import function_name, identity
from .exceptions import OperandError
from .expression import Broadcasted, broadcasted, instantiate
from .extrusion import extrude
from .fastpaths import KERNEL_NAMES, assign, run_fast_path
from .fusion import flatten
from .operands import (
    OperandKind,
    has_sample,
    itemsize_of,
    kind_of,
    sample_element,
    shape_of,
)
from .shapes import cartesian_to_linear, check_broadcast_shape, iter_cartesian
from .stats import compute_broadcast_stats
from .styles import TupleStyle

logger = logging.getLogger(__name__)


def _json_ready(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (np.integer, np.floating, np.bool_)):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, dict):
        return {str(k): _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_ready(v) for v in value]
    return str(value)


@dataclass
class ExecutionConfig:
    """
    Switches for how broadcast expressions are materialized.

    Key behaviors:
    * ``fusion`` flattens nested expressions into one node before the generic
      loop, so no intermediate array is ever allocated.
    * ``fast_paths`` selects the specialized kernels tried before the generic
      loop: ``"all"``, ``"none"`` or a sequence of kernel names.
    * ``arithmetic_kernels`` lets the equal-length 1-D kernel hand float64
      ``+ - * /`` to the matching NumPy ufunc.
    * ``copy_on_alias`` copies an operand that *is* the destination before
      writing; when disabled such calls raise :class:`OperandError`.
    """

    fusion: bool = True
    fast_paths: Union[str, Sequence[str]] = "all"  # "all" | "none" | kernel names
    arithmetic_kernels: bool = True
    copy_on_alias: bool = True
    explain: bool = True

    def normalized(self) -> "ExecutionConfig":
        fast = self.fast_paths
        if fast is None:
            kernels: Tuple[str, ...] = ()
        elif isinstance(fast, str):
            lowered = fast.strip().lower()
            if lowered == "all":
                kernels = KERNEL_NAMES
            elif lowered in {"none", ""}:
                kernels = ()
            else:
                kernels = tuple(part.strip() for part in lowered.split(",") if part.strip())
        else:
            kernels = tuple(str(name).strip().lower() for name in fast)
        for name in kernels:
            if name not in KERNEL_NAMES:
                raise ValueError(f"Unsupported fast path: {name}")
        return replace(
            self,
            fusion=bool(self.fusion),
            fast_paths=kernels,
            arithmetic_kernels=bool(self.arithmetic_kernels),
            copy_on_alias=bool(self.copy_on_alias),
            explain=bool(self.explain),
        )


_INT64 = np.iinfo(np.int64)


def value_dtype(value: Any) -> np.dtype:
    """Smallest standard dtype that stores ``value`` exactly."""
    if isinstance(value, (bool, np.bool_)):
        return np.dtype(np.bool_)
    if isinstance(value, np.generic) and value.dtype.kind in "iufc":
        return value.dtype
    if isinstance(value, int):
        if _INT64.min <= value <= _INT64.max:
            return np.dtype(np.int64)
        return np.dtype(object)
    if isinstance(value, float):
        return np.dtype(np.float64)
    if isinstance(value, complex):
        return np.dtype(np.complex128)
    return np.dtype(object)


def infer_dtype(node: Broadcasted) -> np.dtype:
    """Element type of ``node`` from one evaluation on first elements."""
    sample = sample_element(node)
    if not has_sample(sample):
        return np.dtype(np.float64)
    return value_dtype(sample)


def fits_dtype(value: Any, dtype: np.dtype) -> bool:
    """True when storing ``value`` into ``dtype`` loses nothing."""
    if dtype.kind == "O":
        return True
    source = value_dtype(value)
    if source.kind == "O":
        return False
    if source == dtype:
        return True
    if isinstance(value, int) and not isinstance(value, bool) and dtype.kind in "iu":
        info = np.iinfo(dtype)
        return info.min <= value <= info.max
    return bool(np.can_cast(source, dtype, "safe"))


def widen_dtype(dtype: np.dtype, value: Any) -> np.dtype:
    source = value_dtype(value)
    if source.kind == "O" or dtype.kind == "O":
        return np.dtype(object)
    widened = np.result_type(dtype, source)
    if not fits_dtype(value, widened):
        return np.dtype(object)
    return widened


class _ElementTypeChange(Exception):
    """Raised inside the fill loop when a result does not fit the buffer."""

    def __init__(self, pos: Tuple[int, ...], value: Any):
        super().__init__(pos)
        self.pos = pos
        self.value = value


def _checked_store(dest: np.ndarray, pos: Tuple[int, ...], value: Any) -> None:
    if not fits_dtype(value, dest.dtype):
        raise _ElementTypeChange(pos, value)
    dest[pos] = value


def _check_destination(dest: Any) -> np.ndarray:
    if not isinstance(dest, np.ndarray):
        raise OperandError(f"destination must be a numpy.ndarray, got {type(dest).__name__}")
    if not dest.flags.writeable:
        raise OperandError("destination array is read-only")
    return dest


class BroadcastRunner:
    def __init__(self, config: Optional[ExecutionConfig] = None):
        self.config = (config or ExecutionConfig()).normalized()
        self.logs: List[Dict[str, Any]] = []

    # Public API ----------------------------------------------------------------
    def materialize(self, value: Any) -> Any:
        if kind_of(value) is not OperandKind.NODE:
            return value
        return self.copy(instantiate(value))

    def materialize_(self, dest: Any, value: Any) -> np.ndarray:
        dest = _check_destination(dest)
        if kind_of(value) is not OperandKind.NODE:
            value = broadcasted(identity, value)
        return self.copyto(dest, instantiate(value, dest.shape))

    def copy(self, node: Broadcasted) -> Any:
        start = time.perf_counter()
        node = instantiate(node)
        axes = node.axes()
        if not axes:
            result = node.element_at(())
            self._log("copy", "scalar", node, axes, None, start, copies=0)
            return result
        dest = np.empty(axes, dtype=infer_dtype(node))
        dest = self._copyto(dest, node, kind="copy", start=start, widen=True)
        if isinstance(node.style, TupleStyle) and dest.ndim == 1:
            return tuple(dest.tolist())
        return dest

    def copyto(self, dest: Any, node: Any) -> np.ndarray:
        dest = _check_destination(dest)
        if kind_of(node) is not OperandKind.NODE:
            node = broadcasted(identity, node)
        return self._copyto(dest, instantiate(node), kind="copyto", start=time.perf_counter())

    def explain(self, *, json: bool = False):
        lines: List[str] = []
        total_ms = 0.0
        paths: Dict[str, int] = {}
        for entry in self.logs:
            duration = entry.get("duration_ms")
            if duration is not None:
                total_ms += float(duration)
            path = entry["path"]
            paths[path] = paths.get(path, 0) + 1
            details: List[str] = [f"shape={tuple(entry['shape'])}"]
            details.append(f"leaves={entry['leaves']}")
            if entry["nodes"] > 1:
                details.append(f"nodes={entry['nodes']}")
            if entry.get("fused"):
                details.append("fused")
            if entry.get("defensive_copies"):
                details.append(f"copies={entry['defensive_copies']}")
            if entry.get("widened"):
                details.append(f"widened={entry['widened']}")
            calls = entry.get("function_calls")
            if calls is not None:
                details.append(f"calls={calls}")
            avoided = entry.get("intermediate_bytes_avoided")
            if avoided:
                details.append(f"saved={avoided}B")
            timing = f" {duration:.3f}ms" if duration is not None else ""
            lines.append(f"[{entry['kind']}] {entry['function']} {path}{timing} {' '.join(details)}")

        summary: Optional[Dict[str, Any]] = None
        if self.logs:
            summary = {"materializations": len(self.logs), "total_ms": total_ms, "paths": paths}
            counts = " ".join(f"{name}={count}" for name, count in sorted(paths.items()))
            lines.append(f"[perf] total={total_ms:.3f}ms materializations={len(self.logs)} {counts}")

        if json:
            payload: Dict[str, Any] = {"logs": [_json_ready(entry) for entry in self.logs]}
            if summary is not None:
                payload["summary"] = summary
            return payload
        return "\n".join(lines)

    # Internal helpers ----------------------------------------------------------
    def _copyto(
        self, dest: np.ndarray, node: Broadcasted, *, kind: str, start: float, widen: bool = False
    ) -> np.ndarray:
        """Fill ``dest`` from ``node`` and return the buffer actually written.

        With ``widen`` set, a result that does not fit ``dest.dtype`` moves the
        already written prefix into a wider buffer and filling resumes at the
        next position, so every element is still evaluated exactly once.
        """
        axes = node.axes()
        check_broadcast_shape(dest.shape, axes)
        store = _checked_store if widen else assign
        widened = 0
        first = 0

        if self.config.fast_paths:
            try:
                name = run_fast_path(
                    dest,
                    node,
                    kernels=self.config.fast_paths,
                    arithmetic=self.config.arithmetic_kernels,
                    store=store,
                )
            except _ElementTypeChange as change:
                dest = self._widen(dest, change)
                widened += 1
                first = cartesian_to_linear(change.pos, dest.shape) + 1
            else:
                if name is not None:
                    self._log(kind, name, node, dest.shape, dest, start, copies=0)
                    return dest

        flat = flatten(node) if self.config.fusion else node
        prepared, copies = self._preprocess(dest, flat)
        total = int(dest.size)
        while first < total:
            try:
                for pos in iter_cartesian(dest.shape, first):
                    store(dest, pos, prepared.element_at(pos))
                first = total
            except _ElementTypeChange as change:
                dest = self._widen(dest, change)
                widened += 1
                first = cartesian_to_linear(change.pos, dest.shape) + 1
        self._log(
            kind,
            "generic",
            node,
            dest.shape,
            dest,
            start,
            copies=copies,
            fused=flat is not node,
            widened=widened,
        )
        return dest

    @staticmethod
    def _widen(dest: np.ndarray, change: _ElementTypeChange) -> np.ndarray:
        dtype = widen_dtype(dest.dtype, change.value)
        logger.debug("Widened result from %s to %s at %s", dest.dtype, dtype, change.pos)
        wider = dest.astype(dtype)
        wider[change.pos] = change.value
        return wider

    def _preprocess(self, dest: np.ndarray, node: Broadcasted) -> Tuple[Broadcasted, int]:
        copies = 0
        args: List[Any] = []
        for arg in node.args:
            if kind_of(arg) is OperandKind.NODE:
                inner, inner_copies = self._preprocess(dest, arg)
                copies += inner_copies
                args.append(inner)
                continue
            if arg is dest:
                if not self.config.copy_on_alias:
                    raise OperandError("operand is the destination array and copy_on_alias is disabled")
                arg = np.array(dest, copy=True)
                copies += 1
                logger.debug("Copied aliased operand of shape %s", dest.shape)
            args.append(extrude(arg))
        return replace(node, args=tuple(args)), copies

    def _log(
        self,
        kind: str,
        path: str,
        node: Broadcasted,
        shape: Sequence[int],
        dest: Optional[np.ndarray],
        start: float,
        *,
        copies: int,
        fused: bool = False,
        widened: int = 0,
    ) -> None:
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.debug("%s %s via %s in %.3fms", kind, tuple(shape), path, duration_ms)
        if not self.config.explain:
            return
        leaves = node.leaves()
        node_shapes = [n.axes() for n in node.iter_nodes()]
        result_itemsize = int(dest.dtype.itemsize) if dest is not None else 0
        stats = compute_broadcast_stats(
            [shape_of(leaf) for leaf in leaves],
            [itemsize_of(leaf) for leaf in leaves],
            shape,
            result_itemsize,
            node_shapes=node_shapes,
        )
        self.logs.append(
            {
                "kind": kind,
                "function": function_name(node.f),
                "path": path,
                "shape": tuple(int(d) for d in shape),
                "leaves": len(leaves),
                "nodes": len(node_shapes),
                "fused": fused,
                "defensive_copies": copies,
                "widened": widened,
                "duration_ms": duration_ms,
                **stats,
            }
        )


def materialize(value: Any, *, config: Optional[ExecutionConfig] = None) -> Any:
    return BroadcastRunner(config).materialize(value)


def materialize_(dest: Any, value: Any, *, config: Optional[ExecutionConfig] = None) -> np.ndarray:
    return BroadcastRunner(config).materialize_(dest, value)


def copy(node: Broadcasted, *, config: Optional[ExecutionConfig] = None) -> Any:
    return BroadcastRunner(config).copy(node)


def copyto(dest: Any, node: Any, *, config: Optional[ExecutionConfig] = None) -> np.ndarray:
    return BroadcastRunner(config).copyto(dest, node)
