from __future__ import annotations

from typing import Dict, Iterable, Sequence


def _prod(values: Iterable[int]) -> int:
    result = 1
    for value in values:
        result *= int(max(0, value))
    return int(result)


def compute_broadcast_stats(
    operand_shapes: Sequence[Sequence[int]],
    operand_itemsizes: Sequence[int],
    result_shape: Sequence[int],
    result_itemsize: int,
    *,
    node_shapes: Sequence[Sequence[int]] = (),
) -> Dict[str, float]:
    """Cost summary of one materialization.

    ``node_shapes`` lists the axes of every expression node in the tree, the
    root included. Each node costs one function call per output element, and
    every non-root node is an intermediate array that fusion never allocates.
    """
    if len(operand_shapes) != len(operand_itemsizes):
        raise ValueError("Operand shape list does not match itemsize list")

    elements = _prod(result_shape)
    calls = elements * max(len(node_shapes), 1)

    bytes_in = 0
    for shape, itemsize in zip(operand_shapes, operand_itemsizes):
        bytes_in += _prod(shape) * int(itemsize)
    bytes_out = elements * int(result_itemsize)

    avoided = 0
    for shape in list(node_shapes)[1:]:
        avoided += _prod(shape) * int(result_itemsize)

    return {
        "elements": elements,
        "function_calls": calls,
        "bytes_in": int(bytes_in),
        "bytes_out": int(bytes_out),
        "bytes_total": int(bytes_in + bytes_out),
        "intermediate_bytes_avoided": int(avoided),
    }
