from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

import numpy as np

from .core.builtins import FUNCTIONS, lookup_function
from .core.evaluator import BroadcastRunner, ExecutionConfig
from .core.exceptions import DotFuseError
from .core.expression import broadcasted


def _load_operand(token: str) -> Any:
    path = Path(token)
    lowered = token.lower()
    if lowered.endswith(".npy"):
        try:
            return np.load(path)
        except FileNotFoundError as exc:
            raise SystemExit(f"Operand file not found: {path}") from exc
    if lowered.endswith(".json"):
        try:
            return _from_json(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError as exc:
            raise SystemExit(f"Operand file not found: {path}") from exc
    try:
        return _from_json(json.loads(token))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Operand is neither a .npy/.json path nor a JSON literal: {token}") from exc


def _from_json(value: Any) -> Any:
    if isinstance(value, list):
        return np.asarray(value)
    if isinstance(value, dict):
        raise SystemExit("JSON objects cannot be broadcast; pass arrays or numbers")
    return value


def _write_output(path: Path, result: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if str(path).lower().endswith(".npy"):
        np.save(path, np.asarray(result))
    elif str(path).lower().endswith(".npz"):
        np.savez(path, np.asarray(result))
    elif str(path).lower().endswith(".json"):
        path.write_text(json.dumps(np.asarray(result).tolist(), indent=2), encoding="utf-8")
    else:
        np.save(path, np.asarray(result))


def _run(
    op: str,
    operands: List[str],
    out: Optional[Path],
    *,
    explain: bool,
    fusion: bool,
    fast_paths: str,
    then: Sequence[str] = (),
) -> None:
    try:
        f = lookup_function(op)
        outer = [lookup_function(name) for name in then]
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    values = [_load_operand(token) for token in operands]
    config = ExecutionConfig(fusion=fusion, fast_paths=fast_paths, explain=explain)
    try:
        runner = BroadcastRunner(config)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    try:
        node = broadcasted(f, *values)
        for g in outer:
            node = broadcasted(g, node)
        result = runner.materialize(node)
    except DotFuseError as exc:
        raise SystemExit(f"error: {exc}") from exc
    if out is None:
        np.set_printoptions(suppress=True)
        print(np.asarray(result) if isinstance(result, np.ndarray) else result)
    else:
        _write_output(out, result)
    if explain:
        print(runner.explain(), file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="dotfuse command line utilities")
    subparsers = parser.add_subparsers(dest="cmd")

    run_parser = subparsers.add_parser("run", help="Broadcast a builtin function over operands")
    run_parser.add_argument(
        "op",
        help="Function name: " + " ".join(name.replace("%", "%%") for name in FUNCTIONS),
    )
    run_parser.add_argument(
        "operands",
        nargs="+",
        help="Operands: .npy or .json files, or JSON literals such as 2 or [[1,2],[3,4]]",
    )
    run_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Optional output path (.npy/.npz/.json). If omitted, prints the result",
    )
    run_parser.add_argument("--explain", action="store_true", help="Print the execution log to stderr")
    run_parser.add_argument(
        "--then",
        action="append",
        default=[],
        metavar="NAME",
        help="Apply a unary function to the result lazily; repeat to chain (e.g. --then abs --then sqrt)",
    )
    run_parser.add_argument(
        "--no-fusion",
        action="store_true",
        help="Evaluate a --then chain level by level instead of in one fused pass",
    )
    run_parser.add_argument(
        "--fast-paths",
        default="all",
        help="Comma separated kernel names, 'all' (default) or 'none'",
    )
    run_parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "run":
        if args.verbose:
            logging.basicConfig(level=logging.DEBUG)
        _run(
            args.op,
            args.operands,
            args.out,
            explain=args.explain,
            fusion=not args.no_fusion,
            fast_paths=args.fast_paths,
            then=args.then,
        )
        return

    parser.print_help()


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
