import math
import operator
from typing import Any, Callable, Dict

import numpy as np


class AndAnd:
    """Elementwise short-circuit ``and`` (the ``.&&`` operator)."""

    def __call__(self, a: Any, b: Any) -> Any:
        return a and b

    def __repr__(self) -> str:
        return "andand"


class OrOr:
    """Elementwise short-circuit ``or`` (the ``.||`` operator)."""

    def __call__(self, a: Any, b: Any) -> Any:
        return a or b

    def __repr__(self) -> str:
        return "oror"


andand = AndAnd()
oror = OrOr()


def identity(x: Any) -> Any:
    return x


# Operators the float64 arithmetic kernel may replace by the matching ufunc.
ARITHMETIC: Dict[Callable[..., Any], np.ufunc] = {
    operator.add: np.add,
    operator.sub: np.subtract,
    operator.mul: np.multiply,
    operator.truediv: np.true_divide,
}

FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
    "^": operator.pow,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "&&": andand,
    "||": oror,
    "max": max,
    "min": min,
    "abs": abs,
    "neg": operator.neg,
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "sin": math.sin,
    "cos": math.cos,
    "identity": identity,
}


def function_name(f: Callable[..., Any]) -> str:
    for name, candidate in FUNCTIONS.items():
        if candidate is f:
            return name
    return getattr(f, "__name__", None) or type(f).__name__


def lookup_function(name: str) -> Callable[..., Any]:
    try:
        return FUNCTIONS[name]
    except KeyError:
        known = ", ".join(sorted(FUNCTIONS))
        raise ValueError(f"Unknown function '{name}'. Known functions: {known}") from None
