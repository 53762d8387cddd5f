"""Core modules of the dotfuse broadcasting engine."""

__all__ = [
    "api",
    "builtins",
    "evaluator",
    "exceptions",
    "expression",
    "extrusion",
    "fastpaths",
    "fusion",
    "operands",
    "shapes",
    "stats",
    "styles",
]
