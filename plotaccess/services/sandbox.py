from __future__ import annotations

import ast
import builtins
import math
from typing import Any, Dict, Optional

import numpy as np

from ..core.errors import CaptureError, PlotAccessError
from . import draw
from .session import CallCapturePort, Session, capture


class SandboxError(PlotAccessError, RuntimeError):
    """Base sandbox execution error."""


class UnsafeCodeError(SandboxError):
    """Raised when code fails safety checks."""


ALLOWED_IMPORTS = {"math", "numpy"}
DISALLOWED_CALLS = {"__import__", "eval", "exec", "open", "compile", "globals", "locals", "input", "getattr", "setattr"}
DISALLOWED_ATTRIBUTES_PREFIX = "__"


def _validate_ast(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                module = (alias.name or "").split(".")[0]
                if module not in ALLOWED_IMPORTS:
                    raise UnsafeCodeError(f"Import of module '{alias.name}' is not allowed.")
        elif isinstance(node, ast.ImportFrom):
            module = (node.module or "").split(".")[0]
            if module not in ALLOWED_IMPORTS:
                raise UnsafeCodeError(f"Import of module '{node.module}' is not allowed.")
        elif isinstance(node, ast.Call):
            func = node.func
            if isinstance(func, ast.Name) and func.id in DISALLOWED_CALLS:
                raise UnsafeCodeError(f"Call to '{func.id}' is not permitted in drawing scripts.")
        elif isinstance(node, ast.Attribute):
            if node.attr.startswith(DISALLOWED_ATTRIBUTES_PREFIX):
                raise UnsafeCodeError("Access to dunder attributes is not permitted.")
        elif isinstance(node, (ast.ClassDef, ast.AsyncFunctionDef)):
            raise UnsafeCodeError("Defining classes or async functions is not supported in drawing scripts.")


def _safe_builtins() -> Dict[str, Any]:
    allowed = {
        "abs",
        "all",
        "any",
        "bool",
        "dict",
        "enumerate",
        "float",
        "int",
        "len",
        "list",
        "max",
        "min",
        "range",
        "reversed",
        "round",
        "sorted",
        "str",
        "sum",
        "tuple",
        "zip",
    }
    safe = {name: getattr(builtins, name) for name in allowed}
    # import statements for the allowed modules still resolve through __import__
    safe["__import__"] = _restricted_import
    return safe


def _restricted_import(name: str, globals: Any = None, locals: Any = None, fromlist: Any = (), level: int = 0) -> Any:
    if name.split(".")[0] not in ALLOWED_IMPORTS:
        raise UnsafeCodeError(f"Import of module '{name}' is not allowed.")
    return builtins.__import__(name, globals, locals, fromlist, level)


def script_globals() -> Dict[str, Any]:
    safe_globals: Dict[str, Any] = {"__builtins__": _safe_builtins(), "np": np, "math": math, "density": draw.density}
    for name in draw.IMPLEMENTATIONS:
        safe_globals[name] = getattr(draw, name)
    return safe_globals


def run_drawing_script(code: str, store: Optional[CallCapturePort] = None, max_calls: int = 500) -> Session:
    """Execute a drawing script and return the session holding its captured calls."""

    try:
        tree = ast.parse(code, mode="exec")
    except SyntaxError as exc:
        raise SandboxError(f"Script is not valid Python: {exc.msg} (line {exc.lineno})") from exc
    _validate_ast(tree)

    safe_globals = script_globals()
    try:
        with capture(store=store, max_calls=max_calls) as active:
            exec(compile(tree, "<drawing_script>", "exec"), safe_globals, safe_globals)
    except CaptureError as exc:
        raise SandboxError(f"Script stopped: {exc}") from exc
    except PlotAccessError:
        raise
    except Exception as exc:
        raise SandboxError(f"Script failed: {type(exc).__name__}: {exc}") from exc

    if not active.calls:
        active.clear()
        raise SandboxError("Script did not draw anything.")
    return active
