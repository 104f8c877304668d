"""Accessibility data models for statistical charts."""

from .services import draw
from .services.backend import MatplotlibBackend
from .services.orchestrator import AccessibilityResult, build_from_calls, build_from_session, build_from_spec
from .services.session import CallStore, capture
from .services.stats import density

__version__ = "0.1.0"

__all__ = [
    "AccessibilityResult",
    "CallStore",
    "MatplotlibBackend",
    "build_from_calls",
    "build_from_session",
    "build_from_spec",
    "capture",
    "density",
    "draw",
]
