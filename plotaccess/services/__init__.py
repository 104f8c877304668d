from .backend import MatplotlibBackend
from .orchestrator import AccessibilityResult, Orchestrator, PipelineState, build_from_calls, build_from_session, build_from_spec
from .sandbox import run_drawing_script
from .session import CallStore, Session, capture
from .spec_validator import validate_spec

__all__ = [
    "MatplotlibBackend",
    "AccessibilityResult",
    "Orchestrator",
    "PipelineState",
    "build_from_calls",
    "build_from_session",
    "build_from_spec",
    "run_drawing_script",
    "CallStore",
    "Session",
    "capture",
    "validate_spec",
]
