from __future__ import annotations


class PlotAccessError(Exception):
    """Base class for accessibility-model pipeline errors."""


class SpecError(PlotAccessError, ValueError):
    """A declarative plot specification failed validation."""


class CaptureError(PlotAccessError):
    """A drawing call was made outside any capture session or canvas."""


class SessionError(PlotAccessError):
    """The call store or session lifecycle is in an inconsistent state."""


class BackendError(PlotAccessError):
    """The rendering backend failed to produce a scene."""


class BackendUnavailableError(BackendError):
    """The rendering backend cannot be used at all."""


class ExtractionError(PlotAccessError):
    """Layer data could not be derived from its source."""


class PipelineError(PlotAccessError):
    """The orchestrator was driven through an invalid state transition."""
