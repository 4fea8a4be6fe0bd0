from __future__ import annotations


class LivenessError(Exception):
    """Base class for every error raised by livenesskit."""


class InsufficientLandmarks(LivenessError, ValueError):
    """Landmark set is too short, malformed or degenerate for the requested geometry."""


class InvalidConfig(LivenessError, ValueError):
    """Configuration rejected before any frame is processed."""


class CameraUnavailable(LivenessError, RuntimeError):
    """The frame source could not be opened."""
