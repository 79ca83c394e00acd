"""Capture package: the voice/photo capture state machine."""

from trackrise.capture.coordinator import (
    CaptureCoordinator,
    CaptureFailureReason,
    CaptureInProgressError,
    CaptureOutcome,
    CaptureState,
    CaptureStateError,
)

__all__ = [
    "CaptureCoordinator",
    "CaptureFailureReason",
    "CaptureInProgressError",
    "CaptureOutcome",
    "CaptureState",
    "CaptureStateError",
]
