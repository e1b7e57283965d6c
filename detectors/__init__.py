from detectors.base import (
    Candidate,
    Detector,
    DetectorRunResult,
    DetectorState,
    Transition,
    TransitionDetector,
)
from detectors.registry import DETECTOR_CLASSES, build_detectors

__all__ = [
    'Candidate',
    'Detector',
    'DetectorRunResult',
    'DetectorState',
    'Transition',
    'TransitionDetector',
    'DETECTOR_CLASSES',
    'build_detectors',
]
