"""
Shared types for the monophonic pitch detectors.

Three detectors exist: the McLeod pitch method (MPM), YIN, and a meta
detector that only reports pitches both of them agree on. They share one
small interface; `DetectorType` enumerates them and doubles as the source
identifier carried on annotations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from .constants import NO_PITCH


class DetectorType(Enum):
    """Pitch detection algorithm."""

    MPM = "mpm"  # Normalized squared difference (McLeod)
    YIN = "yin"  # Cumulative mean normalized difference
    META = "meta"  # MPM and YIN cross-validated


@dataclass(frozen=True)
class PitchResult:
    """Pitch estimate for a single buffer."""

    frequency: float = NO_PITCH  # Hz, or NO_PITCH
    probability: float = 0.0  # Confidence in [0, 1]

    @property
    def valid(self) -> bool:
        return self.frequency != NO_PITCH


class PitchDetector(Protocol):
    """Maps one buffer of samples to one pitch estimate."""

    detector_type: DetectorType

    def detect(self, buffer: np.ndarray) -> PitchResult: ...

    def estimate(self, buffer: np.ndarray) -> float: ...


def parabolic_interpolation(values: np.ndarray, index: int) -> tuple[float, float]:
    """
    Fit a parabola through values[index - 1], values[index], values[index + 1].

    Args:
        values: Curve to refine
        index: Position of the local extremum, 0 < index < len(values) - 1

    Returns:
        Tuple of (refined position, refined value). If the three points are
        collinear the integer position and its value are returned unchanged.
    """
    fa = float(values[index - 1])
    fb = float(values[index])
    fc = float(values[index + 1])
    bottom = fc + fa - 2.0 * fb
    if bottom == 0.0:
        return float(index), fb
    delta = fa - fc
    return index + delta / (2.0 * bottom), fb - delta * delta / (8.0 * bottom)
