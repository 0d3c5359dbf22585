"""
Meta pitch detector: reports a pitch only when YIN and MPM agree on it.
"""

import numpy as np

from .config import AnalysisConfig
from .constants import META_TOLERANCE, SAMPLE_RATE
from .mpm_detector import McLeodPitchDetector
from .pitch_detector import DetectorType, PitchResult
from .yin_detector import YinPitchDetector


def combine_estimates(
    yin: PitchResult,
    mpm: PitchResult,
    tolerance: float = META_TOLERANCE,
) -> PitchResult:
    """
    Cross-validate two estimates of the same buffer.

    Accepted when |f_yin - f_mpm| <= f_mpm * tolerance; the result is then the
    mean of both frequencies with the lower of the two probabilities.
    """
    if not yin.valid or not mpm.valid:
        return PitchResult()
    if abs(yin.frequency - mpm.frequency) > mpm.frequency * tolerance:
        return PitchResult()
    return PitchResult(
        frequency=(yin.frequency + mpm.frequency) / 2.0,
        probability=min(yin.probability, mpm.probability),
    )


class MetaPitchDetector:
    """Runs YIN and MPM on the same buffer and keeps only corroborated pitches."""

    detector_type = DetectorType.META

    def __init__(
        self,
        sample_rate: float = SAMPLE_RATE,
        tolerance: float = META_TOLERANCE,
        yin: YinPitchDetector | None = None,
        mpm: McLeodPitchDetector | None = None,
    ):
        self.tolerance = tolerance
        self.yin = yin if yin is not None else YinPitchDetector(sample_rate=sample_rate)
        self.mpm = mpm if mpm is not None else McLeodPitchDetector(sample_rate=sample_rate)

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> "MetaPitchDetector":
        return cls(
            tolerance=config.meta_tolerance,
            yin=YinPitchDetector.from_config(config),
            mpm=McLeodPitchDetector.from_config(config),
        )

    def detect(self, buffer: np.ndarray) -> PitchResult:
        return combine_estimates(self.yin.detect(buffer), self.mpm.detect(buffer), self.tolerance)

    def estimate(self, buffer: np.ndarray) -> float:
        """Pitch in Hz, or NO_PITCH."""
        return self.detect(buffer).frequency
