"""
Analysis configuration.

All tunable values of the analysis core are gathered in one immutable
configuration object. It is handed to the detectors, the player and the
pipeline through their constructors; nothing in this package reads
process-wide settings.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from .constants import (
    BUFFER_SIZE,
    CENTS_PER_OCTAVE,
    HISTOGRAM_BIN_WIDTH,
    META_TOLERANCE,
    MIN_PROBABILITY,
    MPM_CUTOFF,
    MPM_SMALL_CUTOFF,
    OVERLAP,
    PEAK_THRESHOLD,
    PEAK_WINDOW,
    QUANTIZE_CENTS,
    SAMPLE_RATE,
    STEADY_STATE_CENTS,
    STEADY_STATE_DURATION,
    YIN_THRESHOLD,
)


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for pitch estimation, filtering and scale extraction."""

    # Framing
    sample_rate: float = SAMPLE_RATE
    buffer_size: int = BUFFER_SIZE  # Samples per analysis window
    overlap: int = OVERLAP  # Samples shared by consecutive windows

    # Detectors
    mpm_cutoff: float = MPM_CUTOFF
    mpm_small_cutoff: float = MPM_SMALL_CUTOFF
    mpm_use_fft: bool = True  # O(W log W) autocorrelation instead of the naive sum
    yin_threshold: float = YIN_THRESHOLD
    meta_tolerance: float = META_TOLERANCE

    # Annotation filters
    min_probability: float = MIN_PROBABILITY
    steady_state_cents: float = STEADY_STATE_CENTS
    steady_state_duration: float = STEADY_STATE_DURATION  # seconds
    quantize_cents: float = QUANTIZE_CENTS

    # Histograms and peaks
    histogram_bin_width: float = HISTOGRAM_BIN_WIDTH  # cents per bin
    weighted_histogram: bool = False  # Weight each annotation by its probability
    peak_window: int = PEAK_WINDOW  # bins on each side
    peak_threshold: float = PEAK_THRESHOLD

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.buffer_size < 4:
            raise ValueError(f"buffer_size must be at least 4, got {self.buffer_size}")
        if not 0 <= self.overlap < self.buffer_size:
            raise ValueError(
                f"overlap must be in [0, buffer_size), got {self.overlap} "
                f"for buffer_size {self.buffer_size}"
            )
        for name in (
            "mpm_cutoff",
            "mpm_small_cutoff",
            "yin_threshold",
            "meta_tolerance",
            "min_probability",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        for name in ("steady_state_cents", "steady_state_duration", "quantize_cents", "peak_threshold"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
        if not 0 < self.histogram_bin_width <= CENTS_PER_OCTAVE:
            raise ValueError(
                f"histogram_bin_width must be in (0, {CENTS_PER_OCTAVE}], "
                f"got {self.histogram_bin_width}"
            )
        if self.peak_window < 1:
            raise ValueError(f"peak_window must be at least 1, got {self.peak_window}")

    @property
    def step_size(self) -> int:
        """Number of new samples per buffer."""
        return self.buffer_size - self.overlap

    @property
    def frame_duration(self) -> float:
        """Time between the starts of consecutive buffers, in seconds."""
        return self.step_size / self.sample_rate

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "AnalysisConfig":
        """
        Build a configuration from a plain mapping.

        Args:
            values: Field names mapped to values; missing fields keep their defaults

        Raises:
            ValueError: If a key is not a configuration field or a value is invalid
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**values)
