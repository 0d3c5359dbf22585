"""
Peak detection on pitch histograms.

Peaks of a pitch class histogram are the candidate degrees of the scale
that was played.
"""

from dataclasses import dataclass

import numpy as np

from .constants import CENTS_PER_OCTAVE, PEAK_THRESHOLD, PEAK_WINDOW
from .histogram import Histogram, HistogramSnapshot
from .pitch_units import absolute_cents_to_hz


@dataclass(frozen=True)
class Peak:
    """Local maximum of a histogram."""

    bin_index: int
    position: float  # cents, centre of the bin
    amplitude: float  # mass of the bin

    @property
    def frequency(self) -> float:
        """Position in Hz (lowest octave for pitch class histograms)."""
        return absolute_cents_to_hz(self.position)


def detect_peaks(
    histogram: Histogram | HistogramSnapshot,
    window_size: int = PEAK_WINDOW,
    threshold: float = PEAK_THRESHOLD,
) -> list[Peak]:
    """
    Find the local maxima of a histogram.

    A bin is a peak when its mass exceeds the threshold and is larger than
    every other bin within window_size bins on either side. On a plateau
    only the first bin counts: neighbours with a lower bin index must be
    strictly smaller, those with a higher index may be equal. The window
    wraps around for wrapping histograms; each neighbouring bin is compared
    once even when the window covers the whole octave.

    Args:
        histogram: Histogram or snapshot to scan
        window_size: Number of bins compared on each side
        threshold: Minimum mass of a peak (exclusive)

    Returns:
        Peaks ordered by bin position
    """
    if window_size < 1:
        raise ValueError(f"window_size must be at least 1, got {window_size}")
    snapshot = histogram.snapshot() if isinstance(histogram, Histogram) else histogram
    counts = snapshot.counts
    n = len(counts)
    offsets = np.arange(1, window_size + 1)

    peaks = []
    for i in range(n):
        mass = counts[i]
        if mass <= threshold:
            continue

        neighbours = np.concatenate((i - offsets, i + offsets))
        if snapshot.wraps:
            # A small octave can reach the same bin from both sides
            neighbours = np.unique(neighbours % n)
            neighbours = neighbours[neighbours != i]
        else:
            neighbours = neighbours[(neighbours >= 0) & (neighbours < n)]

        earlier = neighbours[neighbours < i]
        later = neighbours[neighbours > i]
        if np.any(counts[earlier] >= mass) or np.any(counts[later] > mass):
            continue

        peaks.append(
            Peak(
                bin_index=i,
                position=float(snapshot.start + i * snapshot.bin_width),
                amplitude=float(mass),
            )
        )
    return peaks


def rank_peaks(peaks: list[Peak]) -> list[Peak]:
    """Peaks ordered by amplitude, highest first; equal amplitudes keep their order."""
    return sorted(peaks, key=lambda p: p.amplitude, reverse=True)


def peaks_to_scale(peaks: list[Peak]) -> list[float]:
    """Sorted pitch classes of the peaks, in cents."""
    return sorted(p.position % CENTS_PER_OCTAVE for p in peaks)
