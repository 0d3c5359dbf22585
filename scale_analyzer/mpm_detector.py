"""
McLeod pitch method (MPM).

Pitch is estimated from the normalized square difference function (NSDF) of
a buffer:

    nsdf[tau] = 2 * sum(x[i] * x[i + tau]) / sum(x[i]^2 + x[i + tau]^2)

over i in [0, W - tau). Between every pair of zero crossings the highest
maximum is a period candidate; candidates are refined with parabolic
interpolation and the first one that reaches a fraction of the highest
candidate is reported. Preferring the first (shortest period) candidate
over the global maximum avoids reporting an octave too low.

Based on:
    P. McLeod and G. Wyvill, "A Smarter Way to Find Pitch," Proceedings of
    the International Computer Music Conference, 2005.
"""

import numpy as np

from .config import AnalysisConfig
from .constants import MPM_CUTOFF, MPM_SMALL_CUTOFF, SAMPLE_RATE
from .pitch_detector import DetectorType, PitchResult, parabolic_interpolation


def normalized_square_difference(buffer: np.ndarray) -> np.ndarray:
    """
    Naive O(W^2) NSDF.

    Lags where both energy terms are zero produce 0 instead of NaN, so they
    never become period candidates.
    """
    x = np.asarray(buffer, dtype=np.float64)
    n = len(x)
    nsdf = np.zeros(n, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        for tau in range(n):
            head = x[: n - tau]
            tail = x[tau:]
            acf = np.dot(head, tail)
            m = np.dot(head, head) + np.dot(tail, tail)
            nsdf[tau] = 2.0 * acf / m
    nsdf[~np.isfinite(nsdf)] = 0.0
    return nsdf


def normalized_square_difference_fft(buffer: np.ndarray) -> np.ndarray:
    """
    NSDF computed with an FFT autocorrelation in O(W log W).

    Gives the same values as normalized_square_difference() within floating
    point tolerance.
    """
    x = np.asarray(buffer, dtype=np.float64)
    n = len(x)

    # Zero-pad to avoid circular wrap-around in the autocorrelation
    fft_size = 1
    while fft_size < 2 * n:
        fft_size *= 2
    spectrum = np.fft.rfft(x, n=fft_size)
    acf = np.fft.irfft(spectrum * np.conj(spectrum), n=fft_size)[:n]

    # m[tau] = sum(x[0:n-tau]^2) + sum(x[tau:n]^2)
    energy = np.concatenate(([0.0], np.cumsum(x * x)))
    taus = np.arange(n)
    m = energy[n - taus] + (energy[n] - energy[taus])

    with np.errstate(divide="ignore", invalid="ignore"):
        nsdf = 2.0 * acf / m
    nsdf[~np.isfinite(nsdf)] = 0.0
    return nsdf


def pick_peaks(nsdf: np.ndarray) -> list[int]:
    """
    Find one maximum between each positive-going and negative-going zero crossing.

    The initial descent from the lag 0 maximum is skipped. A maximum still
    open when the curve ends is included.

    Returns:
        Candidate lags in ascending order
    """
    n = len(nsdf)
    positions = []
    pos = 0
    cur_max_pos = 0

    # Skip the initial descent to the first negative zero crossing
    while pos < (n - 1) // 3 and nsdf[pos] > 0:
        pos += 1
    while pos < n - 1 and nsdf[pos] <= 0.0:
        pos += 1
    if pos == 0:
        pos = 1

    while pos < n - 1:
        if nsdf[pos] > nsdf[pos - 1] and nsdf[pos] >= nsdf[pos + 1]:
            if cur_max_pos == 0 or nsdf[pos] > nsdf[cur_max_pos]:
                cur_max_pos = pos
        pos += 1
        # Negative zero crossing closes the current segment
        if pos < n - 1 and nsdf[pos] <= 0:
            if cur_max_pos > 0:
                positions.append(cur_max_pos)
                cur_max_pos = 0
            while pos < n - 1 and nsdf[pos] <= 0.0:
                pos += 1

    if cur_max_pos > 0:
        positions.append(cur_max_pos)
    return positions


class McLeodPitchDetector:
    """
    Monophonic pitch detector using the McLeod pitch method.

    Stateless between buffers: every call to detect() only looks at the
    buffer it is given.
    """

    detector_type = DetectorType.MPM

    def __init__(
        self,
        sample_rate: float = SAMPLE_RATE,
        cutoff: float = MPM_CUTOFF,
        small_cutoff: float = MPM_SMALL_CUTOFF,
        use_fft: bool = True,
    ):
        """
        Initialize detector.

        Args:
            sample_rate: Audio sample rate in Hz
            cutoff: Fraction of the highest candidate amplitude a candidate must reach
            small_cutoff: Candidates with a lower amplitude are discarded outright
            use_fft: Compute the NSDF with an FFT instead of the naive sum
        """
        self.sample_rate = sample_rate
        self.cutoff = cutoff
        self.small_cutoff = small_cutoff
        self.use_fft = use_fft

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> "McLeodPitchDetector":
        return cls(
            sample_rate=config.sample_rate,
            cutoff=config.mpm_cutoff,
            small_cutoff=config.mpm_small_cutoff,
            use_fft=config.mpm_use_fft,
        )

    def nsdf(self, buffer: np.ndarray) -> np.ndarray:
        if self.use_fft:
            return normalized_square_difference_fft(buffer)
        return normalized_square_difference(buffer)

    def detect(self, buffer: np.ndarray) -> PitchResult:
        """
        Estimate the pitch of one buffer.

        Args:
            buffer: Audio samples

        Returns:
            PitchResult; NO_PITCH when no candidate clears the small cutoff
        """
        nsdf = self.nsdf(buffer)

        periods = []
        amplitudes = []
        for tau in pick_peaks(nsdf):
            period, amplitude = parabolic_interpolation(nsdf, tau)
            if amplitude < self.small_cutoff:
                continue
            periods.append(period)
            amplitudes.append(amplitude)

        if not periods:
            return PitchResult()

        # First candidate that reaches the cutoff, not the highest one
        threshold = self.cutoff * max(amplitudes)
        index = next(i for i, a in enumerate(amplitudes) if a >= threshold)

        return PitchResult(
            frequency=float(self.sample_rate / periods[index]),
            probability=min(1.0, max(0.0, amplitudes[index])),
        )

    def estimate(self, buffer: np.ndarray) -> float:
        """Pitch in Hz, or NO_PITCH."""
        return self.detect(buffer).frequency
