"""
Pitch histograms.

Annotations are accumulated into fixed-width bins measured in cents. Two
kinds exist:

- PitchHistogram: absolute cents above C-1, from 0 to 14400 cents
- PitchClassHistogram: pitch classes from 0 to 1200 cents, wrapping around
  the octave so that 1199 cents and 0 cents are neighbours

Bins are centred on multiples of the bin width (bin i covers
[start + (i - 0.5) * width, start + (i + 0.5) * width)), so with the default
6 cent width every equal tempered note lies in the middle of a bin.
"""

import logging
import threading
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import gaussian_filter1d

from .constants import CENTS_PER_OCTAVE, HISTOGRAM_BIN_WIDTH, PITCH_HISTOGRAM_STOP
from .pitch_units import hz_to_absolute_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class HistogramSnapshot:
    """Read-only copy of a histogram's bins."""

    start: float  # cents, centre of bin 0
    bin_width: float  # cents
    wraps: bool
    counts: np.ndarray

    @property
    def num_bins(self) -> int:
        return len(self.counts)

    @property
    def bin_centers(self) -> np.ndarray:
        return self.start + np.arange(self.num_bins) * self.bin_width

    @property
    def max_count(self) -> float:
        return float(np.max(self.counts)) if self.num_bins else 0.0

    @property
    def total(self) -> float:
        return float(np.sum(self.counts))

    def smoothed(self, std_dev: float) -> "HistogramSnapshot":
        """
        Gaussian-smoothed copy.

        Args:
            std_dev: Standard deviation of the kernel, in bins
        """
        if std_dev <= 0:
            return self
        mode = "wrap" if self.wraps else "constant"
        counts = gaussian_filter1d(self.counts.astype(np.float64), std_dev, mode=mode)
        counts.flags.writeable = False
        return HistogramSnapshot(self.start, self.bin_width, self.wraps, counts)


class Histogram:
    """
    Fixed-width histogram over cents.

    Also acts as an annotation listener, so it can be subscribed to an
    AnnotationPublisher directly.
    """

    def __init__(
        self,
        start: float,
        stop: float,
        bin_width: float = HISTOGRAM_BIN_WIDTH,
        wraps: bool = False,
        weighted: bool = False,
    ):
        """
        Args:
            start: Centre of the first bin, in cents
            stop: End of the covered range, in cents
            bin_width: Width of each bin, in cents
            wraps: Values outside [start, stop) wrap around instead of being dropped
            weighted: Weight annotations by their probability instead of counting them

        Raises:
            ValueError: If the range or bin width is invalid
        """
        if bin_width <= 0:
            raise ValueError(f"bin_width must be positive, got {bin_width}")
        if stop <= start:
            raise ValueError(f"stop must be greater than start, got [{start}, {stop})")
        num_bins = int(round((stop - start) / bin_width))
        if wraps and not np.isclose(num_bins * bin_width, stop - start):
            raise ValueError(
                f"bin_width {bin_width} must divide the wrapping range {stop - start} evenly"
            )

        self.start = float(start)
        self.stop = float(stop)
        self.bin_width = float(bin_width)
        self.wraps = wraps
        self.weighted = weighted
        self._counts = np.zeros(max(1, num_bins), dtype=np.float64)
        self._lock = threading.Lock()

    @property
    def num_bins(self) -> int:
        return len(self._counts)

    def bin_index(self, value: float) -> int | None:
        """Bin holding a value in cents, None if it is outside a non-wrapping range."""
        index = int(np.floor((value - self.start) / self.bin_width + 0.5))
        if self.wraps:
            return index % self.num_bins
        if 0 <= index < self.num_bins:
            return index
        return None

    def bin_center(self, index: int) -> float:
        """Representative value of a bin, in cents."""
        return self.start + index * self.bin_width

    def value_of(self, frequency: float) -> float:
        """Position of a frequency on this histogram's axis, in cents."""
        return hz_to_absolute_cents(frequency)

    def add(self, value: float, weight: float = 1.0):
        """
        Add weight to the bin holding a value in cents.

        Raises:
            ValueError: If weight is negative or not finite
        """
        if not np.isfinite(weight) or weight < 0:
            raise ValueError(f"weight must be a non-negative number, got {weight}")
        index = self.bin_index(value)
        if index is None:
            logger.debug("Value %.1f cents outside histogram range, dropped", value)
            return
        with self._lock:
            self._counts[index] += weight

    def add_frequency(self, frequency: float, weight: float = 1.0):
        """Add a frequency in Hz. The NO_PITCH sentinel and other non-positive values are ignored."""
        if not frequency > 0:
            return
        self.add(self.value_of(frequency), weight)

    def accumulate(self, annotation):
        """Add one annotation; its probability is the weight in weighted mode."""
        weight = annotation.probability if self.weighted else 1.0
        self.add_frequency(annotation.frequency, weight)

    def clear(self):
        with self._lock:
            self._counts[:] = 0.0

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            counts = self._counts.copy()
        counts.flags.writeable = False
        return HistogramSnapshot(self.start, self.bin_width, self.wraps, counts)

    def count(self, value: float) -> float:
        """Mass of the bin holding a value in cents."""
        index = self.bin_index(value)
        if index is None:
            return 0.0
        with self._lock:
            return float(self._counts[index])

    @property
    def total(self) -> float:
        with self._lock:
            return float(np.sum(self._counts))

    # Annotation listener interface
    def add_annotation(self, annotation):
        self.accumulate(annotation)

    def clear_annotations(self):
        self.clear()


class PitchHistogram(Histogram):
    """Histogram of absolute pitch in cents above C-1."""

    def __init__(
        self,
        bin_width: float = HISTOGRAM_BIN_WIDTH,
        start: float = 0.0,
        stop: float = PITCH_HISTOGRAM_STOP,
        weighted: bool = False,
    ):
        super().__init__(start, stop, bin_width, wraps=False, weighted=weighted)


class PitchClassHistogram(Histogram):
    """Octave-folded histogram of pitch classes, 0 cents = C."""

    def __init__(self, bin_width: float = HISTOGRAM_BIN_WIDTH, weighted: bool = False):
        super().__init__(0.0, CENTS_PER_OCTAVE, bin_width, wraps=True, weighted=weighted)

    def value_of(self, frequency: float) -> float:
        return hz_to_absolute_cents(frequency) % CENTS_PER_OCTAVE
