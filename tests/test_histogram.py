"""
Tests for pitch histograms and peak detection.
"""

import threading

import numpy as np
import pytest

from scale_analyzer import NO_PITCH
from scale_analyzer.annotations import Annotation, AnnotationPublisher
from scale_analyzer.histogram import HistogramSnapshot, PitchClassHistogram, PitchHistogram
from scale_analyzer.peak_detector import Peak, detect_peaks, peaks_to_scale, rank_peaks
from scale_analyzer.pitch_detector import DetectorType
from scale_analyzer.pitch_units import absolute_cents_to_hz


def make_annotation(frequency, probability=1.0):
    return Annotation(timestamp=0.0, frequency=frequency, source=DetectorType.META, probability=probability)


def snapshot_of(counts, wraps=False, bin_width=6.0):
    counts = np.asarray(counts, dtype=np.float64)
    return HistogramSnapshot(0.0, bin_width, wraps, counts)


class TestPitchHistogram:
    def setup_method(self):
        self.histogram = PitchHistogram(bin_width=6.0)

    def test_bins(self):
        assert self.histogram.num_bins == 2400

    def test_a4_bin(self):
        """440 Hz is 6900 cents, the centre of bin 1150."""
        self.histogram.add_frequency(440.0)
        assert self.histogram.bin_index(6900.0) == 1150
        assert self.histogram.bin_center(1150) == 6900.0
        assert self.histogram.count(6900.0) == 1.0

    def test_small_deviation_same_bin(self):
        for cents in (6898.0, 6900.0, 6902.0):
            self.histogram.add_frequency(absolute_cents_to_hz(cents))
        assert self.histogram.count(6900.0) == 3.0
        assert self.histogram.total == 3.0

    def test_sentinel_ignored(self):
        self.histogram.add_frequency(NO_PITCH)
        self.histogram.add_frequency(0.0)
        assert self.histogram.total == 0.0

    def test_out_of_range_dropped(self):
        self.histogram.add(-100.0)
        self.histogram.add(14400.0)
        assert self.histogram.total == 0.0

    def test_weighted(self):
        histogram = PitchHistogram(weighted=True)
        histogram.accumulate(make_annotation(440.0, probability=0.5))
        histogram.accumulate(make_annotation(440.0, probability=0.25))
        assert histogram.count(6900.0) == pytest.approx(0.75)

    def test_unweighted_counts_annotations(self):
        self.histogram.accumulate(make_annotation(440.0, probability=0.5))
        assert self.histogram.count(6900.0) == 1.0

    def test_clear_and_accumulate_again(self):
        annotations = [make_annotation(f) for f in (110.0, 220.0, 220.0, 440.0, 523.25)]
        for a in annotations:
            self.histogram.accumulate(a)
        first = self.histogram.snapshot().counts.copy()

        self.histogram.clear()
        assert self.histogram.total == 0.0
        for a in annotations:
            self.histogram.accumulate(a)

        np.testing.assert_array_equal(self.histogram.snapshot().counts, first)

    def test_snapshot_is_read_only_copy(self):
        self.histogram.add_frequency(440.0)
        snapshot = self.histogram.snapshot()
        with pytest.raises(ValueError):
            snapshot.counts[0] = 5.0

        self.histogram.add_frequency(440.0)
        assert snapshot.counts[1150] == 1.0

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            self.histogram.add(6900.0, -3.0)
        with pytest.raises(ValueError):
            self.histogram.add(6900.0, float("nan"))
        assert self.histogram.count(6900.0) == 0.0

    def test_concurrent_accumulate(self):
        """Bins stay exact when several threads add at once."""
        start = threading.Barrier(4)

        def worker():
            start.wait()
            for _ in range(1000):
                self.histogram.accumulate(make_annotation(440.0))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.histogram.count(6900.0) == 4000.0
        assert self.histogram.total == 4000.0

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            PitchHistogram(bin_width=0.0)
        with pytest.raises(ValueError):
            PitchHistogram(start=100.0, stop=100.0)

    def test_subscribed_to_publisher(self):
        publisher = AnnotationPublisher()
        publisher.subscribe(self.histogram)
        publisher.publish(make_annotation(440.0, probability=0.2))
        publisher.publish(make_annotation(440.0, probability=0.9))
        assert self.histogram.count(6900.0) == 2.0

        publisher.set_min_probability(0.5)
        assert self.histogram.count(6900.0) == 1.0


class TestPitchClassHistogram:
    def setup_method(self):
        self.histogram = PitchClassHistogram(bin_width=6.0)

    def test_bins(self):
        assert self.histogram.num_bins == 200

    def test_octaves_fold(self):
        for frequency in (110.0, 220.0, 440.0, 880.0):
            self.histogram.add_frequency(frequency)
        assert self.histogram.count(900.0) == 4.0

    def test_wraps_around_octave(self):
        """1199 and 1 cents are both nearest to 0."""
        assert self.histogram.bin_index(1199.0) == 0
        assert self.histogram.bin_index(1.0) == 0
        assert self.histogram.bin_index(1200.0) == 0
        assert self.histogram.bin_index(-6.0) == 199

    def test_bin_width_must_divide_octave(self):
        with pytest.raises(ValueError):
            PitchClassHistogram(bin_width=7.0)

    def test_smoothing_preserves_mass(self):
        for frequency in (261.63, 261.63, 440.0, 493.88):
            self.histogram.add_frequency(frequency)
        self.histogram.add(1199.0, 3.0)
        snapshot = self.histogram.snapshot()
        smoothed = snapshot.smoothed(2.0)

        assert smoothed.total == pytest.approx(snapshot.total)
        assert smoothed.counts[0] < snapshot.counts[0]
        # Circular smoothing spreads mass from bin 0 into the last bins
        assert smoothed.counts[199] > 0.0
        with pytest.raises(ValueError):
            smoothed.counts[0] = 1.0

    def test_smoothing_disabled(self):
        snapshot = self.histogram.snapshot()
        assert snapshot.smoothed(0.0) is snapshot


class TestPeakDetection:
    def test_two_clusters(self):
        """Annotations spread a few cents around 440 Hz and 220 Hz give two peaks, 440 Hz the strongest."""
        # 4.5 cents off spills into the neighbouring bins
        spread = [-4.5, -2.0, -1.0, 0.0, 1.0, 2.0, 4.5]
        histogram = PitchHistogram()
        for _ in range(10):
            for offset in spread:
                histogram.accumulate(make_annotation(absolute_cents_to_hz(6900.0 + offset)))
        for _ in range(5):
            for offset in spread:
                histogram.accumulate(make_annotation(absolute_cents_to_hz(5700.0 + offset)))
        assert histogram.count(6894.0) == 10.0
        assert histogram.count(6906.0) == 10.0

        peaks = detect_peaks(histogram, window_size=5, threshold=10)

        assert [p.bin_index for p in peaks] == [950, 1150]
        ranked = rank_peaks(peaks)
        assert ranked[0].position == pytest.approx(6900.0)
        assert ranked[0].amplitude == 50.0
        assert ranked[0].frequency == pytest.approx(440.0)
        assert ranked[1].frequency == pytest.approx(220.0)

    def test_plateau_keeps_first_bin(self):
        counts = np.zeros(20)
        counts[8:10] = 20.0
        peaks = detect_peaks(snapshot_of(counts), window_size=3, threshold=5)
        assert [p.bin_index for p in peaks] == [8]

    def test_threshold_is_exclusive(self):
        counts = np.zeros(20)
        counts[10] = 15.0
        assert detect_peaks(snapshot_of(counts), threshold=15.0) == []
        assert len(detect_peaks(snapshot_of(counts), threshold=14.9)) == 1

    def test_neighbour_outside_window_ignored(self):
        counts = np.zeros(30)
        counts[5] = 20.0
        counts[12] = 40.0
        peaks = detect_peaks(snapshot_of(counts), window_size=5, threshold=1)
        assert [p.bin_index for p in peaks] == [5, 12]

        peaks = detect_peaks(snapshot_of(counts), window_size=7, threshold=1)
        assert [p.bin_index for p in peaks] == [12]

    def test_window_wraps_for_pitch_classes(self):
        counts = np.zeros(200)
        counts[0] = 30.0
        counts[199] = 20.0
        counts[1] = 10.0
        counts[100] = 25.0

        peaks = detect_peaks(snapshot_of(counts, wraps=True), window_size=5, threshold=1)
        assert [p.bin_index for p in peaks] == [0, 100]
        assert [p.position for p in peaks] == [0.0, 600.0]

        # Without wrapping bin 199 has no larger neighbour
        peaks = detect_peaks(snapshot_of(counts), window_size=5, threshold=1)
        assert [p.bin_index for p in peaks] == [0, 100, 199]

    def test_window_covering_whole_octave(self):
        """Equal maxima reachable from both sides keep the first one."""
        peaks = detect_peaks(snapshot_of([10, 0, 0, 10, 0, 0], wraps=True), window_size=5, threshold=1)
        assert [p.bin_index for p in peaks] == [0]

    def test_twelve_semitone_bins(self):
        """100 cent bins with a window of 6 still find a single strongest degree."""
        counts = np.zeros(12)
        counts[[0, 4, 7]] = [40.0, 25.0, 30.0]
        snapshot = HistogramSnapshot(0.0, 100.0, True, counts)
        peaks = detect_peaks(snapshot, window_size=6, threshold=1)
        assert [p.position for p in peaks] == [0.0]

    def test_empty_histogram(self):
        assert detect_peaks(PitchClassHistogram()) == []

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            detect_peaks(PitchClassHistogram(), window_size=0)


class TestPeakHelpers:
    def test_rank_is_stable(self):
        peaks = [Peak(1, 6.0, 5.0), Peak(2, 12.0, 9.0), Peak(3, 18.0, 5.0)]
        assert [p.bin_index for p in rank_peaks(peaks)] == [2, 1, 3]

    def test_peaks_to_scale(self):
        peaks = [Peak(1183, 7100.0, 5.0), Peak(1150, 6900.0, 10.0), Peak(0, 0.0, 3.0)]
        assert peaks_to_scale(peaks) == [0.0, 900.0, 1100.0]
