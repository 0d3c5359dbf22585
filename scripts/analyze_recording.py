"""
Extract a scale from a recording.

Runs the meta pitch detector over a mono recording saved with numpy,
builds a pitch class histogram of the steady pitches and prints the
detected scale degrees. The smoothed histogram is plotted with the peaks
marked.

Usage:
    python scripts/analyze_recording.py recording.npy [sample_rate]
"""

import sys
from pathlib import Path

import matplotlib
import numpy as np

matplotlib.use('Agg')
import matplotlib.pyplot as plt

from scale_analyzer import (
    AnalysisConfig,
    AnalysisPipeline,
    AnnotationPublisher,
    DetectorType,
    PitchClassHistogram,
    detect_peaks,
    peaks_to_scale,
    rank_peaks,
)
from scale_analyzer.frames import iter_frames


def analyze(audio: np.ndarray, config: AnalysisConfig) -> PitchClassHistogram:
    """Run the pipeline and return the pitch class histogram of steady pitches."""
    publisher = AnnotationPublisher.from_config(config)

    histogram = PitchClassHistogram(config.histogram_bin_width, weighted=config.weighted_histogram)
    publisher.subscribe(histogram)

    pipeline = AnalysisPipeline(config, publisher, detector_types=(DetectorType.META,))
    count = pipeline.run(iter_frames(audio, config.buffer_size, config.overlap))
    print(f"{count} pitches detected in {len(audio) / config.sample_rate:.1f}s")
    return histogram


def plot_histogram(histogram: PitchClassHistogram, peaks, filename: str):
    """Plot the smoothed histogram with the detected peaks."""
    snapshot = histogram.snapshot().smoothed(1.0)

    fig, ax = plt.subplots(figsize=(12, 4))
    ax.plot(snapshot.bin_centers, snapshot.counts, 'b-', linewidth=1)
    for peak in peaks:
        ax.axvline(peak.position, color='red', linestyle='--', alpha=0.7)
    ax.set_xlim(0, 1200)
    ax.set_xlabel('Pitch class (cents)')
    ax.set_ylabel('Count')
    ax.set_title('Pitch class histogram')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(filename, dpi=100)
    plt.close()
    print(f'Saved: {filename}')


if __name__ == '__main__':
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    path = Path(sys.argv[1])
    sample_rate = float(sys.argv[2]) if len(sys.argv) > 2 else 44100.0
    config = AnalysisConfig(sample_rate=sample_rate)

    audio = np.load(path).astype(np.float64).flatten()
    histogram = analyze(audio, config)

    peaks = detect_peaks(histogram, config.peak_window, config.peak_threshold)
    for peak in rank_peaks(peaks):
        print(f"  {peak.position:7.1f} cents  count {peak.amplitude:.0f}")
    print(f"Scale: {', '.join(f'{c:.0f}' for c in peaks_to_scale(peaks))}")

    plot_histogram(histogram, peaks, str(path.with_suffix('.png')))
