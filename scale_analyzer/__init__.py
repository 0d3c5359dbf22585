"""
scale_analyzer - Pitch tracking, pitch histograms and scale extraction from audio
"""

from .annotation_filters import ConfidenceFilter, PitchClassFilter, SteadyStateFilter
from .annotations import Annotation, AnnotationPublisher
from .blocking_player import AudioFormat, BlockingAudioPlayer, DeviceUnavailableError
from .config import AnalysisConfig
from .constants import BUFFER_SIZE, NO_PITCH, OVERLAP, SAMPLE_RATE
from .histogram import Histogram, HistogramSnapshot, PitchClassHistogram, PitchHistogram
from .meta_detector import MetaPitchDetector
from .mpm_detector import McLeodPitchDetector
from .peak_detector import Peak, detect_peaks, peaks_to_scale, rank_peaks
from .pipeline import AnalysisPipeline, create_detector
from .pitch_detector import DetectorType, PitchResult
from .yin_detector import YinPitchDetector

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "AnalysisPipeline",
    "Annotation",
    "AnnotationPublisher",
    "AudioFormat",
    "BlockingAudioPlayer",
    "ConfidenceFilter",
    "DetectorType",
    "DeviceUnavailableError",
    "Histogram",
    "HistogramSnapshot",
    "McLeodPitchDetector",
    "MetaPitchDetector",
    "Peak",
    "PitchClassFilter",
    "PitchClassHistogram",
    "PitchHistogram",
    "PitchResult",
    "SteadyStateFilter",
    "YinPitchDetector",
    "create_detector",
    "detect_peaks",
    "peaks_to_scale",
    "rank_peaks",
    "SAMPLE_RATE",
    "BUFFER_SIZE",
    "OVERLAP",
    "NO_PITCH",
]
