"""
Filters applied to pitch annotations before they reach listeners.

Every filter takes one annotation and returns the annotations it lets
through: none, the annotation itself, or (for the steady state filter) a
batch of annotations that were held back until their run proved stable.
Filters run in a fixed order: confidence, steady state, pitch class.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .pitch_detector import DetectorType
from .pitch_units import cents_between, pitch_class_distance

if TYPE_CHECKING:
    from .annotations import Annotation

logger = logging.getLogger(__name__)


class AnnotationFilter:
    """Base class for annotation filters."""

    # Position in the filter chain, lower runs first
    order = 0

    def apply(self, annotation: "Annotation") -> list["Annotation"]:
        return [annotation]

    def reset(self):
        """Forget any rolling state."""


class ConfidenceFilter(AnnotationFilter):
    """Drops annotations with a probability below a threshold."""

    order = 0

    def __init__(self, min_probability: float = 0.0):
        self.min_probability = 0.0
        self.set_min_probability(min_probability)

    def set_min_probability(self, min_probability: float):
        if not 0.0 <= min_probability <= 1.0:
            raise ValueError(f"min_probability must be in [0, 1], got {min_probability}")
        self.min_probability = min_probability
        logger.debug("Confidence filter threshold set to %.2f", min_probability)

    def apply(self, annotation: "Annotation") -> list["Annotation"]:
        if annotation.probability < self.min_probability:
            return []
        return [annotation]


@dataclass
class SteadyStateRun:
    """Rolling state of the steady state filter for one annotation source."""

    reference: float | None = None  # Hz, first pitch of the run
    start_time: float = 0.0
    pending: list["Annotation"] = field(default_factory=list)
    released: bool = False  # Run has lasted long enough, pass annotations directly

    def start(self, annotation: "Annotation"):
        self.reference = annotation.frequency
        self.start_time = annotation.timestamp
        self.pending = [annotation]
        self.released = False

    def reset(self):
        self.reference = None
        self.start_time = 0.0
        self.pending = []
        self.released = False


class SteadyStateFilter(AnnotationFilter):
    """
    Keeps only annotations that belong to a steady pitch.

    A run starts at an annotation and continues while every following pitch
    stays within max_cents of that first pitch. Annotations of a run are held
    back until the run has lasted min_duration seconds; then they are all
    released and the rest of the run passes straight through. A pitch outside
    the tolerance starts a new run, discarding a run that was too short.
    """

    order = 1

    def __init__(self, max_cents: float = 15.0, min_duration: float = 0.1):
        """
        Args:
            max_cents: Maximum deviation from the run's first pitch, in cents
            min_duration: Minimum run length in seconds
        """
        self.max_cents = 0.0
        self.min_duration = 0.0
        self._runs: dict[DetectorType, SteadyStateRun] = {}
        self.configure(max_cents, min_duration)

    def configure(self, max_cents: float, min_duration: float):
        if max_cents < 0:
            raise ValueError(f"max_cents must not be negative, got {max_cents}")
        if min_duration < 0:
            raise ValueError(f"min_duration must not be negative, got {min_duration}")
        self.max_cents = max_cents
        self.min_duration = min_duration
        self.reset()
        logger.debug("Steady state filter set to %.1f cents, %.3f s", max_cents, min_duration)

    def reset(self):
        for run in self._runs.values():
            run.reset()
        self._runs.clear()

    def run_for(self, source: DetectorType) -> SteadyStateRun:
        """Rolling state for one source (created on first use)."""
        return self._runs.setdefault(source, SteadyStateRun())

    def apply(self, annotation: "Annotation") -> list["Annotation"]:
        run = self.run_for(annotation.source)

        if run.reference is None or abs(cents_between(run.reference, annotation.frequency)) > self.max_cents:
            run.start(annotation)
        elif run.released:
            return [annotation]
        else:
            run.pending.append(annotation)

        if annotation.timestamp - run.start_time >= self.min_duration:
            released = run.pending
            run.pending = []
            run.released = True
            return released
        return []


class PitchClassFilter(AnnotationFilter):
    """
    Keeps annotations close to a scale.

    The scale is a list of pitch classes in cents (0 = C). Annotations whose
    pitch class lies within max_cents of any scale degree pass. An empty
    scale lets everything through.
    """

    order = 2

    def __init__(self, scale=(), max_cents: float = 15.0):
        self.scale: tuple[float, ...] = ()
        self.max_cents = 0.0
        self.configure(scale, max_cents)

    def configure(self, scale, max_cents: float):
        if max_cents < 0:
            raise ValueError(f"max_cents must not be negative, got {max_cents}")
        self.scale = tuple(sorted(float(s) % 1200.0 for s in scale))
        self.max_cents = max_cents
        logger.debug("Pitch class filter set to %d degrees, %.1f cents", len(self.scale), max_cents)

    def distance_to_scale(self, pitch_class: float) -> float:
        return min(pitch_class_distance(pitch_class, degree) for degree in self.scale)

    def apply(self, annotation: "Annotation") -> list["Annotation"]:
        if not self.scale:
            return [annotation]
        if self.distance_to_scale(annotation.pitch_class) <= self.max_cents:
            return [annotation]
        return []
