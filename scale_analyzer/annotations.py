"""
Pitch annotations and the publisher that distributes them.

Detectors produce one annotation per accepted pitch estimate. The
publisher runs each annotation through its filter chain and delivers
whatever passes to the subscribed listeners (for example a histogram).

The publisher is the single funnel for all sources: publishing, filter
changes and replays are serialized by one lock, so the stateful filters
always see annotations in the order they were published.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Protocol

from .annotation_filters import (
    AnnotationFilter,
    ConfidenceFilter,
    PitchClassFilter,
    SteadyStateFilter,
)
from .pitch_detector import DetectorType
from .pitch_units import hz_to_absolute_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Annotation:
    """A pitch detected at a point in time."""

    timestamp: float  # Seconds since the start of the session
    frequency: float  # Hz, always positive
    source: DetectorType
    probability: float = 1.0  # Confidence in [0, 1]

    def __post_init__(self):
        if not math.isfinite(self.frequency) or self.frequency <= 0:
            raise ValueError(f"Annotation frequency must be positive, got {self.frequency}")
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"Annotation probability must be in [0, 1], got {self.probability}")

    @property
    def absolute_cents(self) -> float:
        """Pitch in cents above C-1."""
        return hz_to_absolute_cents(self.frequency)

    @property
    def pitch_class(self) -> float:
        """Octave-independent pitch in [0, 1200) cents."""
        return self.absolute_cents % 1200.0


class AnnotationListener(Protocol):
    def add_annotation(self, annotation: Annotation) -> None: ...

    def clear_annotations(self) -> None: ...


class AnnotationPublisher:
    """
    Filters annotations and forwards them to listeners.

    Every published annotation is kept for the session. When a filter is
    reconfigured, refilter() asks the listeners to clear and replays the
    stored annotations through the new filter chain, so listeners always
    reflect the current filter settings.
    """

    def __init__(self, filters: tuple[AnnotationFilter, ...] = (), keep_history: bool = True):
        self._lock = threading.RLock()
        self._listeners: list[AnnotationListener] = []
        self._filters: list[AnnotationFilter] = []
        self._history: list[Annotation] = []
        self.keep_history = keep_history
        for annotation_filter in filters:
            self.add_filter(annotation_filter)

    @classmethod
    def from_config(cls, config, scale=()) -> "AnnotationPublisher":
        """Publisher with the confidence, steady state and pitch class filters set up from config."""
        return cls(
            filters=(
                ConfidenceFilter(config.min_probability),
                SteadyStateFilter(config.steady_state_cents, config.steady_state_duration),
                PitchClassFilter(scale, config.quantize_cents),
            )
        )

    @property
    def filters(self) -> tuple[AnnotationFilter, ...]:
        return tuple(self._filters)

    @property
    def history(self) -> tuple[Annotation, ...]:
        with self._lock:
            return tuple(self._history)

    def subscribe(self, listener: AnnotationListener):
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: AnnotationListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def add_filter(self, annotation_filter: AnnotationFilter):
        """Add a filter; the chain stays sorted by filter order."""
        with self._lock:
            annotation_filter.reset()
            self._filters.append(annotation_filter)
            self._filters.sort(key=lambda f: f.order)

    def remove_filter(self, annotation_filter: AnnotationFilter):
        with self._lock:
            self._filters.remove(annotation_filter)

    def publish(self, annotation: Annotation):
        """Filter one annotation and deliver what passes to every listener."""
        with self._lock:
            if self.keep_history:
                self._history.append(annotation)
            self._deliver(annotation)

    def publish_all(self, annotations):
        with self._lock:
            for annotation in annotations:
                self.publish(annotation)

    def _deliver(self, annotation: Annotation):
        batch = [annotation]
        for annotation_filter in self._filters:
            batch = [passed for a in batch for passed in annotation_filter.apply(a)]
            if not batch:
                return
        for listener in self._listeners:
            for a in batch:
                listener.add_annotation(a)

    def reset(self):
        """Clear the rolling state of every filter. Subscriptions are kept."""
        with self._lock:
            for annotation_filter in self._filters:
                annotation_filter.reset()

    def refilter(self):
        """
        Clear the listeners and replay the history through the current filters.

        Without a history there is nothing to replay: the filters are reset
        and listeners keep what they already received.
        """
        with self._lock:
            if not self.keep_history:
                self.reset()
                return
            for listener in self._listeners:
                listener.clear_annotations()
            self.reset()
            for annotation in self._history:
                self._deliver(annotation)
            logger.debug("Replayed %d annotations", len(self._history))

    def clear(self):
        """Forget all annotations of the session."""
        with self._lock:
            self._history.clear()
            self.reset()
            for listener in self._listeners:
                listener.clear_annotations()

    def _filter_of_type(self, filter_type: type) -> AnnotationFilter:
        for annotation_filter in self._filters:
            if isinstance(annotation_filter, filter_type):
                return annotation_filter
        annotation_filter = filter_type()
        self.add_filter(annotation_filter)
        return annotation_filter

    def set_min_probability(self, min_probability: float):
        with self._lock:
            self._filter_of_type(ConfidenceFilter).set_min_probability(min_probability)
            self.refilter()

    def apply_steady_state_filter(self, max_cents: float, min_duration: float):
        with self._lock:
            self._filter_of_type(SteadyStateFilter).configure(max_cents, min_duration)
            self.refilter()

    def apply_pitch_class_filter(self, scale, max_cents: float):
        with self._lock:
            self._filter_of_type(PitchClassFilter).configure(scale, max_cents)
            self.refilter()
