"""
Analysis pipeline: buffers -> pitch detectors -> annotations -> listeners.

Playback runs on its own thread. Buffers are handed to it through a
bounded queue; when the output device falls behind, the queue fills up and
process() blocks on it. The blocking write of the player thereby paces the
whole analysis loop to real time.
"""

import logging
import queue
import threading
from collections.abc import Iterable

import numpy as np

from .annotations import Annotation, AnnotationPublisher
from .blocking_player import BlockingAudioPlayer
from .config import AnalysisConfig
from .meta_detector import MetaPitchDetector
from .mpm_detector import McLeodPitchDetector
from .pitch_detector import DetectorType, PitchDetector
from .yin_detector import YinPitchDetector

logger = logging.getLogger(__name__)

_STOP = object()


def create_detector(detector_type: DetectorType, config: AnalysisConfig) -> PitchDetector:
    """Create a pitch detector of the specified type."""
    if detector_type == DetectorType.MPM:
        return McLeodPitchDetector.from_config(config)
    elif detector_type == DetectorType.YIN:
        return YinPitchDetector.from_config(config)
    else:
        return MetaPitchDetector.from_config(config)


class PlaybackThread(threading.Thread):
    """
    Plays buffers handed over through a bounded queue.

    submit() blocks while the queue is full. Errors raised by the player are
    kept and re-raised in the submitting thread.
    """

    def __init__(self, player: BlockingAudioPlayer, max_pending: int = 2):
        super().__init__(name="blocking-playback", daemon=True)
        self.player = player
        self.error: BaseException | None = None
        self._queue: queue.Queue = queue.Queue(maxsize=max_pending)

    def submit(self, float_buffer: np.ndarray, byte_buffer: bytes):
        if self.error is not None:
            raise self.error
        self._queue.put((float_buffer, byte_buffer))

    def finish(self):
        """Play what is still queued, close the player and re-raise any playback error."""
        self._queue.put(_STOP)
        self.join()
        if self.error is not None:
            raise self.error

    def run(self):
        first = True
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if self.error is not None:
                # Keep draining so the producer never blocks on a dead consumer
                continue
            float_buffer, byte_buffer = item
            try:
                if first:
                    self.player.write_full(float_buffer, byte_buffer)
                    first = False
                else:
                    self.player.write_overlapping(float_buffer, byte_buffer)
            except Exception as e:
                logger.error("Playback failed: %s", e)
                self.error = e
        try:
            self.player.close()
        except Exception as e:
            if self.error is None:
                self.error = e


class AnalysisPipeline:
    """
    Runs pitch detectors on consecutive overlapping buffers.

    Each valid estimate becomes an Annotation that is published to the
    publisher, which filters it and forwards it to its listeners.
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        publisher: AnnotationPublisher | None = None,
        detector_types: Iterable[DetectorType] = (DetectorType.META,),
        player: BlockingAudioPlayer | None = None,
        max_pending: int = 2,
    ):
        """
        Args:
            config: Analysis configuration
            publisher: Receives the annotations; a new one is created if None
            detector_types: Detectors to run on every buffer
            player: Optional blocking player that paces the analysis
            max_pending: Buffers that may wait for playback before process() blocks
        """
        self.config = config if config is not None else AnalysisConfig()
        self.publisher = publisher if publisher is not None else AnnotationPublisher()
        self.detectors = [create_detector(t, self.config) for t in detector_types]
        self.player = player
        self.max_pending = max_pending
        self.frame_index = 0
        self._playback: PlaybackThread | None = None

    @property
    def current_time(self) -> float:
        """Timestamp of the next buffer, in seconds."""
        return self.frame_index * self.config.frame_duration

    def _playback_thread(self) -> PlaybackThread:
        if self._playback is None:
            self._playback = PlaybackThread(self.player, self.max_pending)
            self._playback.start()
        return self._playback

    def process(self, buffer: np.ndarray, byte_buffer: bytes | None = None) -> list[Annotation]:
        """
        Analyse one buffer.

        Args:
            buffer: Float samples, exactly config.buffer_size long
            byte_buffer: The same samples encoded for the player

        Returns:
            The annotations created for this buffer (before filtering)

        Raises:
            ValueError: If the buffer has the wrong length
        """
        if len(buffer) != self.config.buffer_size:
            raise ValueError(
                f"Expected a buffer of {self.config.buffer_size} samples, got {len(buffer)}"
            )

        if self.player is not None and byte_buffer is not None:
            self._playback_thread().submit(buffer, byte_buffer)

        timestamp = self.current_time
        annotations = []
        for detector in self.detectors:
            result = detector.detect(buffer)
            if not result.valid:
                continue
            annotation = Annotation(
                timestamp=timestamp,
                frequency=result.frequency,
                source=detector.detector_type,
                probability=result.probability,
            )
            self.publisher.publish(annotation)
            annotations.append(annotation)

        self.frame_index += 1
        return annotations

    def run(self, frames: Iterable) -> int:
        """
        Analyse a sequence of buffers, then finish playback.

        Args:
            frames: Float buffers, or (float buffer, byte buffer) pairs

        Returns:
            Number of annotations created
        """
        logger.info("Analysis started with %d detector(s)", len(self.detectors))
        count = 0
        start_index = self.frame_index
        try:
            for frame in frames:
                if isinstance(frame, tuple):
                    count += len(self.process(*frame))
                else:
                    count += len(self.process(frame))
        finally:
            self.finish()
        logger.info(
            "Analysis finished: %d buffers, %d annotations", self.frame_index - start_index, count
        )
        return count

    def finish(self):
        """Wait for playback to drain and release the player."""
        if self._playback is not None:
            playback = self._playback
            self._playback = None
            playback.finish()
        elif self.player is not None:
            self.player.close()
