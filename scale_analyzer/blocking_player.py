"""
Blocking audio output used to pace analysis to real time.

The player receives the same overlapping buffers as the detectors. Writing
to the output stream blocks until the device has accepted the data, so
whatever drives the player cannot run ahead of playback. write_full() and
write_overlapping() are the only calls in the analysis path that are
expected to block.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class DeviceUnavailableError(Exception):
    """Raised when no output device could be opened for the requested format."""


@dataclass(frozen=True)
class AudioFormat:
    """PCM format of the byte buffers handed to the player."""

    sample_rate: float
    sample_size_bits: int = 16
    channels: int = 1
    floating: bool = False  # 32-bit float instead of signed integers

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels < 1:
            raise ValueError(f"channels must be at least 1, got {self.channels}")
        if self.sample_size_bits % 8 != 0 or self.sample_size_bits <= 0:
            raise ValueError(
                f"Only whole-byte sample sizes are supported, got {self.sample_size_bits} bits"
            )
        if self.floating and self.sample_size_bits != 32:
            raise ValueError("Floating point samples must be 32 bits")

    @property
    def frame_size(self) -> int:
        """Bytes per multi-channel sample group."""
        return self.channels * self.sample_size_bits // 8

    @property
    def dtype(self) -> str:
        """Sample type name understood by sounddevice."""
        if self.floating:
            return "float32"
        return f"int{self.sample_size_bits}"


StreamFactory = Callable[[AudioFormat, Any], Any]


def open_sounddevice_stream(audio_format: AudioFormat, device: Any = None) -> Any:
    """
    Open and start a raw sounddevice output stream.

    Args:
        audio_format: PCM format of the data that will be written
        device: sounddevice device index or name, None for the default output

    Raises:
        DeviceUnavailableError: If PortAudio cannot open the device
    """
    import sounddevice as sd

    try:
        stream = sd.RawOutputStream(
            device=device,
            samplerate=audio_format.sample_rate,
            channels=audio_format.channels,
            dtype=audio_format.dtype,
        )
        stream.start()
    except (sd.PortAudioError, ValueError) as e:
        raise DeviceUnavailableError(f"Could not open output device {device!r}: {e}") from e
    return stream


class BlockingAudioPlayer:
    """
    Plays overlapping buffers without repeating the overlapping part.

    The first buffer is played completely with write_full(); for every
    following buffer write_overlapping() only plays the samples that were
    not part of the previous buffer.
    """

    def __init__(
        self,
        audio_format: AudioFormat,
        buffer_size: int,
        overlap: int,
        device: Any = None,
        stream_factory: StreamFactory = open_sounddevice_stream,
    ):
        """
        Open the output device.

        Args:
            audio_format: PCM format of the byte buffers
            buffer_size: Buffer length in samples (frames)
            overlap: Samples shared by consecutive buffers
            device: Preferred output device, None for the default device
            stream_factory: Opens and starts an output stream for (format, device)

        Raises:
            ValueError: If overlap is not in [0, buffer_size)
            DeviceUnavailableError: If neither the preferred nor the default
                device can be opened
        """
        if not 0 <= overlap < buffer_size:
            raise ValueError(f"overlap must be in [0, {buffer_size}), got {overlap}")

        self.audio_format = audio_format
        self.buffer_size = buffer_size
        self.overlap = overlap

        # Overlap in samples * bytes per frame = overlap in bytes
        self.byte_overlap = overlap * audio_format.frame_size
        self.byte_step_size = buffer_size * audio_format.frame_size - self.byte_overlap

        self.bytes_written = 0
        self._stream = self._open(stream_factory, device)

    @classmethod
    def open(
        cls,
        audio_format: AudioFormat,
        buffer_size: int,
        overlap: int,
        device: Any = None,
        stream_factory: StreamFactory = open_sounddevice_stream,
    ) -> "BlockingAudioPlayer":
        return cls(audio_format, buffer_size, overlap, device=device, stream_factory=stream_factory)

    def _open(self, stream_factory: StreamFactory, device: Any) -> Any:
        if device is not None:
            try:
                stream = stream_factory(self.audio_format, device)
                logger.info("Opened output device %r", device)
                return stream
            except DeviceUnavailableError as e:
                logger.warning(
                    "Could not open output device %r, trying the default device: %s", device, e
                )
        stream = stream_factory(self.audio_format, None)
        logger.info("Opened default output device")
        return stream

    @property
    def closed(self) -> bool:
        return self._stream is None

    def _write(self, data: memoryview):
        if self._stream is None:
            raise RuntimeError("Player is closed")
        underflowed = self._stream.write(data)
        if underflowed:
            logger.debug("Output underflow")
        self.bytes_written += len(data)

    def write_full(self, float_buffer, byte_buffer: bytes):
        """Play a complete buffer. Blocks until the device accepted it."""
        self._write(memoryview(byte_buffer))

    def write_overlapping(self, float_buffer, byte_buffer: bytes):
        """Play only the part of the buffer that was not played yet. Blocks."""
        data = memoryview(byte_buffer)
        self._write(data[self.byte_overlap : self.byte_overlap + self.byte_step_size])

    def close(self):
        """Wait for pending audio to finish playing, then release the device."""
        if self._stream is None:
            return
        stream = self._stream
        self._stream = None
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Closed output device after %d bytes", self.bytes_written)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
