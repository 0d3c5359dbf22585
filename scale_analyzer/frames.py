"""
Helpers to cut recordings into overlapping analysis buffers.
"""

from collections.abc import Iterator

import numpy as np

from .constants import BUFFER_SIZE, OVERLAP


def iter_frames(
    samples: np.ndarray,
    buffer_size: int = BUFFER_SIZE,
    overlap: int = OVERLAP,
) -> Iterator[np.ndarray]:
    """
    Yield overlapping buffers of a recording.

    Consecutive buffers share `overlap` samples. A trailing partial buffer is
    dropped.
    """
    if not 0 <= overlap < buffer_size:
        raise ValueError(f"overlap must be in [0, {buffer_size}), got {overlap}")
    step = buffer_size - overlap
    for start in range(0, len(samples) - buffer_size + 1, step):
        yield samples[start : start + buffer_size]


def to_pcm16_bytes(samples: np.ndarray) -> bytes:
    """Encode float samples in [-1, 1] as signed 16-bit little endian PCM."""
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()
