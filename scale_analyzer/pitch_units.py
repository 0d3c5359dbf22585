"""
Conversions between frequencies, absolute cents and pitch classes.
"""

import numpy as np

from .constants import CENTS_PER_OCTAVE, REFERENCE_FREQUENCY


def hz_to_absolute_cents(frequency: float) -> float:
    """Convert a frequency in Hz to cents above C-1 (MIDI note 0)."""
    if frequency <= 0:
        raise ValueError(f"Frequency must be positive, got {frequency}")
    return float(CENTS_PER_OCTAVE * np.log2(frequency / REFERENCE_FREQUENCY))


def absolute_cents_to_hz(cents: float) -> float:
    """Convert cents above C-1 back to a frequency in Hz."""
    return float(REFERENCE_FREQUENCY * 2 ** (cents / CENTS_PER_OCTAVE))


def hz_to_pitch_class(frequency: float) -> float:
    """Octave-independent position of a frequency, in [0, 1200) cents. C is 0."""
    return float(hz_to_absolute_cents(frequency) % CENTS_PER_OCTAVE)


def cents_between(f1: float, f2: float) -> float:
    """Signed interval from f1 to f2 in cents."""
    return float(CENTS_PER_OCTAVE * np.log2(f2 / f1))


def pitch_class_distance(a: float, b: float) -> float:
    """Shortest distance between two pitch classes around the octave circle."""
    diff = abs(a - b) % CENTS_PER_OCTAVE
    return float(min(diff, CENTS_PER_OCTAVE - diff))
