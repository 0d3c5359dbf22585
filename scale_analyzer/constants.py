"""
Default values for pitch estimation, annotation filtering and histograms.
"""

# Audio framing
SAMPLE_RATE = 44100.0
BUFFER_SIZE = 1024
OVERLAP = 512

# Sentinel returned by every detector when no pitch is found
NO_PITCH = -1.0

# McLeod pitch method
MPM_CUTOFF = 0.93  # Relative to the highest candidate amplitude
MPM_SMALL_CUTOFF = 0.5  # Candidates below this are never considered

# YIN
YIN_THRESHOLD = 0.15

# Meta detector: maximum relative deviation between YIN and MPM
META_TOLERANCE = 1.0 / 150.0

# Annotation filters
MIN_PROBABILITY = 0.0
STEADY_STATE_CENTS = 15.0
STEADY_STATE_DURATION = 0.1  # seconds
QUANTIZE_CENTS = 15.0

# Histograms (all positions in cents)
CENTS_PER_OCTAVE = 1200.0
HISTOGRAM_BIN_WIDTH = 6.0
PITCH_HISTOGRAM_STOP = 14400.0  # MIDI note 144

# Peak detection
PEAK_WINDOW = 5
PEAK_THRESHOLD = 15.0

# Absolute cents are measured from C-1 (MIDI note 0), so 6900 cents is A4
A4_REFERENCE = 440.0
REFERENCE_FREQUENCY = A4_REFERENCE * 2 ** (-69 / 12)
