"""Application-wide constants for pitch tracking and note triggering.

The values in this module configure the analysis pipeline: tuning
reference, detectable range, frame sizing and the debounce/cooldown
behaviour of the trigger state machine.  Centralising them avoids magic
numbers spread throughout the code base and gives the configuration
loader a single source for its defaults.
"""

from __future__ import annotations

# ─── Tuning reference ─────────────────────────────────────────────────────

# Concert pitch.  Every note name and cents offset is derived from A4.
A4_FREQ: float = 440.0
A4_MIDI: int = 69

# Twelve-tone equal temperament, sharps only.  Index 0 is C.
NOTE_NAMES: tuple[str, ...] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)

# Flat spellings accepted in configuration files and mapped onto the
# sharp names above.
FLAT_ALIASES: dict[str, str] = {
    "DB": "C#",
    "EB": "D#",
    "GB": "F#",
    "AB": "G#",
    "BB": "A#",
}

# ─── Pitch detection defaults ─────────────────────────────────────────────

# How far (in cents) a note may drift from its exact frequency and still
# count as in tune.
TOLERANCE_CENTS: float = 35.0

# Bounds of the detectable range.  They also bound the autocorrelation lag
# search, which keeps the estimator away from most octave errors.
MIN_HZ: float = 90.0
MAX_HZ: float = 2000.0

# Minimum normalised correlation for a lag peak to count as a pitch.
CORR_THRESHOLD: float = 0.35

# Windowed signals with less energy than this are treated as silence.
SILENCE_ENERGY: float = 1e-9

# Guard for the correlation denominators.
MIN_DENOMINATOR: float = 1e-12

# Guard for the curvature of the parabolic peak refinement.
MIN_CURVATURE: float = 1e-6

# ─── Frame sizing ─────────────────────────────────────────────────────────

# ``0`` means "derive from the sample rate" for both values.
WINDOW_SIZE: int = 0
HOP_SIZE: int = 0

# Auto-derived windows are the power of two nearest to
# ``sample_rate / AUTO_WINDOW_DIVISOR`` (about 50 ms) within these bounds.
AUTO_WINDOW_DIVISOR: int = 20
MIN_AUTO_WINDOW: int = 1024
MAX_AUTO_WINDOW: int = 8192

# Auto-derived hop is a quarter of the window (75 % overlap).
AUTO_HOP_DIVISOR: int = 4

# ─── Triggering defaults ──────────────────────────────────────────────────

# Number of consecutive in-tune frames of the same note before it fires.
NOTE_HOLD_FRAMES: int = 3

# Minimum time between two triggers, in milliseconds.
RETRIGGER_MS: int = 600

# ─── Capture defaults ─────────────────────────────────────────────────────

# Sample rate requested when the input device does not report one.
SAMPLE_RATE: int = 44_100

# Size of the blocks delivered by the capture callback.
BLOCK_SIZE: int = 512

# Capacity of the sample channel between capture and analysis, in seconds
# of audio.  Blocks arriving while it is full are dropped.
CHANNEL_SECONDS: float = 1.0

# High-pass filter cutoff applied at capture time.  ``0`` disables it;
# 50-80 Hz removes mains hum without touching the default range.
HP_FILTER_CUTOFF: float = 0.0

# ─── Default note bindings ────────────────────────────────────────────────

DEFAULT_NOTE_MAP: dict[str, dict[str, str]] = {
    "A4": {"type": "keys", "sequence": "Ctrl+S"},  # save
    "E4": {"type": "keys", "sequence": "Space"},
    "D4": {"type": "keys", "sequence": "Ctrl+Z"},  # undo
    "G3": {"type": "keys", "sequence": "Ctrl+Y"},  # redo
}

CONFIG_FILENAME: str = "config.toml"

__all__ = [
    "A4_FREQ",
    "A4_MIDI",
    "NOTE_NAMES",
    "FLAT_ALIASES",
    "TOLERANCE_CENTS",
    "MIN_HZ",
    "MAX_HZ",
    "CORR_THRESHOLD",
    "SILENCE_ENERGY",
    "MIN_DENOMINATOR",
    "MIN_CURVATURE",
    "WINDOW_SIZE",
    "HOP_SIZE",
    "AUTO_WINDOW_DIVISOR",
    "MIN_AUTO_WINDOW",
    "MAX_AUTO_WINDOW",
    "AUTO_HOP_DIVISOR",
    "NOTE_HOLD_FRAMES",
    "RETRIGGER_MS",
    "SAMPLE_RATE",
    "BLOCK_SIZE",
    "CHANNEL_SECONDS",
    "HP_FILTER_CUTOFF",
    "DEFAULT_NOTE_MAP",
    "CONFIG_FILENAME",
]
