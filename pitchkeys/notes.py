"""Conversion between frequencies, MIDI numbers and note names."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from .constants import A4_FREQ, A4_MIDI, FLAT_ALIASES, NOTE_NAMES, TOLERANCE_CENTS

_NOTE_RE = re.compile(r"^\s*([A-Ga-g])([#sSbB]?)\s*(-?\d+)\s*$")


@dataclass(frozen=True)
class NoteJudgment:
    """Nearest equal-tempered note for a frequency estimate.

    Attributes:
        note: Pitch class and octave, e.g. ``"A4"``.
        cents: Signed offset from the note's exact frequency; positive is
            sharp.  Within ``[-50, 50]`` for any finite input.
        in_tune: ``abs(cents) <= tolerance`` for the tolerance used.
        frequency: The frequency that was judged, in hertz.
    """

    note: str
    cents: float
    in_tune: bool
    frequency: float


def freq_to_midi(freq: float) -> float:
    """Convert frequency to a fractional MIDI number using the A4 reference."""
    return A4_MIDI + 12.0 * math.log2(freq / A4_FREQ)


def midi_to_freq(midi: float) -> float:
    """Convert a (fractional) MIDI number to frequency."""
    return A4_FREQ * 2 ** ((midi - A4_MIDI) / 12.0)


def midi_to_name(midi: int) -> str:
    """Return the note name of an integer MIDI number (60 → ``"C4"``)."""
    pitch_class = midi % 12
    octave = midi // 12 - 1
    return f"{NOTE_NAMES[pitch_class]}{octave}"


def nearest_midi(midi: float) -> int:
    """Round a fractional MIDI number to the nearest note, halves away from zero."""
    return int(math.copysign(math.floor(abs(midi) + 0.5), midi))


def freq_to_note(freq: float) -> tuple[str, float]:
    """Return the nearest note name and the signed cents offset for ``freq``.

    Raises:
        ValueError: If ``freq`` is not a positive finite number.
    """
    if not (freq > 0.0 and math.isfinite(freq)):
        raise ValueError(f"frequency must be positive and finite, got {freq!r}")
    midi = freq_to_midi(freq)
    nearest = nearest_midi(midi)
    cents = (midi - nearest) * 100.0
    return midi_to_name(nearest), cents


def quantize(freq: float, tolerance_cents: float = TOLERANCE_CENTS) -> NoteJudgment:
    """Judge ``freq`` against the nearest note with the given tolerance."""
    note, cents = freq_to_note(freq)
    return NoteJudgment(
        note=note,
        cents=cents,
        in_tune=abs(cents) <= tolerance_cents,
        frequency=float(freq),
    )


def parse_note_name(name: str) -> int:
    """Return the MIDI number for a note name such as ``"A4"`` or ``"Bb3"``.

    Sharps may be written ``#`` or ``s``; flats ``b``.  Octave numbers
    follow the convention where middle C is ``C4``.

    Raises:
        ValueError: If ``name`` is not a recognisable note name.
    """
    match = _NOTE_RE.match(name)
    if match is None:
        raise ValueError(f"not a note name: {name!r}")
    letter, accidental, octave = match.groups()
    pitch = letter.upper()
    if accidental in ("#", "s", "S"):
        pitch += "#"
    elif accidental in ("b", "B"):
        pitch = FLAT_ALIASES.get(pitch + "B", "")
        if not pitch:
            # Cb and Fb wrap onto the previous natural.
            natural = NOTE_NAMES.index(letter.upper())
            return natural - 1 + (int(octave) + 1) * 12
    if pitch not in NOTE_NAMES:
        # E# and B# spell the next natural.
        natural = NOTE_NAMES.index(pitch[0])
        return natural + 1 + (int(octave) + 1) * 12
    return NOTE_NAMES.index(pitch) + (int(octave) + 1) * 12


def normalize_note_name(name: str) -> str:
    """Return the canonical sharp spelling of ``name`` (``"bb3"`` → ``"A#3"``)."""
    return midi_to_name(parse_note_name(name))


__all__ = [
    "NoteJudgment",
    "freq_to_midi",
    "midi_to_freq",
    "midi_to_name",
    "nearest_midi",
    "freq_to_note",
    "quantize",
    "parse_note_name",
    "normalize_note_name",
]
