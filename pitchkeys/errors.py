"""Exception hierarchy for pitchkeys.

Frames without a confident pitch are not errors; the analysis functions
return ``None`` for them.  The classes below cover the conditions that
leave the analysis loop: bad configuration (recovered with defaults),
an unusable sample source (fatal) and failed actions (logged, skipped).
"""

from __future__ import annotations


class PitchKeysError(Exception):
    """Base class for all pitchkeys errors."""


class ConfigError(PitchKeysError):
    """A configuration value is missing, malformed or out of range."""


class InputUnavailableError(PitchKeysError):
    """The sample source could not be opened or ended unexpectedly."""


class ActionError(PitchKeysError):
    """A configured action could not be executed."""


class KeySequenceError(ActionError):
    """A key sequence such as ``"Ctrl+Shift+S"`` could not be parsed."""


__all__ = [
    "PitchKeysError",
    "ConfigError",
    "InputUnavailableError",
    "ActionError",
    "KeySequenceError",
]
