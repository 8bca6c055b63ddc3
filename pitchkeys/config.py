"""Loading and validation of the pitchkeys configuration.

Configuration lives in a TOML file (``config.toml`` by default)::

    tolerance_cents = 30.0
    min_hz = 80.0
    retrigger_ms = 500

    [note_map]
    A4 = { type = "keys", sequence = "Ctrl+S" }
    E4 = "Space"

Problems never stop the program.  A missing or unparseable file yields
the defaults; a single bad value is replaced by its default.  Each
fallback is reported with a warning.
"""

from __future__ import annotations

import copy
import logging
import math
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from .constants import (
    AUTO_HOP_DIVISOR,
    AUTO_WINDOW_DIVISOR,
    CHANNEL_SECONDS,
    CONFIG_FILENAME,
    CORR_THRESHOLD,
    DEFAULT_NOTE_MAP,
    HOP_SIZE,
    HP_FILTER_CUTOFF,
    MAX_AUTO_WINDOW,
    MAX_HZ,
    MIN_AUTO_WINDOW,
    MIN_HZ,
    NOTE_HOLD_FRAMES,
    RETRIGGER_MS,
    TOLERANCE_CENTS,
    WINDOW_SIZE,
)
from .errors import ConfigError
from .notes import normalize_note_name
from .utils import nearest_power_of_two

logger = logging.getLogger(__name__)

Device = Union[int, str, None]


def _default_note_map() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_NOTE_MAP)


@dataclass
class Config:
    """Settings consumed by the analysis pipeline.

    ``window_size`` and ``hop_size`` of ``0`` are resolved against the
    input sample rate by :func:`resolve_frame_sizes`.  ``note_map`` holds
    raw action entries keyed by canonical note name; they are turned into
    :class:`~pitchkeys.actions.Action` objects by
    :func:`~pitchkeys.actions.build_actions`.
    """

    tolerance_cents: float = TOLERANCE_CENTS
    min_hz: float = MIN_HZ
    max_hz: float = MAX_HZ
    window_size: int = WINDOW_SIZE
    hop_size: int = HOP_SIZE
    note_hold_frames: int = NOTE_HOLD_FRAMES
    retrigger_ms: int = RETRIGGER_MS
    corr_threshold: float = CORR_THRESHOLD
    note_map: dict[str, Any] = field(default_factory=_default_note_map)
    device: Device = None
    hp_cutoff: float = HP_FILTER_CUTOFF
    consume_cooldown_on_failure: bool = False
    channel_seconds: float = CHANNEL_SECONDS


# ─── Field validators ─────────────────────────────────────────────────────


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"expected a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigError(f"expected a finite number, got {value!r}")
    return float(value)


def _integer(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"expected an integer, got {value!r}")
    return value


def _positive(value: Any) -> float:
    number = _number(value)
    if number <= 0:
        raise ConfigError(f"expected a positive number, got {value!r}")
    return number


def _non_negative(value: Any) -> float:
    number = _number(value)
    if number < 0:
        raise ConfigError(f"expected a non-negative number, got {value!r}")
    return number


def _size(value: Any) -> int:
    number = _integer(value)
    if number < 0:
        raise ConfigError(f"expected 0 (auto) or a positive size, got {value!r}")
    return number


def _hold_frames(value: Any) -> int:
    number = _integer(value)
    if number < 1:
        raise ConfigError(f"expected at least 1 frame, got {value!r}")
    return number


def _retrigger(value: Any) -> int:
    number = _integer(value)
    if number < 0:
        raise ConfigError(f"expected a non-negative duration, got {value!r}")
    return number


def _unit(value: Any) -> float:
    number = _number(value)
    if not 0.0 <= number <= 1.0:
        raise ConfigError(f"expected a value in [0, 1], got {value!r}")
    return number


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"expected true or false, got {value!r}")
    return value


def _device(value: Any) -> Device:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"expected a device index or name, got {value!r}")
    return value


def _note_map(value: Any) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"expected a table of notes, got {value!r}")
    result: dict[str, Any] = {}
    for name, action in value.items():
        try:
            note = normalize_note_name(str(name))
        except ValueError:
            logger.warning("Ignoring note_map entry with invalid note name %r", name)
            continue
        if not isinstance(action, (str, Mapping)):
            logger.warning("Ignoring note_map entry %s: action must be a table or string", name)
            continue
        if note in result:
            logger.warning("note_map entry %r duplicates %s; keeping the later one", name, note)
        result[note] = dict(action) if isinstance(action, Mapping) else action
    return result


_VALIDATORS: dict[str, Callable[[Any], Any]] = {
    "tolerance_cents": _non_negative,
    "min_hz": _positive,
    "max_hz": _positive,
    "window_size": _size,
    "hop_size": _size,
    "note_hold_frames": _hold_frames,
    "retrigger_ms": _retrigger,
    "corr_threshold": _unit,
    "note_map": _note_map,
    "device": _device,
    "hp_cutoff": _non_negative,
    "consume_cooldown_on_failure": _boolean,
    "channel_seconds": _positive,
}


def config_from_dict(data: Mapping[str, Any]) -> Config:
    """Build a :class:`Config` from parsed TOML, falling back per field."""
    config = Config()
    known = {f.name for f in fields(Config)}
    for key, value in data.items():
        if key not in known:
            logger.warning("Unknown config key %r ignored", key)
            continue
        try:
            setattr(config, key, _VALIDATORS[key](value))
        except ConfigError as exc:
            logger.warning("Invalid %s (%s); using default %r", key, exc, getattr(config, key))

    defaults = Config()
    if config.min_hz >= config.max_hz:
        logger.warning(
            "min_hz (%s) must be below max_hz (%s); using defaults %s-%s",
            config.min_hz,
            config.max_hz,
            defaults.min_hz,
            defaults.max_hz,
        )
        config.min_hz, config.max_hz = defaults.min_hz, defaults.max_hz
    if config.window_size and config.hop_size and config.hop_size >= config.window_size:
        logger.warning(
            "hop_size (%d) must be smaller than window_size (%d); deriving both automatically",
            config.hop_size,
            config.window_size,
        )
        config.window_size, config.hop_size = defaults.window_size, defaults.hop_size
    if not config.note_map:
        logger.warning("note_map is empty; using the default mapping")
        config.note_map = _default_note_map()
    return config


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Read the configuration file at ``path`` (default ``./config.toml``).

    Never raises for configuration problems: a missing, unreadable or
    malformed file produces a warning and the default :class:`Config`.
    """
    path = Path(path) if path is not None else Path.cwd() / CONFIG_FILENAME
    if not path.exists():
        logger.warning("%s not found; using default config", path)
        return Config()
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Could not read %s (%s); using default config", path, exc)
        return Config()
    return config_from_dict(data)


def resolve_frame_sizes(sample_rate: int, window_size: int = 0, hop_size: int = 0) -> tuple[int, int]:
    """Return concrete ``(window_size, hop_size)`` for ``sample_rate``.

    A zero window becomes the power of two nearest to ``sample_rate / 20``
    (about 50 ms), clamped to ``[1024, 8192]``.  A zero hop becomes a
    quarter of the window.  A hop that is not smaller than the window is
    replaced by the automatic value.
    """
    if window_size <= 0:
        window_size = nearest_power_of_two(sample_rate / AUTO_WINDOW_DIVISOR)
        window_size = max(MIN_AUTO_WINDOW, min(MAX_AUTO_WINDOW, window_size))
    auto_hop = max(1, window_size // AUTO_HOP_DIVISOR)
    if hop_size <= 0:
        hop_size = auto_hop
    elif hop_size >= window_size:
        logger.warning(
            "hop_size %d is not smaller than window_size %d; using %d",
            hop_size,
            window_size,
            auto_hop,
        )
        hop_size = auto_hop
    return window_size, hop_size


__all__ = ["Config", "config_from_dict", "load_config", "resolve_frame_sizes"]
