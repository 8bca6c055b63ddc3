"""
KeySender: inject key sequences into the operating system.

This module turns sequences such as ``"Ctrl+Shift+S"`` into synthetic
key presses.  The sender first tries the Linux ``uinput`` backend for
low-level input synthesis; if that fails (for example on non-Linux
platforms or without access to ``/dev/uinput``) it falls back to
``pynput``.  If neither backend is usable the intended keystrokes are
only logged.

Parsing is kept separate from sending so that configured sequences can
be validated when the configuration is loaded, long before a note is
played.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import ActionError, KeySequenceError

logger = logging.getLogger(__name__)

# Modifier tokens → (uinput constant name, pynput Key attribute)
MODIFIERS: dict[str, tuple[str, str]] = {
    "ctrl": ("KEY_LEFTCTRL", "ctrl"),
    "control": ("KEY_LEFTCTRL", "ctrl"),
    "shift": ("KEY_LEFTSHIFT", "shift"),
    "alt": ("KEY_LEFTALT", "alt"),
    "meta": ("KEY_LEFTMETA", "cmd"),
    "win": ("KEY_LEFTMETA", "cmd"),
    "super": ("KEY_LEFTMETA", "cmd"),
    "cmd": ("KEY_LEFTMETA", "cmd"),
}

# Named keys → (uinput constant name, pynput Key attribute)
SPECIAL_KEYS: dict[str, tuple[str, str]] = {
    "space": ("KEY_SPACE", "space"),
    "enter": ("KEY_ENTER", "enter"),
    "return": ("KEY_ENTER", "enter"),
    "tab": ("KEY_TAB", "tab"),
    "esc": ("KEY_ESC", "esc"),
    "escape": ("KEY_ESC", "esc"),
    "left": ("KEY_LEFT", "left"),
    "leftarrow": ("KEY_LEFT", "left"),
    "right": ("KEY_RIGHT", "right"),
    "rightarrow": ("KEY_RIGHT", "right"),
    "up": ("KEY_UP", "up"),
    "uparrow": ("KEY_UP", "up"),
    "down": ("KEY_DOWN", "down"),
    "downarrow": ("KEY_DOWN", "down"),
    "home": ("KEY_HOME", "home"),
    "end": ("KEY_END", "end"),
    "pageup": ("KEY_PAGEUP", "page_up"),
    "pagedown": ("KEY_PAGEDOWN", "page_down"),
    "backspace": ("KEY_BACKSPACE", "backspace"),
    "delete": ("KEY_DELETE", "delete"),
    "capslock": ("KEY_CAPSLOCK", "caps_lock"),
}
for _i in range(1, 13):
    SPECIAL_KEYS[f"f{_i}"] = (f"KEY_F{_i}", f"f{_i}")

# Printable characters uinput can emit without a shift state.
_UINPUT_PUNCTUATION: dict[str, str] = {
    "-": "KEY_MINUS",
    "=": "KEY_EQUAL",
    "[": "KEY_LEFTBRACE",
    "]": "KEY_RIGHTBRACE",
    ";": "KEY_SEMICOLON",
    "'": "KEY_APOSTROPHE",
    "`": "KEY_GRAVE",
    "\\": "KEY_BACKSLASH",
    ",": "KEY_COMMA",
    ".": "KEY_DOT",
    "/": "KEY_SLASH",
}


@dataclass(frozen=True)
class KeyCombo:
    """A parsed key sequence: modifiers held while ``key`` is tapped.

    ``modifiers`` and ``key`` hold canonical lower-case tokens, e.g.
    ``("ctrl", "shift")`` and ``"s"``.
    """

    modifiers: tuple[str, ...]
    key: str

    def __str__(self) -> str:
        return "+".join((*self.modifiers, self.key))


def parse_key_sequence(sequence: str) -> KeyCombo:
    """Parse a ``+``-separated key sequence.

    Tokens are case-insensitive.  Modifiers may appear in any order; the
    sequence must contain exactly one non-modifier key, which is either a
    named key (``space``, ``enter``, ``f5`` …) or a single character.

    Raises:
        KeySequenceError: For empty sequences, unknown multi-character
            tokens, or a missing or repeated main key.
    """
    tokens = [t.strip() for t in (sequence or "").split("+")]
    tokens = [t for t in tokens if t]
    if not tokens:
        raise KeySequenceError("Empty key sequence")

    modifiers: list[str] = []
    key: Optional[str] = None
    for token in tokens:
        lowered = token.lower()
        if lowered in MODIFIERS:
            canonical = MODIFIERS[lowered][1]
            canonical = "meta" if canonical == "cmd" else canonical
            if canonical not in modifiers:
                modifiers.append(canonical)
            continue
        if lowered in SPECIAL_KEYS:
            main = lowered
        elif len(token) == 1 and token.isprintable():
            main = lowered
        else:
            raise KeySequenceError(f"Unknown key token: {token}")
        if key is not None:
            raise KeySequenceError(f"More than one key in sequence: {sequence}")
        key = main

    if key is None:
        raise KeySequenceError(f"No main key in sequence: {sequence}")
    return KeyCombo(tuple(modifiers), key)


def _uinput_name(token: str) -> Optional[str]:
    """uinput constant name for a canonical token, if there is one."""
    if token in MODIFIERS:
        return MODIFIERS[token][0]
    if token in SPECIAL_KEYS:
        return SPECIAL_KEYS[token][0]
    if len(token) == 1:
        if token.isalnum() and token.isascii():
            return f"KEY_{token.upper()}"
        return _UINPUT_PUNCTUATION.get(token)
    return None


class KeySender:
    """
    Sends parsed key sequences through the best available backend.

    The ``uinput`` device can only emit the key codes it was created
    with, so the sender is given every sequence it may be asked to send
    up front.  Sequences outside that set still work with ``pynput``.

    Parameters
    ----------
    sequences : Iterable[str]
        Key sequences that will be sent, e.g. the values of the note map.
        Unparseable entries are skipped here; :meth:`send` reports them.
    send_enabled : bool, optional
        When ``False`` nothing is injected and each send is only logged.
        Used by the ``--dry-run`` mode.
    backend : str, optional
        Force ``"uinput"``, ``"pynput"`` or ``"none"`` instead of probing.
    """

    def __init__(
        self,
        sequences: Iterable[str] = (),
        send_enabled: bool = True,
        backend: Optional[str] = None,
    ) -> None:
        self.send_enabled: bool = send_enabled
        self.backend: str = "none"
        self.dev = None
        self.ctrl = None
        combos = []
        for sequence in sequences:
            try:
                combos.append(parse_key_sequence(sequence))
            except KeySequenceError:
                continue

        if backend == "none":
            return
        if backend == "pynput":
            self._setup_pynput("pynput backend requested")
            return
        if not self._setup_uinput(combos):
            if backend == "uinput":
                logger.warning("uinput backend requested but unavailable")
            self._setup_pynput("uinput unavailable, falling back to pynput")

    def _setup_uinput(self, combos: list[KeyCombo]) -> bool:
        try:
            import uinput  # type: ignore
        except ImportError:
            return False

        requested: set = set()
        for combo in combos:
            for token in (*combo.modifiers, combo.key):
                name = _uinput_name(token)
                if name is not None and hasattr(uinput, name):
                    requested.add(getattr(uinput, name))
        # Always include the alphabet so that the device opens even when
        # nothing in the map resolves.
        for c in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
            requested.add(getattr(uinput, f"KEY_{c}"))

        try:
            self.dev = uinput.Device(list(requested), name="PitchKeys")
        except OSError as exc:
            logger.warning(
                "Cannot open /dev/uinput (%s); add a udev rule granting the "
                "'input' group access and add your user to it",
                exc,
            )
            return False
        self.backend = "uinput"
        return True

    def _setup_pynput(self, reason: str) -> None:
        """Fallback to pynput if uinput isn’t available or fails."""
        logger.info(reason)
        try:
            from pynput.keyboard import Controller  # type: ignore

            self.ctrl = Controller()
            self.backend = "pynput"
        except Exception as exc:  # pynput raises assorted errors without a display
            self.backend = "none"
            logger.warning("pynput not available (%s); keystrokes will only be logged", exc)

    # ------------------------------------------------------------------
    def _uinput_code(self, token: str):
        import uinput  # type: ignore

        name = _uinput_name(token)
        code = getattr(uinput, name, None) if name else None
        if code is None:
            raise ActionError(f"uinput cannot emit key: {token}")
        return code

    def _pynput_key(self, token: str):
        from pynput.keyboard import Key  # type: ignore

        if token in MODIFIERS:
            return getattr(Key, MODIFIERS[token][1])
        if token in SPECIAL_KEYS:
            return getattr(Key, SPECIAL_KEYS[token][1])
        return token

    def _send_uinput(self, combo: KeyCombo) -> None:
        modifiers = [self._uinput_code(m) for m in combo.modifiers]
        key = self._uinput_code(combo.key)
        try:
            for code in modifiers:
                self.dev.emit(code, 1)
            self.dev.emit(key, 1)
            self.dev.emit(key, 0)
            for code in reversed(modifiers):
                self.dev.emit(code, 0)
        except Exception as exc:
            raise ActionError(f"uinput emit failed: {exc}") from exc

    def _send_pynput(self, combo: KeyCombo) -> None:
        modifiers = [self._pynput_key(m) for m in combo.modifiers]
        key = self._pynput_key(combo.key)
        pressed = []
        try:
            for mod in modifiers:
                self.ctrl.press(mod)
                pressed.append(mod)
            self.ctrl.press(key)
            self.ctrl.release(key)
        except Exception as exc:
            raise ActionError(f"pynput could not send {combo}: {exc}") from exc
        finally:
            for mod in reversed(pressed):
                try:
                    self.ctrl.release(mod)
                except Exception as exc:
                    logger.warning("pynput could not release %s: %s", mod, exc)

    # public
    def send(self, sequence: str) -> None:
        """Press the modifiers, tap the key, release the modifiers.

        Raises:
            KeySequenceError: If ``sequence`` cannot be parsed.
            ActionError: If the backend fails to emit the keys.
        """
        combo = parse_key_sequence(sequence)
        if not self.send_enabled:
            logger.info("[dry-run] keys %s", combo)
            return
        if self.backend == "uinput":
            self._send_uinput(combo)
        elif self.backend == "pynput":
            self._send_pynput(combo)
        else:
            logger.info("[keys] %s", combo)


__all__ = ["KeyCombo", "KeySender", "parse_key_sequence", "MODIFIERS", "SPECIAL_KEYS"]
