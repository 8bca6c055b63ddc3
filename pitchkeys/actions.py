"""Actions bound to notes and the dispatcher that runs them.

An :class:`Action` is anything with an ``execute`` method.  The trigger
logic only asks the :class:`ActionDispatcher` whether a note has an
action and hands it the resulting events; new kinds of action plug in by
subclassing :class:`Action` and registering a builder in
``ACTION_TYPES``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Any, Callable, Mapping, Optional, Sequence

from .errors import ActionError, ConfigError
from .key_sender import KeySender, parse_key_sequence
from .trigger import TriggerEvent

logger = logging.getLogger(__name__)


class Action:
    """Base class for an operation triggered by a note."""

    def execute(self) -> None:
        """Perform the action.

        Raises:
            ActionError: If the action could not be carried out.
        """
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


class KeysAction(Action):
    """Send a key sequence such as ``"Ctrl+S"``."""

    def __init__(self, sequence: str, sender: Optional[KeySender] = None) -> None:
        # Validate eagerly so bad sequences surface at config time.
        parse_key_sequence(sequence)
        self.sequence = sequence
        self.sender = sender

    def execute(self) -> None:
        if self.sender is None:
            raise ActionError("No key sender configured")
        self.sender.send(self.sequence)

    def describe(self) -> str:
        return f"keys:{self.sequence}"


class CommandAction(Action):
    """Launch an external program without waiting for it to finish."""

    def __init__(self, program: str, args: Sequence[str] = (), dry_run: bool = False) -> None:
        if not program:
            raise ConfigError("command action needs a program")
        self.program = program
        self.args = [str(a) for a in args]
        self.dry_run = dry_run

    def execute(self) -> None:
        if self.dry_run:
            logger.info("[dry-run] command %s", self.describe())
            return
        executable = shutil.which(self.program)
        if executable is None:
            raise ActionError(f"Program not found: {self.program}")
        try:
            subprocess.Popen(
                [executable, *self.args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ActionError(f"Could not start {self.program}: {exc}") from exc

    def describe(self) -> str:
        return "cmd:" + " ".join([self.program, *self.args])


def _build_keys(entry: Mapping[str, Any], sender: Optional[KeySender], dry_run: bool) -> Action:
    sequence = entry.get("sequence")
    if not isinstance(sequence, str):
        raise ConfigError("keys action needs a 'sequence' string")
    return KeysAction(sequence, sender)


def _build_command(entry: Mapping[str, Any], sender: Optional[KeySender], dry_run: bool) -> Action:
    program = entry.get("program")
    args = entry.get("args") or []
    if not isinstance(program, str):
        raise ConfigError("command action needs a 'program' string")
    if not isinstance(args, (list, tuple)):
        raise ConfigError("command action 'args' must be a list")
    return CommandAction(program, args, dry_run=dry_run)


ACTION_TYPES: dict[str, Callable[[Mapping[str, Any], Optional[KeySender], bool], Action]] = {
    "keys": _build_keys,
    "command": _build_command,
}


def action_from_entry(
    entry: Mapping[str, Any] | str,
    sender: Optional[KeySender] = None,
    *,
    dry_run: bool = False,
) -> Action:
    """Build an action from its configuration entry.

    ``entry`` is either a table with a ``type`` key (``"keys"`` or
    ``"command"``) or a bare string, which is shorthand for a keys action.

    Raises:
        ConfigError: For unknown types or missing fields.
        KeySequenceError: For unparseable key sequences.
    """
    if isinstance(entry, str):
        entry = {"type": "keys", "sequence": entry}
    if not isinstance(entry, Mapping):
        raise ConfigError(f"action must be a table or a string, got {type(entry).__name__}")
    kind = str(entry.get("type", "keys")).lower()
    builder = ACTION_TYPES.get(kind)
    if builder is None:
        raise ConfigError(f"unknown action type: {kind}")
    return builder(entry, sender, dry_run)


def build_actions(
    note_map: Mapping[str, Mapping[str, Any] | str],
    sender: Optional[KeySender] = None,
    *,
    dry_run: bool = False,
) -> dict[str, Action]:
    """Build every action in ``note_map``; invalid entries are logged and skipped."""
    actions: dict[str, Action] = {}
    for note, entry in note_map.items():
        try:
            actions[note] = action_from_entry(entry, sender, dry_run=dry_run)
        except (ConfigError, ActionError) as exc:
            logger.warning("Ignoring action for %s: %s", note, exc)
    return actions


class ActionDispatcher:
    """Resolve notes to actions and execute them for trigger events."""

    def __init__(self, actions: Mapping[str, Action]) -> None:
        self.actions = dict(actions)

    def resolve(self, note: str) -> Optional[Action]:
        return self.actions.get(note)

    def has_action(self, note: str) -> bool:
        return note in self.actions

    def dispatch(self, event: TriggerEvent) -> bool:
        """Execute the action bound to ``event.note``.

        Failures are logged and reported through the return value; they
        never propagate into the analysis loop.

        Returns:
            bool: ``True`` if the action ran successfully.
        """
        action = self.resolve(event.note)
        if action is None:
            return False
        logger.info("Trigger: %s => %s", event.note, action.describe())
        try:
            action.execute()
        except ActionError as exc:
            logger.error("Action failed for %s: %s", event.note, exc)
            return False
        except Exception:
            logger.exception("Action crashed for %s", event.note)
            return False
        return True


__all__ = [
    "Action",
    "KeysAction",
    "CommandAction",
    "ACTION_TYPES",
    "action_from_entry",
    "build_actions",
    "ActionDispatcher",
]
