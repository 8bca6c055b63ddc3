"""Debounce and cooldown logic turning per-frame judgments into triggers.

A note fires once it has been judged in tune for ``hold_frames``
consecutive frames.  Holding it keeps the hold condition satisfied, so
the cooldown alone decides when it may fire again: a sustained note
re-triggers once per cooldown period without being re-attacked.  Any
frame without an in-tune pitch starts the run over.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import NOTE_HOLD_FRAMES, RETRIGGER_MS
from .notes import NoteJudgment


def monotonic_ms() -> int:
    """Milliseconds from a monotonic clock."""
    return time.monotonic_ns() // 1_000_000


@dataclass
class TriggerState:
    """Mutable per-session state owned by a single :class:`TriggerMachine`.

    ``last_trigger_ms`` is ``None`` until the first trigger so that the
    first qualifying note is never blocked by the cooldown.
    """

    last_note: Optional[str] = None
    consecutive: int = 0
    last_trigger_ms: Optional[int] = None


@dataclass(frozen=True)
class TriggerEvent:
    """A note that satisfied both the hold and the cooldown conditions."""

    note: str
    cents: float
    frequency: float
    timestamp_ms: int
    # Cooldown reference before this event; used by TriggerMachine.rollback.
    previous_trigger_ms: Optional[int] = None


class TriggerMachine:
    """Per-frame transition function over a :class:`TriggerState`.

    Parameters
    ----------
    hold_frames:
        Consecutive in-tune frames of one note required before it fires.
    retrigger_ms:
        Minimum milliseconds between two triggers.
    has_action:
        Predicate telling whether a note is bound to an action.  Notes
        without an action update the counters but never fire.
    clock:
        Millisecond clock used when :meth:`update` is called without
        ``now_ms``.
    """

    def __init__(
        self,
        hold_frames: int = NOTE_HOLD_FRAMES,
        retrigger_ms: int = RETRIGGER_MS,
        *,
        has_action: Callable[[str], bool] = lambda _note: True,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        if hold_frames < 1:
            raise ValueError("hold_frames must be at least 1")
        if retrigger_ms < 0:
            raise ValueError("retrigger_ms must not be negative")
        self.hold_frames = int(hold_frames)
        self.retrigger_ms = int(retrigger_ms)
        self.has_action = has_action
        self.clock = clock
        self.state = TriggerState()

    def _cooled_down(self, now_ms: int) -> bool:
        last = self.state.last_trigger_ms
        return last is None or now_ms - last >= self.retrigger_ms

    def update(
        self, judgment: Optional[NoteJudgment], now_ms: Optional[int] = None
    ) -> Optional[TriggerEvent]:
        """Advance the state by one frame and return a trigger, if any.

        Args:
            judgment: The frame's note judgment, or ``None`` when no pitch
                was found.
            now_ms: Frame timestamp in milliseconds; defaults to ``clock()``.

        Returns:
            Optional[TriggerEvent]: The event to dispatch.  Emitting an
            event consumes the cooldown; see :meth:`rollback`.
        """
        state = self.state
        if judgment is None or not judgment.in_tune:
            state.consecutive = 0
            state.last_note = None
            return None

        if judgment.note == state.last_note:
            state.consecutive += 1
        else:
            state.last_note = judgment.note
            state.consecutive = 1

        if state.consecutive < self.hold_frames:
            return None
        if now_ms is None:
            now_ms = self.clock()
        if not self._cooled_down(now_ms) or not self.has_action(judgment.note):
            return None

        event = TriggerEvent(
            note=judgment.note,
            cents=judgment.cents,
            frequency=judgment.frequency,
            timestamp_ms=now_ms,
            previous_trigger_ms=state.last_trigger_ms,
        )
        state.last_trigger_ms = now_ms
        return event

    def rollback(self, event: TriggerEvent) -> None:
        """Give back the cooldown consumed by ``event``.

        Used when the event's action failed, so the next qualifying frame
        may retry.  A no-op if another trigger happened since.
        """
        if self.state.last_trigger_ms == event.timestamp_ms:
            self.state.last_trigger_ms = event.previous_trigger_ms


__all__ = ["TriggerState", "TriggerEvent", "TriggerMachine", "monotonic_ms"]
