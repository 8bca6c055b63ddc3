"""The per-frame analysis loop.

Data flows through the pipeline as::

    samples → FrameBuffer → estimate_pitch → quantize → TriggerMachine → ActionDispatcher

Everything here runs on a single consumer thread.  The only blocking
point is waiting for the next block from the sample source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import numpy as np

from .actions import ActionDispatcher
from .config import Config, resolve_frame_sizes
from .frame_buffer import FrameBuffer
from .notes import NoteJudgment, quantize
from .pitch import PitchEstimate, estimate_pitch
from .trigger import TriggerEvent, TriggerMachine, monotonic_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Outcome of analysing one window, for display and tests."""

    index: int
    timestamp_ms: int
    estimate: Optional[PitchEstimate]
    judgment: Optional[NoteJudgment]
    event: Optional[TriggerEvent] = None
    dispatched: bool = False


class PitchKeysPipeline:
    """Turn a stream of mono samples into dispatched note actions.

    Args:
        config: Analysis and triggering settings.
        sample_rate: Rate of the incoming samples, fixed for the session.
        dispatcher: Executes the action bound to each triggered note.
        clock: Millisecond clock stamped on each frame.
        on_frame: Optional callback receiving every :class:`FrameResult`.
    """

    def __init__(
        self,
        config: Config,
        sample_rate: int,
        dispatcher: ActionDispatcher,
        *,
        clock: Callable[[], int] = monotonic_ms,
        on_frame: Optional[Callable[[FrameResult], None]] = None,
    ) -> None:
        self.config = config
        self.sample_rate = int(sample_rate)
        self.dispatcher = dispatcher
        self.clock = clock
        self.on_frame = on_frame
        self.window_size, self.hop_size = resolve_frame_sizes(
            self.sample_rate, config.window_size, config.hop_size
        )
        self.frames = FrameBuffer(self.window_size, self.hop_size)
        self.trigger = TriggerMachine(
            config.note_hold_frames,
            config.retrigger_ms,
            has_action=dispatcher.has_action,
            clock=clock,
        )
        self.frame_count = 0
        self.trigger_count = 0

    def process_window(self, window: np.ndarray, now_ms: Optional[int] = None) -> FrameResult:
        """Analyse one window and dispatch a trigger if it produces one."""
        cfg = self.config
        if now_ms is None:
            now_ms = self.clock()
        estimate = estimate_pitch(
            window, self.sample_rate, cfg.min_hz, cfg.max_hz, cfg.corr_threshold
        )
        judgment = quantize(estimate.frequency, cfg.tolerance_cents) if estimate else None
        event = self.trigger.update(judgment, now_ms)

        dispatched = False
        if event is not None:
            dispatched = self.dispatcher.dispatch(event)
            if dispatched:
                self.trigger_count += 1
            elif not cfg.consume_cooldown_on_failure:
                # Let the next qualifying frame retry.
                self.trigger.rollback(event)

        result = FrameResult(
            index=self.frame_count,
            timestamp_ms=now_ms,
            estimate=estimate,
            judgment=judgment,
            event=event,
            dispatched=dispatched,
        )
        self.frame_count += 1
        if self.on_frame is not None:
            self.on_frame(result)
        return result

    def feed(self, samples: np.ndarray) -> list[FrameResult]:
        """Push a block of samples and analyse every window it completes."""
        return [self.process_window(window) for window in self.frames.push(samples)]

    def run(self, source: Iterable[np.ndarray]) -> int:
        """Consume ``source`` until it is exhausted.

        A partially filled window left at the end is discarded.

        Returns:
            int: Number of frames analysed.
        """
        logger.info(
            "Tolerance: ±%.1f cents, range: %.0f-%.0f Hz",
            self.config.tolerance_cents,
            self.config.min_hz,
            self.config.max_hz,
        )
        logger.info(
            "Sample rate: %d Hz, window: %d samples, hop: %d samples",
            self.sample_rate,
            self.window_size,
            self.hop_size,
        )
        try:
            for block in source:
                self.feed(block)
        finally:
            self.frames.reset()
        return self.frame_count


__all__ = ["FrameResult", "PitchKeysPipeline"]
