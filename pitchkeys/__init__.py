"""Pitchkeys package: turn sung or played notes into keystrokes."""

from .actions import ActionDispatcher, CommandAction, KeysAction, build_actions
from .config import Config, load_config, resolve_frame_sizes
from .frame_buffer import FrameBuffer
from .notes import NoteJudgment, freq_to_note, quantize
from .pipeline import FrameResult, PitchKeysPipeline
from .pitch import PitchEstimate, estimate_pitch
from .trigger import TriggerEvent, TriggerMachine, TriggerState

__all__ = [
    "ActionDispatcher",
    "CommandAction",
    "KeysAction",
    "build_actions",
    "Config",
    "load_config",
    "resolve_frame_sizes",
    "FrameBuffer",
    "NoteJudgment",
    "freq_to_note",
    "quantize",
    "FrameResult",
    "PitchKeysPipeline",
    "PitchEstimate",
    "estimate_pitch",
    "TriggerEvent",
    "TriggerMachine",
    "TriggerState",
]
