import pytest

from pitchkeys.notes import NoteJudgment
from pitchkeys.trigger import TriggerMachine


def _judge(note: str = "A4", cents: float = 0.0, in_tune: bool = True) -> NoteJudgment:
    return NoteJudgment(note=note, cents=cents, in_tune=in_tune, frequency=440.0)


def test_fires_after_hold_frames() -> None:
    machine = TriggerMachine(hold_frames=3, retrigger_ms=500)
    assert machine.update(_judge(), 0) is None
    assert machine.update(_judge(), 100) is None
    event = machine.update(_judge(), 200)
    assert event is not None
    assert event.note == "A4"
    assert event.timestamp_ms == 200


def test_interruption_resets_the_run() -> None:
    hold = 4
    machine = TriggerMachine(hold_frames=hold, retrigger_ms=0)
    events = []
    t = 0
    for _ in range(hold - 1):
        events.append(machine.update(_judge(), t))
        t += 100
    events.append(machine.update(None, t))
    for _ in range(hold):
        t += 100
        events.append(machine.update(_judge(), t))
    fired = [e for e in events if e is not None]
    assert len(fired) == 1
    assert events[-1] is not None


def test_cooldown_spacing_for_held_note() -> None:
    machine = TriggerMachine(hold_frames=3, retrigger_ms=500)
    fired = [
        frame
        for frame in range(1, 21)
        if machine.update(_judge(), frame * 100) is not None
    ]
    assert fired == [3, 8, 13, 18]


def test_out_of_tune_resets_and_clears_note() -> None:
    machine = TriggerMachine(hold_frames=2, retrigger_ms=0)
    machine.update(_judge(), 0)
    machine.update(_judge(cents=45.0, in_tune=False), 100)
    assert machine.state.consecutive == 0
    assert machine.state.last_note is None
    assert machine.update(_judge(), 200) is None
    assert machine.update(_judge(), 300) is not None


def test_note_change_restarts_count() -> None:
    machine = TriggerMachine(hold_frames=2, retrigger_ms=0)
    machine.update(_judge("A4"), 0)
    assert machine.update(_judge("B4"), 100) is None
    assert machine.state.last_note == "B4"
    assert machine.state.consecutive == 1
    event = machine.update(_judge("B4"), 200)
    assert event is not None and event.note == "B4"


def test_unbound_note_counts_but_never_fires() -> None:
    machine = TriggerMachine(hold_frames=2, retrigger_ms=0, has_action=lambda n: n == "A4")
    for t in range(5):
        assert machine.update(_judge("E4"), t * 100) is None
    assert machine.state.consecutive == 5
    assert machine.state.last_trigger_ms is None


def test_first_trigger_not_blocked_by_cooldown() -> None:
    machine = TriggerMachine(hold_frames=1, retrigger_ms=10_000)
    assert machine.update(_judge(), 0) is not None


def test_rollback_restores_cooldown() -> None:
    machine = TriggerMachine(hold_frames=1, retrigger_ms=500)
    first = machine.update(_judge(), 0)
    assert first is not None
    second = machine.update(_judge(), 600)
    assert second is not None
    machine.rollback(second)
    assert machine.state.last_trigger_ms == 0
    assert machine.update(_judge(), 700) is not None


def test_default_clock_used_without_timestamp() -> None:
    machine = TriggerMachine(hold_frames=1, retrigger_ms=0, clock=lambda: 1234)
    event = machine.update(_judge())
    assert event is not None and event.timestamp_ms == 1234


@pytest.mark.parametrize("hold, cooldown", [(0, 100), (1, -1)])
def test_invalid_parameters(hold: int, cooldown: int) -> None:
    with pytest.raises(ValueError):
        TriggerMachine(hold, cooldown)
