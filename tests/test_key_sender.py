import logging
import sys
import types

import pytest

from pitchkeys.errors import ActionError, KeySequenceError
from pitchkeys.key_sender import KeyCombo, KeySender, parse_key_sequence


@pytest.mark.parametrize(
    "sequence, combo",
    [
        ("Ctrl+S", KeyCombo(("ctrl",), "s")),
        ("ctrl + shift + s", KeyCombo(("ctrl", "shift"), "s")),
        ("Space", KeyCombo((), "space")),
        ("Enter", KeyCombo((), "enter")),
        ("Return", KeyCombo((), "return")),
        ("Alt+F4", KeyCombo(("alt",), "f4")),
        ("Win+UpArrow", KeyCombo(("meta",), "uparrow")),
        ("A", KeyCombo((), "a")),
        ("1", KeyCombo((), "1")),
        ("Shift+Shift+/", KeyCombo(("shift",), "/")),
    ],
)
def test_parse_key_sequence(sequence: str, combo: KeyCombo) -> None:
    assert parse_key_sequence(sequence) == combo


@pytest.mark.parametrize("sequence", ["", " + ", "Ctrl+Banana", "Ctrl+Shift", "A+B", "Hyper+X"])
def test_parse_key_sequence_errors(sequence: str) -> None:
    with pytest.raises(KeySequenceError):
        parse_key_sequence(sequence)


def test_combo_str() -> None:
    assert str(parse_key_sequence("shift+CTRL+z")) == "shift+ctrl+z"


def test_log_only_backend(caplog: pytest.LogCaptureFixture) -> None:
    sender = KeySender(["Ctrl+S"], backend="none")
    with caplog.at_level(logging.INFO, logger="pitchkeys"):
        sender.send("Ctrl+S")
    assert sender.backend == "none"
    assert "ctrl+s" in caplog.text


def test_send_rejects_bad_sequence() -> None:
    with pytest.raises(KeySequenceError):
        KeySender(backend="none").send("Ctrl+Nope")


class _FakeController:
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def press(self, key: object) -> None:
        self.events.append(("press", key))

    def release(self, key: object) -> None:
        self.events.append(("release", key))


def _install_fake_pynput(monkeypatch: pytest.MonkeyPatch) -> None:
    keyboard = types.ModuleType("pynput.keyboard")
    keyboard.Key = types.SimpleNamespace(
        ctrl="<ctrl>", shift="<shift>", alt="<alt>", cmd="<cmd>", space="<space>", enter="<enter>"
    )
    keyboard.Controller = _FakeController
    pynput = types.ModuleType("pynput")
    pynput.keyboard = keyboard
    monkeypatch.setitem(sys.modules, "pynput", pynput)
    monkeypatch.setitem(sys.modules, "pynput.keyboard", keyboard)


def test_pynput_backend_order(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_pynput(monkeypatch)
    sender = KeySender(["Ctrl+Shift+S"], backend="pynput")
    assert sender.backend == "pynput"
    sender.send("Ctrl+Shift+S")
    assert sender.ctrl.events == [
        ("press", "<ctrl>"),
        ("press", "<shift>"),
        ("press", "s"),
        ("release", "s"),
        ("release", "<shift>"),
        ("release", "<ctrl>"),
    ]


def test_dry_run_sends_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_pynput(monkeypatch)
    sender = KeySender(["Space"], send_enabled=False, backend="pynput")
    sender.send("Space")
    assert sender.ctrl.events == []


class _BrokenController(_FakeController):
    def press(self, key: object) -> None:
        if key == "s":
            raise RuntimeError("display went away")
        super().press(key)

    def release(self, key: object) -> None:
        raise RuntimeError("display went away")


def test_pynput_failure_is_action_error(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    _install_fake_pynput(monkeypatch)
    sender = KeySender(["Ctrl+S"], backend="pynput")
    sender.ctrl = _BrokenController()
    with caplog.at_level(logging.WARNING, logger="pitchkeys"):
        with pytest.raises(ActionError):
            sender.send("Ctrl+S")
    assert sender.ctrl.events == [("press", "<ctrl>")]
    assert "could not release" in caplog.text


def _install_fake_uinput(monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    uinput = types.ModuleType("uinput")
    names = [f"KEY_{c}" for c in "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"]
    names += ["KEY_LEFTCTRL", "KEY_LEFTSHIFT", "KEY_LEFTALT", "KEY_LEFTMETA", "KEY_SPACE"]
    for code, name in enumerate(names):
        setattr(uinput, name, (1, code))

    class Device:
        def __init__(self, codes, name=None) -> None:
            self.codes = set(codes)
            self.emitted: list[tuple[object, int]] = []

        def emit(self, code, value) -> None:
            self.emitted.append((code, value))

    uinput.Device = Device
    monkeypatch.setitem(sys.modules, "uinput", uinput)
    return uinput


def test_uinput_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    uinput = _install_fake_uinput(monkeypatch)
    sender = KeySender(["Ctrl+S", "Space"])
    assert sender.backend == "uinput"
    assert {uinput.KEY_LEFTCTRL, uinput.KEY_S, uinput.KEY_SPACE} <= sender.dev.codes
    sender.send("Ctrl+S")
    assert sender.dev.emitted == [
        (uinput.KEY_LEFTCTRL, 1),
        (uinput.KEY_S, 1),
        (uinput.KEY_S, 0),
        (uinput.KEY_LEFTCTRL, 0),
    ]


def test_uinput_unknown_code_is_action_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_uinput(monkeypatch)
    sender = KeySender(["Tab"])
    with pytest.raises(ActionError):
        sender.send("Tab")
