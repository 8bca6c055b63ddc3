"""Tests for :mod:`pitchkeys.capture` with ``sounddevice`` stubbed out."""

from __future__ import annotations

import sys
import types
from pathlib import Path

import numpy as np
import pytest
from scipy.io import wavfile

from pitchkeys.capture import AudioCapture, HighPassFilter, list_input_devices, read_wav, to_mono
from pitchkeys.errors import InputUnavailableError


class DummyStream:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.started = False
        self.aborted = False

    def start(self) -> None:
        self.started = True

    def abort(self) -> None:
        self.aborted = True

    def close(self) -> None:
        self.kwargs["finished_callback"]()


def _install_sounddevice(monkeypatch: pytest.MonkeyPatch, stream_factory=DummyStream) -> None:
    devices = [
        {"name": "speakers", "max_input_channels": 0, "default_samplerate": 48000.0},
        {"name": "mic", "max_input_channels": 2, "default_samplerate": 48000.0},
    ]

    def query_devices(device=None, kind=None):
        if device is None and kind is None:
            return devices
        return devices[1]

    dummy_sd = types.SimpleNamespace(InputStream=stream_factory, query_devices=query_devices)
    monkeypatch.setitem(sys.modules, "sounddevice", dummy_sd)


def test_to_mono_averages_channels() -> None:
    stereo = np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32)
    np.testing.assert_allclose(to_mono(stereo), [0.5, 0.5])
    assert to_mono(np.ones((4, 1))).shape == (4,)


def test_list_input_devices(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_sounddevice(monkeypatch)
    assert list_input_devices() == [(1, "mic")]


def test_capture_feeds_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_sounddevice(monkeypatch)
    capture = AudioCapture(channels=2, block_size=4)
    assert capture.sample_rate == 48_000
    channel = capture.start()
    assert capture.stream.started
    assert capture.stream.kwargs["samplerate"] == 48_000

    capture._callback(np.array([[1.0, 0.0]] * 4, dtype=np.float32), 4, None, None)
    np.testing.assert_allclose(channel.get(timeout=0), [0.5] * 4)

    capture.stop()
    assert capture.stopping
    assert channel.closed
    assert channel.get(timeout=0) is None


def test_capture_drops_when_full(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_sounddevice(monkeypatch)
    capture = AudioCapture(sample_rate=100, block_size=10, channel_seconds=0.2)
    capture.start()
    block = np.zeros((10, 1), dtype=np.float32)
    for _ in range(3):
        capture._callback(block, 10, None, None)
    assert len(capture.channel) == 20
    assert capture.channel.dropped == 10


def test_stream_failure_is_input_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(**_):
        raise RuntimeError("no device")

    _install_sounddevice(monkeypatch, broken)
    capture = AudioCapture(sample_rate=44_100)
    with pytest.raises(InputUnavailableError):
        capture.start()
    assert capture.channel.closed


def test_high_pass_removes_dc() -> None:
    hp = HighPassFilter(60.0, 44_100)
    out = np.concatenate([hp(np.ones(4410, dtype=np.float32)) for _ in range(5)])
    assert abs(float(out[-100:].mean())) < 1e-3


def test_read_wav_int16(tmp_path: Path) -> None:
    path = tmp_path / "tone.wav"
    stereo = np.zeros((1000, 2), dtype=np.int16)
    stereo[:, 0] = 16384
    wavfile.write(str(path), 8000, stereo)
    rate, blocks = read_wav(path, block_size=300)
    chunks = list(blocks)
    assert rate == 8000
    assert [c.size for c in chunks] == [300, 300, 300, 100]
    np.testing.assert_allclose(chunks[0], 0.25)


def test_read_wav_missing(tmp_path: Path) -> None:
    with pytest.raises(InputUnavailableError):
        read_wav(tmp_path / "missing.wav")
