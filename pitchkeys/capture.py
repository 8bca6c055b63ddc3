"""Sample sources: live audio capture and WAV file playback.

:class:`AudioCapture` opens a ``sounddevice`` input stream whose callback
down-mixes each block to mono, optionally high-pass filters it and
offers it to a :class:`~pitchkeys.channel.SampleChannel`.  The callback
runs on PortAudio's thread and must never block, so blocks that do not
fit in the channel are dropped there.

``sounddevice`` is imported lazily so that the analysis code and its
tests do not need PortAudio installed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

import numpy as np
from scipy.io import wavfile
from scipy.signal import butter, sosfilt, sosfilt_zi

from .channel import SampleChannel
from .constants import BLOCK_SIZE, CHANNEL_SECONDS, HP_FILTER_CUTOFF, SAMPLE_RATE
from .errors import InputUnavailableError

logger = logging.getLogger(__name__)

Device = Union[int, str, None]


def to_mono(block: np.ndarray) -> np.ndarray:
    """Down-mix ``(frames, channels)`` audio to a 1-D float32 array."""
    if block.ndim == 2 and block.shape[1] > 1:
        return block.mean(axis=1).astype(np.float32)
    return block.reshape(-1).astype(np.float32)


def list_input_devices() -> list[tuple[int, str]]:
    """
    Return [(device_index, name), ...] for every device with inputs.
    """
    import sounddevice as sd

    devices = []
    for idx, dev in enumerate(sd.query_devices()):
        if dev["max_input_channels"] > 0:
            devices.append((idx, dev["name"]))
    return devices


class HighPassFilter:
    """Streaming Butterworth high-pass filter (second order sections).

    Filter state carries over between blocks so consecutive blocks are
    filtered as one continuous signal.
    """

    def __init__(self, cutoff: float, sample_rate: int, order: int = 2) -> None:
        nyquist = sample_rate / 2.0
        normalised_cutoff = max(min(cutoff / nyquist, 0.99), 0.001)
        self.sos = butter(order, normalised_cutoff, btype="highpass", output="sos")
        # Start from rest rather than the step-response steady state.
        self.zi = np.zeros_like(sosfilt_zi(self.sos))

    def __call__(self, samples: np.ndarray) -> np.ndarray:
        filtered, self.zi = sosfilt(self.sos, samples, zi=self.zi)
        return filtered.astype(np.float32)


class AudioCapture:
    """Capture mono audio from an input device into a :class:`SampleChannel`.

    Args:
        device: Device index or name; ``None`` selects the system default.
        sample_rate: Requested rate.  ``None`` uses the device default.
        channels: Number of input channels to open; they are averaged.
        block_size: Frames per callback.
        hp_cutoff: High-pass cutoff in hertz, ``0`` to disable.
        channel_seconds: Channel capacity in seconds of audio.
    """

    def __init__(
        self,
        device: Device = None,
        *,
        sample_rate: Optional[int] = None,
        channels: int = 1,
        block_size: int = BLOCK_SIZE,
        hp_cutoff: float = HP_FILTER_CUTOFF,
        channel_seconds: float = CHANNEL_SECONDS,
    ) -> None:
        self.device = device
        self.channels = channels
        self.block_size = block_size
        self.sample_rate = int(sample_rate) if sample_rate else self._default_rate(device)
        capacity = max(int(self.sample_rate * channel_seconds), self.block_size)
        self.channel = SampleChannel(capacity)
        self.hp_filter = HighPassFilter(hp_cutoff, self.sample_rate) if hp_cutoff > 0 else None
        self.stream = None
        self._stopping = False
        self._reported_drops = 0

    @staticmethod
    def _default_rate(device: Device) -> int:
        try:
            import sounddevice as sd

            info = sd.query_devices(device, "input")
        except Exception as exc:
            raise InputUnavailableError(f"No usable input device: {exc}") from exc
        rate = int(info.get("default_samplerate") or 0)
        return rate or SAMPLE_RATE

    @property
    def stopping(self) -> bool:
        """``True`` once :meth:`stop` was requested."""
        return self._stopping

    # --------------------------------------------------------------
    def _callback(self, indata, frames, _time, status) -> None:  # noqa: D401
        if status:
            logger.warning("Input status: %s", status)
        samples = to_mono(indata)
        if self.hp_filter is not None:
            samples = self.hp_filter(samples)
        if not self.channel.offer(samples):
            dropped = self.channel.dropped
            # One report per second of lost audio is enough.
            if dropped - self._reported_drops >= self.sample_rate:
                logger.warning("Analysis is falling behind; %d samples dropped", dropped)
                self._reported_drops = dropped

    # --------------------------------------------------------------
    def start(self) -> SampleChannel:
        """Open and start the input stream.

        Returns:
            SampleChannel: The channel the stream feeds.

        Raises:
            InputUnavailableError: If the stream cannot be opened.
        """
        try:
            import sounddevice as sd

            self.stream = sd.InputStream(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=self._callback,
                finished_callback=self.channel.close,
            )
            self.stream.start()
        except Exception as exc:
            self.channel.close()
            raise InputUnavailableError(f"Failed to start input stream: {exc}") from exc
        return self.channel

    def stop(self) -> None:
        self._stopping = True
        if self.stream is not None:
            try:
                self.stream.abort()
                self.stream.close()
            except Exception as exc:
                logger.debug("Error closing input stream: %s", exc)
            self.stream = None
        self.channel.close()

    def __enter__(self) -> "AudioCapture":
        self.start()
        return self

    def __exit__(self, *_) -> None:
        self.stop()


def read_wav(path: Union[str, Path], block_size: int = BLOCK_SIZE) -> tuple[int, Iterator[np.ndarray]]:
    """Open a WAV file as a sample source.

    Integer PCM is scaled to ``[-1, 1]`` and multi-channel audio is
    down-mixed to mono.

    Returns:
        tuple[int, Iterator[np.ndarray]]: The sample rate and an iterator
        over blocks of at most ``block_size`` samples.

    Raises:
        InputUnavailableError: If the file cannot be read.
    """
    try:
        rate, data = wavfile.read(str(path))
    except (OSError, ValueError) as exc:
        raise InputUnavailableError(f"Cannot read {path}: {exc}") from exc

    if np.issubdtype(data.dtype, np.integer):
        info = np.iinfo(data.dtype)
        # Unsigned PCM (8-bit WAV) is centred on the midpoint.
        offset = (int(info.max) + int(info.min) + 1) / 2.0
        scale = (int(info.max) - int(info.min) + 1) / 2.0
        data = (data.astype(np.float64) - offset) / scale
    samples = to_mono(np.asarray(data))

    def blocks() -> Iterator[np.ndarray]:
        for start in range(0, samples.size, block_size):
            yield samples[start : start + block_size]

    return int(rate), blocks()


__all__ = [
    "AudioCapture",
    "HighPassFilter",
    "list_input_devices",
    "read_wav",
    "to_mono",
]
