"""Sliding analysis windows over a stream of mono samples."""

from __future__ import annotations

from typing import Iterable, Iterator

import numpy as np


class FrameBuffer:
    """Accumulate samples into overlapping fixed-size windows.

    The buffer always holds the most recent ``window_size`` samples.  A
    window becomes ready every ``hop_size`` received samples, but only
    once at least ``window_size`` samples have been received in total.
    Consecutive windows therefore overlap by ``window_size - hop_size``
    samples.

    Parameters
    ----------
    window_size:
        Number of samples in each analysis window.
    hop_size:
        Number of new samples between consecutive windows.
    """

    def __init__(self, window_size: int, hop_size: int) -> None:
        if hop_size <= 0 or window_size <= 0:
            raise ValueError("window_size and hop_size must be positive")
        if hop_size > window_size:
            raise ValueError("hop_size must not exceed window_size")
        self.window_size = int(window_size)
        self.hop_size = int(hop_size)
        self._buffer = np.zeros(self.window_size, dtype=np.float32)
        self._filled = 0
        self._since_hop = 0

    @property
    def filled(self) -> int:
        """Number of valid samples currently held (at most ``window_size``)."""
        return self._filled

    def reset(self) -> None:
        """Discard buffered samples, e.g. a half-built window on shutdown."""
        self._buffer[:] = 0.0
        self._filled = 0
        self._since_hop = 0

    def _append(self, chunk: np.ndarray) -> None:
        n = chunk.size
        if n >= self.window_size:
            self._buffer[:] = chunk[-self.window_size :]
        else:
            # Shift out the oldest samples to make room at the end.
            self._buffer[:-n] = self._buffer[n:]
            self._buffer[-n:] = chunk
        self._filled = min(self.window_size, self._filled + n)

    def push(self, samples: Iterable[float] | np.ndarray) -> list[np.ndarray]:
        """Append ``samples`` and return every window completed by them.

        Samples are consumed in hop-sized pieces so that a large batch
        yields the same windows as feeding the samples one at a time.
        Returned windows are copies and stay valid after later pushes.
        """

        data = np.asarray(samples, dtype=np.float32).reshape(-1)
        windows: list[np.ndarray] = []
        pos = 0
        while pos < data.size:
            take = min(self.hop_size - self._since_hop, data.size - pos)
            self._append(data[pos : pos + take])
            self._since_hop += take
            pos += take
            if self._since_hop == self.hop_size:
                self._since_hop = 0
                if self._filled >= self.window_size:
                    windows.append(self._buffer.copy())
        return windows

    def frames(self, source: Iterable[Iterable[float] | np.ndarray]) -> Iterator[np.ndarray]:
        """Lazily yield windows for a stream of sample blocks."""
        for block in source:
            yield from self.push(block)


__all__ = ["FrameBuffer"]
