"""Bounded hand-off of sample blocks from the capture thread to analysis.

The channel has one producer (the audio callback) and one consumer (the
analysis loop).  The producer never blocks: a block that does not fit in
the remaining capacity is dropped and counted.  The consumer blocks in
:meth:`SampleChannel.get` until a block arrives or the channel closes.
Blocks come out in exactly the order they went in.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterator, Optional

import numpy as np


class SampleChannel:
    """FIFO of mono sample blocks with a capacity measured in samples.

    Parameters
    ----------
    capacity:
        Maximum number of samples held at once, typically one second of
        audio.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self._blocks: deque[np.ndarray] = deque()
        self._size = 0
        self._closed = False
        self._dropped = 0
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        """Total number of samples discarded because the channel was full."""
        return self._dropped

    def __len__(self) -> int:
        """Number of samples currently queued."""
        return self._size

    def offer(self, block: np.ndarray) -> bool:
        """Enqueue ``block`` without blocking.

        Returns:
            bool: ``False`` if the block was dropped because the channel is
            full or already closed.
        """
        samples = np.asarray(block, dtype=np.float32).reshape(-1)
        with self._cond:
            if self._closed:
                return False
            if self._size + samples.size > self.capacity:
                self._dropped += samples.size
                return False
            self._blocks.append(samples)
            self._size += samples.size
            self._cond.notify()
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Dequeue the oldest block, waiting for one if necessary.

        Returns ``None`` once the channel is closed and drained, or when
        ``timeout`` expires first.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._blocks or self._closed, timeout)
            if not self._blocks:
                return None
            block = self._blocks.popleft()
            self._size -= block.size
            return block

    def close(self) -> None:
        """Mark end of stream.  Queued blocks can still be read."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[np.ndarray]:
        # Short waits keep the consumer responsive to KeyboardInterrupt.
        while True:
            block = self.get(timeout=0.1)
            if block is not None:
                yield block
            elif self._closed and not self._blocks:
                return


__all__ = ["SampleChannel"]
