import numpy as np
import pytest

from pitchkeys.frame_buffer import FrameBuffer


def test_no_window_until_buffer_full() -> None:
    fb = FrameBuffer(8, 2)
    assert fb.push(np.arange(6)) == []
    windows = fb.push(np.arange(6, 8))
    assert len(windows) == 1
    np.testing.assert_array_equal(windows[0], np.arange(8))


def test_windows_advance_by_hop_and_overlap() -> None:
    fb = FrameBuffer(8, 2)
    windows = fb.push(np.arange(14))
    assert len(windows) == 4
    np.testing.assert_array_equal(windows[1], np.arange(2, 10))
    np.testing.assert_array_equal(windows[-1], np.arange(6, 14))
    # consecutive windows share window_size - hop_size samples
    np.testing.assert_array_equal(windows[2][:6], windows[1][2:])


def test_batch_and_single_samples_agree() -> None:
    data = np.random.default_rng(1).normal(size=50).astype(np.float32)
    batch = FrameBuffer(16, 5).push(data)
    single_fb = FrameBuffer(16, 5)
    single = [w for x in data for w in single_fb.push([x])]
    assert len(batch) == len(single)
    for a, b in zip(batch, single):
        np.testing.assert_array_equal(a, b)


def test_window_not_multiple_of_hop() -> None:
    fb = FrameBuffer(10, 4)
    windows = fb.push(np.arange(20))
    # Ready at 12, 16 and 20 samples.
    assert len(windows) == 3
    np.testing.assert_array_equal(windows[0], np.arange(2, 12))


def test_returned_windows_are_copies() -> None:
    fb = FrameBuffer(4, 2)
    first = fb.push(np.ones(4))[0]
    fb.push(np.zeros(4))
    np.testing.assert_array_equal(first, np.ones(4))


def test_frames_generator_and_reset() -> None:
    fb = FrameBuffer(4, 2)
    windows = list(fb.frames([np.arange(3), np.arange(3, 6)]))
    assert len(windows) == 2
    fb.push(np.arange(3))
    fb.reset()
    assert fb.filled == 0
    assert fb.push(np.arange(3)) == []


@pytest.mark.parametrize("window, hop", [(0, 1), (4, 0), (4, 5)])
def test_invalid_sizes_rejected(window: int, hop: int) -> None:
    with pytest.raises(ValueError):
        FrameBuffer(window, hop)
