"""Fundamental frequency estimation by normalised autocorrelation.

The estimator works on one analysis window at a time:

  * remove the DC offset and apply a Hann window;
  * evaluate the normalised autocorrelation
    ``r(lag) = 2 * sum(x[i] * x[i + lag]) / sum(x[i]**2 + x[i + lag]**2)``
    for every lag between ``sample_rate / max_hz`` and
    ``sample_rate / min_hz``;
  * keep the strongest lag, reject it below ``corr_threshold``;
  * refine the integer lag with a parabola through its neighbours.

The denominator uses the energy of both overlapping segments rather than
the zero-lag energy, so ``r`` stays within ``[-1, 1]`` and long lags are
not penalised for their shorter overlap.  Restricting the lag range to
the musically expected band bounds the cost and rules out octave errors
outside it.

Every division is guarded; a frame that cannot produce a finite,
in-range frequency yields ``None`` rather than an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constants import (
    CORR_THRESHOLD,
    MAX_HZ,
    MIN_CURVATURE,
    MIN_DENOMINATOR,
    MIN_HZ,
    SILENCE_ENERGY,
)


@dataclass(frozen=True)
class PitchEstimate:
    """A confident fundamental frequency for one analysis window.

    Attributes:
        frequency: Estimated fundamental in hertz, within the range the
            estimator was asked for.
        correlation: Normalised autocorrelation of the winning lag,
            clipped to ``[0, 1]``.
        lag: Refined (fractional) period in samples.
    """

    frequency: float
    correlation: float
    lag: float


def _hann(n: int) -> np.ndarray:
    if n < 2:
        return np.ones(n)
    i = np.arange(n)
    return 0.5 - 0.5 * np.cos(2.0 * np.pi * i / (n - 1))


def prepare_window(samples: np.ndarray) -> np.ndarray:
    """Return ``samples`` as float64 with the mean removed and a Hann taper."""
    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return x
    x = x - x.mean()
    return x * _hann(x.size)


def normalized_autocorrelation(x: np.ndarray, lags: np.ndarray) -> np.ndarray:
    """Evaluate the energy-normalised autocorrelation of ``x`` at ``lags``.

    The lagged products are computed for all lags at once with a
    zero-padded FFT; the per-lag energies come from a cumulative sum of
    ``x**2``.  Lags whose overlap carries (almost) no energy score ``0``.

    Args:
        x: Prepared (mean-removed, windowed) samples.
        lags: Integer lags in ``[0, len(x))``.

    Returns:
        np.ndarray: ``r(lag)`` for each requested lag.
    """
    n = x.size
    lags = np.asarray(lags, dtype=np.int64)
    if n == 0 or lags.size == 0:
        return np.zeros(lags.shape)

    # Padding to at least 2n keeps the circular correlation from wrapping.
    size = 1 << int(np.ceil(np.log2(2 * n)))
    spectrum = np.fft.rfft(x, size)
    products = np.fft.irfft(spectrum * np.conj(spectrum), size)[:n]

    energy = np.concatenate(([0.0], np.cumsum(x * x)))
    head = energy[n - lags]  # x[0 : n - lag]
    tail = energy[n] - energy[lags]  # x[lag : n]
    denominator = head + tail

    valid = denominator >= MIN_DENOMINATOR
    r = np.zeros(lags.shape)
    r[valid] = 2.0 * products[lags[valid]] / denominator[valid]
    return r


def _refine_lag(x: np.ndarray, best_lag: int, r0: float) -> float:
    """Parabolic sub-sample refinement around ``best_lag``."""
    n = x.size
    left = best_lag - 1 if best_lag > 1 else None
    right = best_lag + 1 if best_lag + 1 < n else None
    neighbours = [lag for lag in (left, right) if lag is not None]
    values = dict(zip(neighbours, normalized_autocorrelation(x, np.array(neighbours))))
    r_left = float(values[left]) if left is not None else r0
    r_right = float(values[right]) if right is not None else r0

    # Negative at a maximum; the vertex sits toward the larger neighbour.
    curvature = r_left - 2.0 * r0 + r_right
    if abs(curvature) <= MIN_CURVATURE:
        return float(best_lag)
    delta = 0.5 * (r_left - r_right) / curvature
    return best_lag + float(np.clip(delta, -1.0, 1.0))


def estimate_pitch(
    window: np.ndarray,
    sample_rate: float,
    min_hz: float = MIN_HZ,
    max_hz: float = MAX_HZ,
    corr_threshold: float = CORR_THRESHOLD,
) -> Optional[PitchEstimate]:
    """Estimate the fundamental frequency of one analysis window.

    Args:
        window: Mono samples, conventionally in ``[-1, 1]``.
        sample_rate: Sampling frequency of ``window`` in hertz.
        min_hz: Lowest frequency to report.
        max_hz: Highest frequency to report.
        corr_threshold: Minimum normalised correlation of the best lag.

    Returns:
        Optional[PitchEstimate]: The estimate, or ``None`` when the window
        is empty, silent, too short for ``min_hz``, not periodic enough, or
        when the refined frequency falls outside ``[min_hz, max_hz]``.
    """
    x = prepare_window(window)
    n = x.size
    if n == 0 or sample_rate <= 0 or min_hz <= 0 or max_hz <= 0:
        return None

    min_lag = int(round(sample_rate / max_hz))
    max_lag = int(round(sample_rate / min_hz))
    if max_lag + 1 >= n:
        return None

    if float(np.dot(x, x)) <= SILENCE_ENERGY:
        return None

    lags = np.arange(min_lag, min(max_lag, n - 1) + 1)
    if lags.size == 0:
        return None
    r = normalized_autocorrelation(x, lags)

    # First maximum wins; a non-positive peak leaves no usable lag.
    index = int(np.argmax(r))
    best_r = float(r[index])
    best_lag = int(lags[index]) if best_r > 0.0 else 0
    if best_lag == 0 or best_r < corr_threshold:
        return None

    lag = _refine_lag(x, best_lag, best_r)
    if lag <= 0.0:
        return None
    frequency = sample_rate / lag
    if not np.isfinite(frequency) or not (min_hz <= frequency <= max_hz):
        return None
    return PitchEstimate(
        frequency=float(frequency),
        correlation=float(min(max(best_r, 0.0), 1.0)),
        lag=lag,
    )


__all__ = ["PitchEstimate", "estimate_pitch", "normalized_autocorrelation", "prepare_window"]
