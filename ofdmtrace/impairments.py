"""
Impairment models for the simulated channel.

This module provides the functions the channel simulator is built from:
- **Sample clock offset**: linear interpolation onto a time base advancing by
  ``1 + ppm/1e6`` input samples per output sample.
- **Frequency offset**: a numerically controlled oscillator (NCO) multiplying
  the signal by a unit phasor, renormalized after every call.
- **Additive White Gaussian Noise (AWGN)**: complex noise at a target SNR.

Each function has a `ProcessingBlock` wrapper so stages can be chained, with
stateful blocks (the NCO) keeping their state between calls.
"""

from typing import Optional, Tuple

import numpy as np

from .logger import logger
from .processor import ProcessingBlock


def fs_offset(samples: np.ndarray, sample_rate_ppm: float) -> np.ndarray:
    """
    Simulates a small sample clock offset between modulator and demodulator.

    Output sample ``k`` is read at input time ``t_k``, with ``t_0 = 0`` and
    ``t_k = t_(k-1) + 1 + sample_rate_ppm/1e6``, by linear interpolation
    between ``floor(t_k)`` and ``ceil(t_k)``. Generation stops once
    ``t_k >= n - 1``, so the right hand interpolation point never passes the
    last input sample.

    The time base is accumulated by repeated addition in float64. Single
    precision drifts visibly over a few thousand samples.

    Args:
        samples: Input complex samples at the nominal rate.
        sample_rate_ppm: Clock offset in parts per million. Positive values
            compress the signal (fewer output samples).

    Returns:
        The resampled signal, one sample for every instant ``t_k < n - 1``.
        A zero offset gives the samples ``in[0:n-1]`` unchanged.
    """
    x = np.asarray(samples, dtype=np.complex128)
    n = x.shape[0]
    step = 1.0 + sample_rate_ppm / 1e6
    if step <= 0:
        raise ValueError(f"sample_rate_ppm={sample_rate_ppm} gives a non-positive time step")
    if n < 2:
        return np.zeros(0, dtype=np.complex128)

    # enough steps to pass n-1, the exact stop is taken on the accumulated time
    nmax = int(np.ceil((n - 1) / step)) + 2
    t = np.concatenate(([0.0], np.cumsum(np.full(nmax - 1, step))))
    t = t[t < (n - 1)]

    t1 = np.floor(t).astype(np.int64)
    t2 = np.ceil(t).astype(np.int64)
    if t2.size and t2[-1] >= n:
        raise RuntimeError(f"interpolation index {t2[-1]} past end of {n} sample input")

    f = t - t1
    out = (1.0 - f) * x[t1] + f * x[t2]

    logger.debug(
        f"Clock offset {sample_rate_ppm:.1f} ppm: {n} samples in, {out.shape[0]} out."
    )
    return out


def freq_shift(
    samples: np.ndarray,
    foff_hz: float,
    sample_rate: float,
    phase_rect: complex = 1.0 + 0.0j,
) -> Tuple[np.ndarray, complex]:
    """
    Frequency shifts a complex signal with a numerically controlled oscillator.

    The use of complex input and output allows single sided frequency
    shifting (no images). For every sample the oscillator phasor is first
    advanced by ``exp(j*2*pi*foff_hz/sample_rate)``, then the sample is
    multiplied by the advanced phasor. After the last sample the phasor is
    normalised to unit magnitude, as repeated multiplication lets it drift.

    Args:
        samples: Input complex samples.
        foff_hz: Frequency shift in Hz.
        sample_rate: Sampling rate in Hz.
        phase_rect: Oscillator phasor carried over from the previous call.

    Returns:
        Tuple of (shifted samples, phasor to pass to the next call).
    """
    x = np.asarray(samples, dtype=np.complex128)
    temp = 2.0 * np.pi * foff_hz / sample_rate
    foff_rect = complex(np.cos(temp), np.sin(temp))

    if x.shape[0] == 0:
        return x.copy(), phase_rect

    # sequential product, phasor[i] = phasor[i-1] * foff_rect
    phasors = np.cumprod(
        np.concatenate(([complex(phase_rect)], np.full(x.shape[0], foff_rect)))
    )[1:]
    out = x * phasors

    phase_rect = complex(phasors[-1])
    phase_rect = phase_rect / abs(phase_rect)
    return out, phase_rect


def add_gaussian_noise(
    samples: np.ndarray, snr_db: float, seed: Optional[int] = None
) -> np.ndarray:
    """
    Adds complex Additive White Gaussian Noise to achieve a target SNR.

    Args:
        samples: The input complex samples.
        snr_db: The desired Signal-to-Noise Ratio (SNR) in decibels, relative
            to the mean power of ``samples``.
        seed: Random seed for reproducibility.

    Returns:
        The noisy samples.
    """
    logger.info(f"Adding Gaussian noise (SNR target: {snr_db:.2f} dB).")
    x = np.asarray(samples, dtype=np.complex128)

    signal_power = np.mean(np.abs(x) ** 2) if x.size else 0.0
    snr_linear = 10 ** (snr_db / 10)

    # Handle very low SNR or infinite noise case
    if snr_linear <= 1e-20:
        noise_power = signal_power / 1e-20
    else:
        noise_power = signal_power / snr_linear

    # For complex noise, power is split between real and imag
    noise_std_component = np.sqrt(noise_power / 2)
    rng = np.random.default_rng(seed)
    noise = rng.normal(0, noise_std_component, x.shape) + 1j * rng.normal(
        0, noise_std_component, x.shape
    )
    return x + noise


class ClockOffsetResampler(ProcessingBlock):
    """Applies `fs_offset` with a fixed ppm offset."""

    def __init__(self, sample_rate_ppm: float):
        self.sample_rate_ppm = sample_rate_ppm

    def process(self, samples: np.ndarray) -> np.ndarray:
        return fs_offset(samples, self.sample_rate_ppm)


class FrequencyShifter(ProcessingBlock):
    """
    Applies `freq_shift` and keeps the oscillator phasor between calls.

    Consecutive calls are phase continuous, so a signal shifted in pieces
    matches the same signal shifted in one call.
    """

    def __init__(self, foff_hz: float, sample_rate: float, phase_rect: complex = 1.0 + 0.0j):
        self.foff_hz = foff_hz
        self.sample_rate = sample_rate
        self.phase_rect = phase_rect

    def process(self, samples: np.ndarray) -> np.ndarray:
        out, self.phase_rect = freq_shift(
            samples, self.foff_hz, self.sample_rate, self.phase_rect
        )
        return out


class GaussianNoise(ProcessingBlock):
    """Applies `add_gaussian_noise`, drawing from one generator across calls."""

    def __init__(self, snr_db: float, seed: Optional[int] = None):
        self.snr_db = snr_db
        self.rng = np.random.default_rng(seed)

    def process(self, samples: np.ndarray) -> np.ndarray:
        seed = int(self.rng.integers(0, 2**32))
        return add_gaussian_noise(samples, self.snr_db, seed=seed)
