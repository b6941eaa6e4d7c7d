import numpy as np
import pytest

from ofdmtrace.channel import ChannelSimulator
from ofdmtrace.config import TraceConfig
from ofdmtrace.impairments import (
    ClockOffsetResampler,
    FrequencyShifter,
    GaussianNoise,
    freq_shift,
    fs_offset,
)


def test_from_config_blocks():
    channel = ChannelSimulator.from_config(TraceConfig())
    assert [type(b) for b in channel.blocks] == [ClockOffsetResampler, FrequencyShifter]
    assert channel.blocks[1].foff_hz == 0.5
    assert channel.blocks[1].sample_rate == 8000.0


def test_from_config_with_noise():
    channel = ChannelSimulator.from_config(TraceConfig(channel_snr_db=12.0, noise_seed=3))
    assert isinstance(channel.blocks[-1], GaussianNoise)
    assert channel.blocks[-1].snr_db == 12.0


def test_resampler_then_mixer():
    rng = np.random.default_rng(0)
    x = rng.standard_normal(5000) + 1j * rng.standard_normal(5000)
    out = ChannelSimulator.from_config(TraceConfig())(x)

    expected, _ = freq_shift(fs_offset(x, 100.0), 0.5, 8000.0)
    np.testing.assert_array_equal(out, expected)


def test_empty_chain_passes_through():
    x = np.arange(10) + 1j
    np.testing.assert_array_equal(ChannelSimulator([])(x), x)


def test_noise_is_seeded():
    config = TraceConfig(channel_snr_db=5.0, noise_seed=11)
    x = np.ones(1000, dtype=complex)
    a = ChannelSimulator.from_config(config)(x)
    b = ChannelSimulator.from_config(config)(x)
    np.testing.assert_array_equal(a, b)
    assert a.shape[0] == 999
    assert not np.allclose(a, fs_offset(x, 100.0))
