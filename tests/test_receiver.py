"""Tests for the frame decoder driver and the sample sources."""

import numpy as np
import pytest

from ofdmtrace.config import TraceConfig
from ofdmtrace.frames import FrameLayout
from ofdmtrace.likelihood import bit_likelihood, symbol_likelihood
from ofdmtrace.mapping import QPSK_CONSTELLATION
from ofdmtrace.receiver import FrameDecoder, SampleSource


class RecordingCodec:
    codeword_length = 224
    data_bits_per_frame = 112
    parity_bits = 112
    max_iter = 100

    def __init__(self):
        self.calls = []

    def encode(self, data_bits):
        return np.zeros(112, dtype=np.uint8)

    def decode(self, llr, max_iter):
        self.calls.append((np.array(llr), max_iter))
        return (llr < 0).astype(np.uint8), 111, 7


@pytest.fixture
def layout():
    return FrameLayout.from_config(TraceConfig())


class TestSampleSource:
    def test_read_until_exhausted(self):
        source = SampleSource(np.arange(10) + 0j)
        np.testing.assert_array_equal(source.read(4), [0, 1, 2, 3])
        np.testing.assert_array_equal(source.read(4), [4, 5, 6, 7])
        np.testing.assert_array_equal(source.read(4), [8, 9])
        assert source.read(4).shape == (0,)
        assert source.consumed == source.available == 10
        assert source.remaining == 0

    def test_raw_int16(self, tmp_path):
        path = tmp_path / "rx.raw"
        np.array([1000, -2000, 32767], dtype="<i2").tofile(path)
        source = SampleSource.from_raw_int16(str(path), 1000.0)
        np.testing.assert_allclose(source.samples, [1.0, -2.0, 32.767])
        assert source.samples.dtype == np.complex128


class TestFrameDecoder:
    def test_zero_pads_exhausted_stream(self, layout, fake_modem_cls):
        modem = fake_modem_cls()
        decoder = FrameDecoder(modem, layout)
        source = SampleSource(np.ones(1500, dtype=complex))

        first = decoder.decode_frame(source)
        second = decoder.decode_frame(source)
        third = decoder.decode_frame(source)

        assert (first.lnew, second.lnew, third.lnew) == (1280, 220, 0)
        np.testing.assert_array_equal(modem.inputs[1][:220], 1.0)
        np.testing.assert_array_equal(modem.inputs[1][220:], 0.0)
        np.testing.assert_array_equal(modem.inputs[2], 0.0)
        assert source.consumed == 1500

    def test_variable_nin(self, layout, fake_modem_cls):
        modem = fake_modem_cls(nins=[1280, 1320, 1240])
        decoder = FrameDecoder(modem, layout)
        source = SampleSource(np.arange(5000) + 0j)
        results = [decoder.decode_frame(source) for _ in range(3)]

        assert [r.nin for r in results] == [1280, 1320, 1240]
        assert [len(x) for x in modem.inputs] == [1280, 1320, 1240]
        # consecutive slices of the stream
        np.testing.assert_array_equal(np.concatenate(modem.inputs), np.arange(3840))

    def test_nin_above_staging_size(self, layout, fake_modem_cls):
        decoder = FrameDecoder(fake_modem_cls(nins=[1321]), layout)
        with pytest.raises(RuntimeError, match="staging"):
            decoder.decode_frame(SampleSource(np.zeros(2000, dtype=complex)))

    def test_codeword_extraction(self, layout, fake_modem_cls):
        modem = fake_modem_cls()
        modem.mean_amp = 0.8
        codec = RecordingCodec()
        decoder = FrameDecoder(modem, layout, codec, es_no=10.0, max_iter=50)
        result = decoder.decode_frame(SampleSource(np.zeros(1280, dtype=complex)))

        symbols = modem.rx_np[7:119]
        expected = symbol_likelihood(symbols, QPSK_CONSTELLATION, 10.0, modem.rx_amp[7:119], 0.8)
        np.testing.assert_allclose(result.symbol_likelihood, expected)
        np.testing.assert_allclose(result.bit_likelihood, bit_likelihood(expected))

        llr, max_iter = codec.calls[0]
        np.testing.assert_allclose(llr, -bit_likelihood(expected))
        assert max_iter == 50
        assert result.parity_check_count == 111
        assert result.iterations == 7
        assert result.detected.shape == (224,)

    def test_hard_decisions_without_codec(self, layout, fake_modem_cls):
        modem = fake_modem_cls()
        decoder = FrameDecoder(modem, layout)
        result = decoder.decode_frame(SampleSource(np.zeros(1280, dtype=complex)))
        # +1 is bits 00, -1 is bits 11
        expected = np.repeat(np.where(np.arange(7, 119) % 3 == 0, 1, 0), 2)
        np.testing.assert_array_equal(result.detected, expected)
        assert result.parity_check_count == 0
        assert result.iterations == 0

    def test_prime(self, layout, fake_modem_cls):
        modem = fake_modem_cls()
        decoder = FrameDecoder(modem, layout)
        source = SampleSource(np.arange(2000) + 0j)
        assert decoder.prime(source) == 1600
        np.testing.assert_array_equal(modem.preloaded, np.arange(1600))
        assert source.consumed == 1600

    def test_prime_short_stream(self, layout, fake_modem_cls):
        modem = fake_modem_cls()
        decoder = FrameDecoder(modem, layout)
        assert decoder.prime(SampleSource(np.ones(100, dtype=complex))) == 100
        assert modem.preloaded.shape == (1600,)
        np.testing.assert_array_equal(modem.preloaded[100:], 0.0)

    def test_codec_must_match_layout(self, layout, fake_modem_cls):
        codec = RecordingCodec()
        codec.codeword_length = 200
        with pytest.raises(ValueError):
            FrameDecoder(fake_modem_cls(), layout, codec)
