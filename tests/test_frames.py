"""Tests for the frame layout and the frame encoder."""

import numpy as np
import pytest
from pydantic import ValidationError

from ofdmtrace.config import ModemConfig, TraceConfig
from ofdmtrace.frames import FrameEncoder, FrameLayout, make_payload
from ofdmtrace.ldpc import LDPCCode


class TestFrameLayout:
    def test_default_layout(self):
        layout = FrameLayout.from_config(TraceConfig())
        assert layout.uw_bits == 10
        assert layout.txt_bits == 4
        assert layout.coded_bits == 224
        assert layout.bits_per_frame == 238
        assert layout.codeword_bit_offset == 14
        assert layout.codeword_symbol_offset == 7
        assert layout.codeword_symbols == 112
        assert layout.data_bits == 112

    def test_bit_count_mismatch(self):
        with pytest.raises(ValueError, match="238"):
            FrameLayout(uw_bits=10, txt_bits=4, coded_bits=200, bps=2, bits_per_frame=238)

    def test_offset_not_whole_symbols(self):
        with pytest.raises(ValueError, match="whole"):
            FrameLayout(uw_bits=9, txt_bits=4, coded_bits=225, bps=2, bits_per_frame=238)

    def test_odd_coded_block(self):
        with pytest.raises(ValueError):
            FrameLayout(uw_bits=10, txt_bits=4, coded_bits=225, bps=1, bits_per_frame=239)

    def test_config_rejects_bad_layout(self):
        with pytest.raises(ValidationError):
            TraceConfig(coded_bits_per_frame=200)
        with pytest.raises(ValidationError):
            TraceConfig(modem=ModemConfig(txtbits=3), coded_bits_per_frame=225)


def test_make_payload():
    payload = make_payload(4, 112, seed=1)
    assert payload.shape == (4, 112)
    assert payload.dtype == np.uint8
    # distinct payload per frame
    assert not np.array_equal(payload[0], payload[1])
    np.testing.assert_array_equal(payload, make_payload(4, 112, seed=1))


class TestFrameEncoder:
    @pytest.fixture
    def layout(self):
        return FrameLayout.from_config(TraceConfig())

    def test_assemble_with_ldpc(self, modem, codec, layout):
        encoder = FrameEncoder(modem, layout, codec)
        payload = make_payload(1, 112)[0]
        bits = encoder.assemble(payload)

        assert bits.shape == (238,)
        np.testing.assert_array_equal(bits[:10], modem.tx_uw)
        np.testing.assert_array_equal(bits[10:14], 0)
        np.testing.assert_array_equal(bits[14:126], payload)
        np.testing.assert_array_equal(bits[126:], codec.encode(payload))
        assert codec.parity_checks_satisfied(bits[14:]) == codec.parity_bits

    def test_assemble_without_ldpc(self, modem, layout):
        encoder = FrameEncoder(modem, layout, None)
        payload = make_payload(1, 112, seed=3)[0]
        bits = encoder.assemble(payload)
        np.testing.assert_array_equal(bits[14:126], payload)
        np.testing.assert_array_equal(bits[126:], payload)

    def test_encode_frames(self, modem, codec, layout):
        encoder = FrameEncoder(modem, layout, codec)
        bits, tx = encoder.encode_frames(make_payload(3, 112))
        assert bits.shape == (3, 238)
        assert tx.shape == (3 * 1280,)
        np.testing.assert_allclose(tx[:1280], modem.mod(bits[0]))

    def test_wrong_payload_length(self, modem, codec, layout):
        with pytest.raises(ValueError):
            FrameEncoder(modem, layout, codec).assemble(np.zeros(100))

    def test_codec_must_fit_layout(self, modem, layout):
        with pytest.raises(ValueError):
            FrameEncoder(modem, layout, LDPCCode(data_bits=100))

    def test_ldpc_disabled_warns(self, modem, layout, caplog):
        FrameEncoder(modem, layout, None).encode_frames(make_payload(1, 112))
        assert "LDPC disabled" in caplog.text
