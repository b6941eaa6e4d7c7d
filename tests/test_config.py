"""Tests for the configuration models."""

import pytest
from pydantic import ValidationError

from ofdmtrace.config import DEFAULT_RX_FILE_SCALE, ModemConfig, RxMode, TraceConfig


class TestModemConfig:
    def test_derived_geometry(self):
        c = ModemConfig()
        assert c.m == 144
        assert c.ncp == 16
        assert c.rs == pytest.approx(55.5555, abs=1e-3)
        assert c.bitsperframe == 238
        assert c.rowsperframe == 7
        assert c.samplesperframe == 1280
        assert c.max_samplesperframe == 1320
        assert c.nrxbuf == 4320
        assert c.nuwbits == 10

    def test_frozen(self):
        c = ModemConfig()
        with pytest.raises(ValidationError):
            c.nc = 10

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            ModemConfig(carriers=17)

    def test_cyclic_prefix_too_long(self):
        with pytest.raises(ValidationError):
            ModemConfig(tcp=0.02)

    def test_no_room_for_unique_word(self):
        with pytest.raises(ValidationError):
            ModemConfig(txtbits=14)


class TestTraceConfig:
    def test_defaults(self):
        c = TraceConfig()
        assert c.nframes == 10
        assert c.sample_clock_offset_ppm == 100.0
        assert c.foff_hz == 0.5
        assert c.coded_bits_per_frame == 224
        assert c.data_bits_per_frame == 112
        assert c.es_no == 10.0
        assert c.rx_mode == RxMode.CHANNEL_FRONT_LOADED
        assert c.rx_file_scale == pytest.approx(DEFAULT_RX_FILE_SCALE)
        assert c.channel_snr_db is None
        assert c.rx_mode.primes_rxbuf

    def test_only_front_loaded_mode_primes(self):
        assert not RxMode.CHANNEL.primes_rxbuf
        assert not RxMode.REFERENCE_FILE.primes_rxbuf
        with pytest.raises(ValidationError):
            TraceConfig(prime_rxbuf=True)

    def test_reference_file_needs_path(self):
        with pytest.raises(ValidationError, match="rx_file"):
            TraceConfig(rx_mode="reference_file")
        c = TraceConfig(rx_mode="reference_file", rx_file="ofdm_test.raw")
        assert c.rx_mode == RxMode.REFERENCE_FILE

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            TraceConfig(nframes=0)
        with pytest.raises(ValidationError):
            TraceConfig(es_no=-1.0)

    def test_yaml_round_trip(self, tmp_path):
        config = TraceConfig(
            nframes=4,
            foff_hz=-1.5,
            ldpc_enable=False,
            modem=ModemConfig(rx_centre=1510.0),
        )
        path = tmp_path / "run.yaml"
        config.to_yaml(str(path))
        loaded = TraceConfig.from_yaml(str(path))
        assert loaded == config
        assert loaded.modem.rx_centre == 1510.0

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert TraceConfig.from_yaml(str(path)) == TraceConfig()
