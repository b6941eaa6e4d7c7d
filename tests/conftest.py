import numpy as np
import pytest

from ofdmtrace.config import ModemConfig, TraceConfig
from ofdmtrace.ldpc import LDPCCode
from ofdmtrace.modem import OFDMModem


@pytest.fixture
def modem_config():
    return ModemConfig()


@pytest.fixture
def trace_config():
    """Short run, no impairments."""
    return TraceConfig(nframes=3, sample_clock_offset_ppm=0.0, foff_hz=0.0)


@pytest.fixture
def modem(modem_config):
    return OFDMModem(modem_config)


@pytest.fixture
def codec():
    return LDPCCode()


class FakeModem:
    """
    Scripted stand-in for the demodulator.

    Returns a fixed ``nin`` sequence, records every demod input and exposes
    constant post-demod state, so the driver bookkeeping can be checked
    without a real modem in the loop.
    """

    def __init__(self, config=None, nins=None):
        self.config = config if config is not None else ModemConfig()
        c = self.config
        self.nins = list(nins) if nins is not None else []
        self.tx_uw = np.ones(c.nuwbits, dtype=np.uint8)
        self.pilot_samples = np.zeros(c.m + c.ncp, dtype=complex)
        self.rxbuf = np.zeros(c.nrxbuf, dtype=complex)
        self.rx_sym = np.zeros((c.ns + 3, c.nc + 2), dtype=complex)
        ndata = c.rowsperframe * c.nc
        # symbol i sits at +1 or -1 so the extraction offset is visible in the LLRs
        self.rx_np = np.where(np.arange(ndata) % 3 == 0, -1.0, 1.0).astype(complex)
        self.rx_amp = np.ones(ndata)
        self.aphase_est_pilot_log = np.zeros(ndata)
        self.foff_est_hz = 0.0
        self.coarse_foff_est_hz = 0.0
        self.timing_est = 0
        self.timing_valid = True
        self.timing_mx = 1.0
        self.sample_point = 12
        self.sig_var = 1.0
        self.noise_var = 0.0
        self.mean_amp = 1.0
        self.inputs = []
        self.preloaded = None
        self.closed = False

    def set_verbose(self, verbose):
        pass

    def set_timing_enable(self, enable):
        pass

    def set_foff_est_enable(self, enable):
        pass

    def set_phase_est_enable(self, enable):
        pass

    def set_mean_amp(self, mean_amp):
        self.mean_amp = mean_amp

    def preload_rxbuf(self, samples):
        self.preloaded = np.array(samples)

    def mod(self, tx_bits):
        return np.zeros(self.config.samplesperframe, dtype=complex)

    def get_nin(self):
        if self.nins:
            return self.nins[len(self.inputs) % len(self.nins)]
        return self.config.samplesperframe

    def demod(self, rxbuf_in):
        self.inputs.append(np.array(rxbuf_in))
        return np.zeros(self.config.bitsperframe, dtype=np.uint8)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_modem():
    return FakeModem()


@pytest.fixture
def fake_modem_cls():
    return FakeModem
