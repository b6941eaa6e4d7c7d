"""
Interfaces of the collaborators driven by the trace harness.

The frame drivers only use what is declared here. The modem owns its receive
buffer and estimator state; after each `Modem.demod` call the drivers read
that state for logging and codeword extraction but never write to it.
"""

from typing import Protocol, Tuple, runtime_checkable

import numpy as np

from .config import ModemConfig


@runtime_checkable
class Modem(Protocol):
    """OFDM modulator/demodulator with a persistent receive buffer."""

    config: ModemConfig
    tx_uw: np.ndarray
    pilot_samples: np.ndarray

    # read-only state refreshed by demod()
    rxbuf: np.ndarray
    rx_sym: np.ndarray
    rx_np: np.ndarray
    rx_amp: np.ndarray
    aphase_est_pilot_log: np.ndarray
    foff_est_hz: float
    coarse_foff_est_hz: float
    timing_est: int
    timing_valid: bool
    timing_mx: float
    sample_point: int
    sig_var: float
    noise_var: float
    mean_amp: float

    def set_verbose(self, verbose: bool) -> None: ...

    def set_timing_enable(self, enable: bool) -> None: ...

    def set_foff_est_enable(self, enable: bool) -> None: ...

    def set_phase_est_enable(self, enable: bool) -> None: ...

    def set_mean_amp(self, mean_amp: float) -> None: ...

    def preload_rxbuf(self, samples: np.ndarray) -> None: ...

    def mod(self, tx_bits: np.ndarray) -> np.ndarray: ...

    def get_nin(self) -> int: ...

    def demod(self, rxbuf_in: np.ndarray) -> np.ndarray: ...

    def close(self) -> None: ...


@runtime_checkable
class FecCodec(Protocol):
    """Systematic block code with an iterative soft decision decoder."""

    codeword_length: int
    data_bits_per_frame: int
    parity_bits: int
    max_iter: int

    def encode(self, data_bits: np.ndarray) -> np.ndarray: ...

    def decode(
        self, llr: np.ndarray, max_iter: int
    ) -> Tuple[np.ndarray, int, int]: ...
