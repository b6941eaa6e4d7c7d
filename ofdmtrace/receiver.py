"""
Frame decoder driver and the sample sources it reads from.

The driver follows the modem's ``nin`` protocol: before every frame it asks
the modem how many samples it wants, takes at most that many from the
source, zero-pads the rest once the source runs dry and hands exactly
``nin`` samples to the demodulator. It then cuts the codeword symbols out of
the demodulated frame and runs the soft decision decoder on them.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .frames import FrameLayout
from .likelihood import bit_likelihood, symbol_likelihood
from .logger import logger
from .mapping import QPSK_CONSTELLATION
from .protocols import FecCodec, Modem


class SampleSource:
    """
    Sequential reader over a finite block of complex samples.

    Attributes:
        samples: All samples of the stream.
        consumed: Samples handed out so far.
    """

    def __init__(self, samples: np.ndarray):
        self.samples = np.asarray(samples, dtype=np.complex128).ravel()
        self.consumed = 0

    @classmethod
    def from_raw_int16(cls, path: str, scale: float) -> "SampleSource":
        """
        Reads real 16 bit little endian samples from a file.

        Args:
            path: Raw sample file.
            scale: Divisor mapping the integers back to modem amplitudes.
        """
        raw = np.fromfile(path, dtype="<i2")
        logger.info(f"Read {raw.shape[0]} samples from {path}.")
        return cls(raw.astype(np.float64) / scale)

    @property
    def available(self) -> int:
        return self.samples.shape[0]

    @property
    def remaining(self) -> int:
        return self.available - self.consumed

    def read(self, n: int) -> np.ndarray:
        """Returns the next ``min(n, remaining)`` samples."""
        lnew = min(n, self.remaining)
        out = self.samples[self.consumed : self.consumed + lnew]
        self.consumed += lnew
        return out


@dataclass
class FrameResult:
    """
    Outputs of one decoded frame.

    Attributes:
        nin: Samples passed to the demodulator.
        lnew: Of those, samples taken from the source (the rest are zeros).
        rxbuf_in: The demodulator input. Shape: (nin,).
        rx_bits: Hard decisions of the whole modem frame.
        symbol_likelihood: Codeword symbol likelihoods. Shape: (nsym, M).
        bit_likelihood: Codeword bit likelihoods. Shape: (coded_bits,).
        detected: Decoded codeword bits. Shape: (coded_bits,).
        parity_check_count: Parity checks satisfied by ``detected``.
        iterations: Decoder iterations used.
    """

    nin: int
    lnew: int
    rxbuf_in: np.ndarray
    rx_bits: np.ndarray
    symbol_likelihood: np.ndarray
    bit_likelihood: np.ndarray
    detected: np.ndarray
    parity_check_count: int
    iterations: int


class FrameDecoder:
    """
    Per-frame receive loop around a modem and an LDPC decoder.

    Args:
        modem: Demodulator, keeps its receive buffer across frames.
        layout: Frame bit bookkeeping, gives the codeword position.
        codec: Soft decision decoder; None takes hard decisions of the
            codeword bits instead.
        es_no: Linear Es/No assumed by the symbol likelihoods.
        max_iter: Decoder iteration cap, defaults to the codec's.
        constellation: Points indexed by symbol value.
    """

    def __init__(
        self,
        modem: Modem,
        layout: FrameLayout,
        codec: Optional[FecCodec] = None,
        es_no: float = 10.0,
        max_iter: Optional[int] = None,
        constellation: np.ndarray = QPSK_CONSTELLATION,
    ):
        self.modem = modem
        self.layout = layout
        self.codec = codec
        self.es_no = es_no
        self.max_iter = max_iter if max_iter is not None else (codec.max_iter if codec else 0)
        self.constellation = np.asarray(constellation)

        if self.constellation.shape[0] != 2**layout.bps:
            raise ValueError(
                f"{self.constellation.shape[0]} point constellation for {layout.bps} bits per symbol"
            )
        if codec is not None and codec.codeword_length != layout.coded_bits:
            raise ValueError(
                f"codec codeword of {codec.codeword_length} bits, frame carries {layout.coded_bits}"
            )

        c = modem.config
        # allocated once, nin never exceeds max_samplesperframe
        self.staging = np.zeros(c.max_samplesperframe, dtype=np.complex128)

    @property
    def prime_length(self) -> int:
        """Samples front loaded by `prime`: one frame plus two rows."""
        c = self.modem.config
        return c.samplesperframe + 2 * (c.m + c.ncp)

    def prime(self, source: SampleSource) -> int:
        """
        Loads the start of the stream into the end of the receive buffer.

        With the first pilot already in place the demodulator starts with
        ideal timing, so the estimators can be tested one at a time.

        Returns:
            Samples taken from the source.
        """
        n = self.prime_length
        samples = source.read(n)
        buf = np.zeros(n, dtype=np.complex128)
        buf[: samples.shape[0]] = samples
        self.modem.preload_rxbuf(buf)
        logger.debug(f"Primed receive buffer with {samples.shape[0]} samples.")
        return samples.shape[0]

    def decode_frame(self, source: SampleSource) -> FrameResult:
        """Demodulates and decodes the next frame of the stream."""
        nin = self.modem.get_nin()
        if nin > self.staging.shape[0]:
            raise RuntimeError(
                f"modem asked for nin={nin} samples, staging buffer holds {self.staging.shape[0]}"
            )

        chunk = source.read(nin)
        lnew = chunk.shape[0]
        self.staging[:] = 0.0
        self.staging[:lnew] = chunk
        rxbuf_in = self.staging[:nin].copy()

        rx_bits = self.modem.demod(rxbuf_in)

        start = self.layout.codeword_symbol_offset
        stop = start + self.layout.codeword_symbols
        symbols = np.asarray(self.modem.rx_np[start:stop])
        amps = np.asarray(self.modem.rx_amp[start:stop])
        sym_lik = symbol_likelihood(
            symbols, self.constellation, self.es_no, amps, self.modem.mean_amp
        )
        bit_lik = bit_likelihood(sym_lik)
        llr = -bit_lik

        if self.codec is not None:
            detected, checks, iterations = self.codec.decode(llr, self.max_iter)
        else:
            detected, checks, iterations = (llr < 0).astype(np.uint8), 0, 0

        return FrameResult(
            nin=nin,
            lnew=lnew,
            rxbuf_in=rxbuf_in,
            rx_bits=np.asarray(rx_bits),
            symbol_likelihood=sym_lik,
            bit_likelihood=bit_lik,
            detected=np.asarray(detected),
            parity_check_count=int(checks),
            iterations=int(iterations),
        )
