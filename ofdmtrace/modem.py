"""
Reference pilot aided OFDM modem.

Frame structure, for ``ns`` rows of ``m + ncp`` samples each::

    PPPPPPPPPPPPPPPPPPP   pilot row, all nc+2 carriers
     DDDDDDDDDDDDDDDDD    ns-1 data rows, QPSK on carriers 1..nc
     ...
     DDDDDDDDDDDDDDDDD

The two edge carriers only carry pilots; they let the phase estimate of the
outermost data carriers use a neighbour on both sides.

The demodulator keeps a receive buffer of ``nrxbuf`` samples. Each call
shifts in ``nin`` new samples and converts ``ns + 3`` rows to the frequency
domain::

    rx_sym[0]          previous frame's pilot
    rx_sym[1]          this frame's pilot
    rx_sym[2..ns]      this frame's data rows
    rx_sym[ns+1]       next frame's pilot
    rx_sym[ns+2]       future frame's pilot

Timing is tracked by correlating against the time domain pilot, frequency by
the phase change between this and the next pilot, and the data phase from the
pilots either side of the frame. ``nin`` grows or shrinks by a quarter row
when the timing estimate drifts past an eighth of a row, so the modem keeps up
with a sample clock offset.
"""

from typing import Optional

import numpy as np

from .config import ModemConfig
from .logger import frame_logger
from .mapping import qpsk_demod, qpsk_mod
from .sequences import prbs

# unique word, repeated if the frame has room for more bits
UW_PATTERN = np.array([1, 1, 0, 0, 1, 0, 1, 0, 1, 1], dtype=np.uint8)

PILOT_SEED = 0x55


class OFDMModem:
    """
    QPSK OFDM modem with pilot based timing, frequency and phase estimation.

    Attributes:
        config: The modem geometry.
        tx_uw: Unique word bits placed at the start of every frame.
        pilots: Real +/-1 pilot values, one per carrier (nc+2).
        pilot_samples: Time domain pilot row including its cyclic prefix.
        rxbuf: Receive buffer, newest samples at the end.
        rx_sym: Frequency domain rows of the last demod call, (ns+3, nc+2).
        rx_np: Phase corrected data symbols of the last frame, row major.
        rx_amp: Amplitude estimate of each entry of rx_np.
        aphase_est_pilot_log: Phase estimate applied to each entry of rx_np.
        frames: Number of demod calls so far.
    """

    def __init__(self, config: Optional[ModemConfig] = None):
        self.config = config if config is not None else ModemConfig()
        c = self.config
        if c.bps != 2:
            raise ValueError(f"reference modem is QPSK only, got bps={c.bps}")
        if c.nc + 2 > c.m:
            raise ValueError(f"{c.nc + 2} carriers do not fit in a {c.m} point DFT")

        self.m = c.m
        self.ncp = c.ncp
        self.row = c.m + c.ncp

        self.tx_uw = np.resize(UW_PATTERN, c.nuwbits).astype(np.uint8)
        self.pilots = 1.0 - 2.0 * prbs(c.nc + 2, seed=PILOT_SEED, order=7).astype(float)
        self.tx_bins = self._carrier_bins(c.tx_centre)
        self.rx_bins = self._carrier_bins(c.rx_centre)
        self.pilot_samples = self._ofdm_row(self.pilots)

        self.timing_en = True
        self.foff_est_en = True
        self.phase_est_en = True
        self.verbose = False
        self.frames = 0

        self.rxbuf = np.zeros(c.nrxbuf, dtype=np.complex128)
        self.nin = c.samplesperframe
        self.rx_sym = np.zeros((c.ns + 3, c.nc + 2), dtype=np.complex128)
        self.rx_np = np.zeros(c.rowsperframe * c.nc, dtype=np.complex128)
        self.rx_amp = np.zeros(c.rowsperframe * c.nc)
        self.aphase_est_pilot = np.zeros(c.nc + 2)
        self.aamp_est_pilot = np.zeros(c.nc + 2)
        self.aphase_est_pilot_log = np.zeros(c.rowsperframe * c.nc)

        self.foff_est_hz = 0.0
        self.coarse_foff_est_hz = 0.0
        self.timing_est = 0
        self.sample_point = self.ncp - self.ncp // 4
        self.timing_valid = False
        self.timing_mx = 0.0
        self.sig_var = 0.0
        self.noise_var = 0.0
        self.mean_amp = 0.0

        self._closed = False

    def _carrier_bins(self, centre_hz: float) -> np.ndarray:
        """DFT bins of the nc+2 carriers, centred on centre_hz."""
        c = self.config
        centre_bin = int(round(centre_hz * c.ts))
        lower = centre_bin - (c.nc + 2) // 2
        return (lower + np.arange(c.nc + 2)) % c.m

    def _ofdm_row(self, carriers: np.ndarray) -> np.ndarray:
        """One row of m + ncp time domain samples from nc+2 carrier values."""
        spectrum = np.zeros(self.m, dtype=np.complex128)
        spectrum[self.tx_bins] = carriers
        x = np.fft.ifft(spectrum)
        return np.concatenate([x[self.m - self.ncp :], x])

    def set_verbose(self, verbose: bool) -> None:
        self.verbose = bool(verbose)

    def set_timing_enable(self, enable: bool) -> None:
        self.timing_en = bool(enable)

    def set_foff_est_enable(self, enable: bool) -> None:
        self.foff_est_en = bool(enable)

    def set_phase_est_enable(self, enable: bool) -> None:
        self.phase_est_en = bool(enable)

    def set_mean_amp(self, mean_amp: float) -> None:
        self.mean_amp = float(mean_amp)

    def preload_rxbuf(self, samples: np.ndarray) -> None:
        """Writes samples to the end of the receive buffer, e.g. to start with ideal timing."""
        samples = np.asarray(samples, dtype=np.complex128)
        n = samples.shape[0]
        if n > self.rxbuf.shape[0]:
            raise ValueError(
                f"{n} samples do not fit the {self.rxbuf.shape[0]} sample receive buffer"
            )
        if n:
            self.rxbuf[-n:] = samples

    def close(self) -> None:
        self._closed = True

    def mod(self, tx_bits: np.ndarray) -> np.ndarray:
        """
        Modulates one frame of bits.

        Args:
            tx_bits: Frame bits. Shape: (bitsperframe,).

        Returns:
            Complex samples. Shape: (samplesperframe,).
        """
        c = self.config
        tx_bits = np.asarray(tx_bits)
        if tx_bits.shape != (c.bitsperframe,):
            raise ValueError(f"expected {c.bitsperframe} bits, got {tx_bits.size}")

        symbols = qpsk_mod(tx_bits).reshape(c.rowsperframe, c.nc)
        rows = [self._ofdm_row(self.pilots)]
        for data in symbols:
            carriers = np.zeros(c.nc + 2, dtype=np.complex128)
            carriers[1 : c.nc + 1] = data
            rows.append(self._ofdm_row(carriers))
        return np.concatenate(rows)

    def get_nin(self) -> int:
        """Number of samples the next demod call expects."""
        return self.nin

    def demod(self, rxbuf_in: np.ndarray) -> np.ndarray:
        """
        Demodulates one frame.

        Args:
            rxbuf_in: Exactly ``get_nin()`` new samples.

        Returns:
            Hard decision bits of the frame. Shape: (bitsperframe,).
        """
        if self._closed:
            raise RuntimeError("demod called on a closed modem")
        c = self.config
        rxbuf_in = np.asarray(rxbuf_in, dtype=np.complex128)
        nin = self.nin
        if rxbuf_in.shape != (nin,):
            raise ValueError(f"demod expects nin={nin} samples, got {rxbuf_in.size}")

        self.frames += 1
        self.rxbuf[:-nin] = self.rxbuf[nin:]
        self.rxbuf[-nin:] = rxbuf_in

        # correct with the current frequency estimate, phase referenced to rxbuf[0]
        n = np.arange(c.nrxbuf)
        work = self.rxbuf * np.exp(-1j * 2.0 * np.pi * self.foff_est_hz * n / c.fs)

        nsf = c.samplesperframe
        base = self.row + nsf

        if self.timing_en:
            self._est_timing(work, base)
            if (
                self.sample_point < self.timing_est
                or self.sample_point > self.timing_est + self.ncp
            ):
                self.sample_point = self.timing_est + self.ncp - self.ncp // 4

        positions = np.concatenate(
            (
                [base - nsf],
                base + self.row * np.arange(c.ns + 1),
                [base + 2 * nsf],
            )
        ) + self.sample_point
        if positions[0] < 0 or positions[-1] + self.m > c.nrxbuf:
            raise RuntimeError(
                f"sample point {self.sample_point} puts the DFT outside the receive buffer"
            )
        segments = work[positions[:, np.newaxis] + np.arange(self.m)]
        self.rx_sym[:, :] = np.fft.fft(segments, axis=1)[:, self.rx_bins]

        self._est_freq()
        self._est_phase()

        data = self.rx_sym[2 : 2 + c.rowsperframe, 1 : c.nc + 1]
        correction = np.exp(-1j * self.aphase_est_pilot[1 : c.nc + 1])
        self.rx_np[:] = (data * correction[np.newaxis, :]).ravel()
        self.rx_amp[:] = np.tile(self.aamp_est_pilot[1 : c.nc + 1], c.rowsperframe)
        self.aphase_est_pilot_log[:] = np.tile(
            self.aphase_est_pilot[1 : c.nc + 1], c.rowsperframe
        )

        rx_bits = qpsk_demod(self.rx_np)
        self._update_stats(rx_bits)
        self._update_nin()

        msg = (
            f"nin: {self.nin} timing_est: {self.timing_est} sample_point: "
            f"{self.sample_point} timing_mx: {self.timing_mx:.3f} "
            f"foff_est_hz: {self.foff_est_hz:.3f}"
        )
        flog = frame_logger(self.frames - 1)
        if self.verbose:
            flog.info(msg)
        else:
            flog.debug(msg)

        return rx_bits

    def _est_timing(self, work: np.ndarray, base: int) -> None:
        """Pilot correlation search over ftwindowwidth positions."""
        c = self.config
        nsf = c.samplesperframe
        half = c.ftwindowwidth // 2
        st = base + self.timing_est - half
        if st < 0 or st + c.ftwindowwidth - 1 + nsf + self.row > c.nrxbuf:
            raise RuntimeError(
                f"timing estimate {self.timing_est} moved the search outside the receive buffer"
            )

        idx = st + np.arange(c.ftwindowwidth)[:, np.newaxis] + np.arange(self.row)
        this_pilot = work[idx]
        next_pilot = work[idx + nsf]
        ps = np.conj(self.pilot_samples)
        corr = np.abs(this_pilot @ ps) + np.abs(next_pilot @ ps)

        ft = int(np.argmax(corr))
        e_p = np.sum(np.abs(self.pilot_samples) ** 2)
        e1 = np.sum(np.abs(this_pilot[ft]) ** 2)
        e2 = np.sum(np.abs(next_pilot[ft]) ** 2)
        self.timing_mx = float(corr[ft] / (np.sqrt(e_p) * (np.sqrt(e1) + np.sqrt(e2)) + 1e-12))
        self.timing_valid = self.timing_mx > c.timing_mx_thresh
        self.timing_est += ft - half

    def _est_freq(self) -> None:
        """Frequency error from the phase change between this and the next pilot."""
        c = self.config
        this_pilot = self.rx_sym[1] * self.pilots
        next_pilot = self.rx_sym[c.ns + 1] * self.pilots
        freq_err_rect = np.vdot(this_pilot, next_pilot)
        freq_err_hz = float(np.angle(freq_err_rect)) * c.fs / (2.0 * np.pi * c.samplesperframe)

        self.coarse_foff_est_hz = self.foff_est_hz + freq_err_hz
        if self.foff_est_en:
            self.foff_est_hz += c.foff_est_gain * freq_err_hz

    def _est_phase(self) -> None:
        """Phase and amplitude per data carrier, 3 carriers x 2 pilots."""
        c = self.config
        q = (self.rx_sym[1] + self.rx_sym[c.ns + 1]) * self.pilots
        rect = q[:-2] + q[1:-1] + q[2:]

        if self.phase_est_en:
            self.aphase_est_pilot[1 : c.nc + 1] = np.angle(rect)
            self.aamp_est_pilot[1 : c.nc + 1] = np.abs(rect) / 6.0
        else:
            self.aphase_est_pilot[:] = 0.0
            self.aamp_est_pilot[:] = 1.0

    def _update_stats(self, rx_bits: np.ndarray) -> None:
        amp = np.abs(self.rx_np)
        self.mean_amp = 0.9 * self.mean_amp + 0.1 * float(np.mean(amp))
        self.sig_var = float(np.mean(amp**2))
        decided = qpsk_mod(rx_bits) * np.mean(amp)
        self.noise_var = float(np.mean(np.abs(self.rx_np - decided) ** 2))

    def _update_nin(self) -> None:
        """Slip a quarter row when the timing estimate passes an eighth of a row."""
        nsf = self.config.samplesperframe
        self.nin = nsf
        if not self.timing_en:
            return
        thresh = self.row // 8
        tshift = self.row // 4
        if self.timing_est > thresh:
            self.nin = nsf + tshift
            self.timing_est -= tshift
            self.sample_point -= tshift
        elif self.timing_est < -thresh:
            self.nin = nsf - tshift
            self.timing_est += tshift
            self.sample_point += tshift
