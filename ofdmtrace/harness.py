"""
End to end trace run: encode, channel, decode, log.

`run_trace` drives the frame encoder over every frame, passes the whole
transmit signal through the channel simulator once, then runs the frame
decoder frame by frame and records every intermediate array in a `TraceLog`.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .channel import ChannelSimulator
from .config import RxMode, TraceConfig
from .frames import FrameEncoder, FrameLayout, make_payload
from .ldpc import LDPCCode
from .logger import frame_logger, logger
from .modem import OFDMModem
from .protocols import FecCodec, Modem
from .receiver import FrameDecoder, FrameResult, SampleSource
from .trace import TraceLog


@dataclass
class TraceResult:
    """
    Outcome of a trace run.

    Attributes:
        trace: Every logged array.
        payload: Payload bits sent, one row per frame.
        tx_bits: Frame bits sent, one row per frame.
        consumed: Samples taken from the receive stream, the consumed input
            length. Equals ``primed + sum(lnew_log)``.
        available: Samples in the receive stream.
        primed: Samples front loaded into the receive buffer before the
            first frame, 0 unless the mode primes it.

    Each frame hands ``nin_log[f]`` samples to the demodulator, of which
    ``lnew_log[f]`` come from the stream and the rest are zero padding once
    the stream runs dry.
    """

    trace: TraceLog
    payload: np.ndarray
    tx_bits: np.ndarray
    consumed: int
    available: int
    primed: int = 0

    @property
    def zero_padded(self) -> int:
        """Zero samples fed to the demodulator after the stream ran out."""
        return int(self.trace["nin_log"].sum() - self.trace["lnew_log"].sum())

    @property
    def decoded_payload(self) -> np.ndarray:
        """Systematic half of each detected codeword, one row per frame."""
        k = self.payload.shape[1]
        detected = self.trace["detected_data_log"].reshape(self.payload.shape[0], -1)
        return detected[:, :k]


def _log_frame(trace: TraceLog, f: int, modem: Modem, result: FrameResult) -> None:
    trace.append("rxbuf_in_log", result.rxbuf_in)
    trace.record("rxbuf_log", f, modem.rxbuf)
    trace.record("rx_sym_log", f, modem.rx_sym)
    trace.record("phase_est_pilot_log", f, modem.aphase_est_pilot_log)
    trace.record("rx_amp_log", f, modem.rx_amp)
    trace.record("foff_hz_log", f, modem.foff_est_hz)
    # 1 based for Octave
    trace.record("timing_est_log", f, modem.timing_est + 1)
    trace.record("timing_valid_log", f, int(modem.timing_valid))
    trace.record("timing_mx_log", f, modem.timing_mx)
    trace.record("coarse_foff_est_hz_log", f, modem.coarse_foff_est_hz)
    trace.record("sample_point_log", f, modem.sample_point + 1)
    trace.record("rx_np_log", f, modem.rx_np)
    trace.record("rx_bits_log", f, result.rx_bits)
    trace.record("symbol_likelihood_log", f, result.symbol_likelihood)
    trace.record("bit_likelihood_log", f, result.bit_likelihood)
    trace.record("detected_data_log", f, result.detected)
    trace.record("sig_var_log", f, modem.sig_var)
    trace.record("noise_var_log", f, modem.noise_var)
    trace.record("mean_amp_log", f, modem.mean_amp)
    trace.record("nin_log", f, result.nin)
    trace.record("lnew_log", f, result.lnew)
    trace.record("parity_check_count_log", f, result.parity_check_count)
    trace.record("ldpc_iter_log", f, result.iterations)


def run_trace(
    config: Optional[TraceConfig] = None,
    modem: Optional[Modem] = None,
    codec: Optional[FecCodec] = None,
) -> TraceResult:
    """
    Runs a complete trace.

    Args:
        config: Run configuration, defaults to `TraceConfig()`.
        modem: Modem to use, defaults to an `OFDMModem` built from
            ``config.modem``. It is closed when the run ends.
        codec: LDPC codec, defaults to an `LDPCCode` sized from the config.
            Ignored when ``config.ldpc_enable`` is False.

    Returns:
        The trace and the run bookkeeping.
    """
    config = config if config is not None else TraceConfig()
    if modem is None:
        modem = OFDMModem(config.modem)
    elif modem.config != config.modem:
        raise ValueError("modem configuration differs from config.modem")

    if not config.ldpc_enable:
        codec = None
    elif codec is None:
        codec = LDPCCode(
            data_bits=config.data_bits_per_frame,
            parity_bits=config.coded_bits_per_frame - config.data_bits_per_frame,
            max_iter=config.ldpc_max_iter,
            seed=config.ldpc_seed,
        )

    c = config.modem
    layout = FrameLayout.from_config(config)
    n = config.nframes
    logger.info(
        f"Trace run: {n} frames, {c.bitsperframe} bits / {c.samplesperframe} samples "
        f"per frame, LDPC {'on' if codec is not None else 'off'}."
    )

    try:
        trace = TraceLog(config)

        # encode
        encoder = FrameEncoder(modem, layout, codec)
        payload = make_payload(n, layout.data_bits, seed=config.payload_seed)
        tx_bits, tx = encoder.encode_frames(payload)
        trace.set("pilot_samples", modem.pilot_samples)
        for f in range(n):
            trace.record("tx_bits_log", f, tx_bits[f])
            trace.record("tx_log", f, tx[f * c.samplesperframe : (f + 1) * c.samplesperframe])

        # channel
        channel = ChannelSimulator.from_config(config)
        rx = channel(tx)
        trace.set("rx_log", rx[: c.samplesperframe * n])

        if config.rx_mode == RxMode.REFERENCE_FILE:
            source = SampleSource.from_raw_int16(config.rx_file, config.rx_file_scale)
        else:
            source = SampleSource(rx)

        # decode
        decoder = FrameDecoder(
            modem, layout, codec, es_no=config.es_no, max_iter=config.ldpc_max_iter
        )
        primed = decoder.prime(source) if config.rx_mode.primes_rxbuf else 0

        modem.set_verbose(config.verbose)
        modem.set_timing_enable(config.timing_en)
        modem.set_foff_est_enable(config.foff_est_en)
        modem.set_phase_est_enable(config.phase_est_en)
        modem.set_mean_amp(config.initial_mean_amp)

        for f in range(n):
            result = decoder.decode_frame(source)
            if source.consumed > source.available:
                raise RuntimeError(
                    f"consumed {source.consumed} samples of {source.available} available"
                )
            _log_frame(trace, f, modem, result)
            flog = frame_logger(f)

            if config.rx_mode == RxMode.REFERENCE_FILE:
                errors = int(np.sum(result.rx_bits != tx_bits[f]))
                trace.record("bit_errors_log", f, errors)
                flog.info(f"{errors} bit errors.")

            flog.debug(
                f"nin={result.nin} lnew={result.lnew} "
                f"timing_est={modem.timing_est} foff_est_hz={modem.foff_est_hz:.3f} "
                f"parity checks {result.parity_check_count} after {result.iterations} iterations"
            )
            if codec is not None and result.parity_check_count < codec.parity_bits:
                flog.warning(
                    f"decoder stopped with {result.parity_check_count}/"
                    f"{codec.parity_bits} parity checks satisfied."
                )
    finally:
        modem.close()

    logger.info(f"Trace run done: {source.consumed} of {source.available} samples consumed.")
    return TraceResult(
        trace=trace,
        payload=payload,
        tx_bits=tx_bits,
        consumed=source.consumed,
        available=source.available,
        primed=primed,
    )
