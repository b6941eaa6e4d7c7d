"""
ofdmtrace: OFDM modem trace harness.

This package provides tools for:
- Building OFDM test frames (unique word, text bits, LDPC codeword).
- Simulating sample clock and carrier frequency offsets.
- Demodulating and LDPC decoding frame by frame with a variable ``nin``.
- Logging every intermediate array and exporting it for offline comparison.
"""

from . import impairments
from .config import ModemConfig, RxMode, TraceConfig
from .harness import TraceResult, run_trace
from .ldpc import LDPCCode
from .logger import set_log_level
from .modem import OFDMModem

__all__ = [
    "ModemConfig",
    "TraceConfig",
    "RxMode",
    "OFDMModem",
    "LDPCCode",
    "run_trace",
    "TraceResult",
    "impairments",
    "set_log_level",
]
